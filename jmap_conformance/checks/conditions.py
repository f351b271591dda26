"""Skip predicates shared by the check modules.

Each predicate returns ``True`` when the check can run, otherwise a reason.
"""

from collections.abc import Callable

from jmap_conformance.context import RunContext
from jmap_conformance.models.session import SUBMISSION_CAPABILITY, VACATION_CAPABILITY


def has_submission(ctx: RunContext) -> bool | str:
    if ctx.session.has_capability(SUBMISSION_CAPABILITY):
        return True
    return f"Server does not advertise {SUBMISSION_CAPABILITY}"


def has_vacation(ctx: RunContext) -> bool | str:
    if ctx.session.has_capability(VACATION_CAPABILITY):
        return True
    return "Server does not support vacationresponse"


def has_event_channel(ctx: RunContext) -> bool | str:
    return True if ctx.events is not None else "No event relay channel available"


def has_cross_account(ctx: RunContext) -> bool | str:
    return True if ctx.cross_account_id else "No cross-account access available"


def needs_emails(*keys: str) -> Callable[[RunContext], bool | str]:
    """Require seeded messages to be present."""

    def predicate(ctx: RunContext) -> bool | str:
        missing = [key for key in keys if key not in ctx.email_ids]
        return True if not missing else f"Fixture emails missing: {', '.join(missing)}"

    return predicate


def needs_mailboxes(*keys: str) -> Callable[[RunContext], bool | str]:
    """Require seeded mailboxes to be present."""

    def predicate(ctx: RunContext) -> bool | str:
        missing = [key for key in keys if key not in ctx.mailbox_ids]
        return True if not missing else f"Fixture mailboxes missing: {', '.join(missing)}"

    return predicate


def all_of(*predicates: Callable[[RunContext], bool | str]) -> Callable[[RunContext], bool | str]:
    """Combine predicates; the first skip reason wins."""

    def predicate(ctx: RunContext) -> bool | str:
        for check in predicates:
            verdict = check(ctx)
            if verdict is not True:
                return verdict
        return True

    return predicate
