"""Bring the account under test to an empty baseline."""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from jmap_conformance.context import RunContext
from jmap_conformance.errors import MethodError, PreconditionError, TransportError

log = logging.getLogger(__name__)

PAGE_SIZE = 50


@dataclass(frozen=True, kw_only=True)
class MailboxNode:
    """The parts of a mailbox the destroy ordering needs."""

    id: str
    name: str
    parent_id: str | None = None
    role: str | None = None

    @classmethod
    def from_jmap(cls, data: Mapping[str, Any]) -> "MailboxNode":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            parent_id=data.get("parentId"),
            role=data.get("role"),
        )


def destroy_order(nodes: Sequence[MailboxNode]) -> list[MailboxNode]:
    """Order mailboxes so every child comes before its parent.

    Repeatedly takes the nodes that are not the parent of any node still
    remaining. A cycle would leave no such node; the remainder is then
    appended unordered.
    """
    result: list[MailboxNode] = []
    remaining = list(nodes)

    while remaining:
        parent_ids = {node.parent_id for node in remaining}
        leaves = [node for node in remaining if node.id not in parent_ids]
        if not leaves:
            result.extend(remaining)
            break
        result.extend(leaves)
        remaining = [node for node in remaining if node.id in parent_ids]

    return result


async def destroy_all_emails(ctx: RunContext) -> int:
    """Query and destroy messages page by page; return how many were destroyed."""
    destroyed = 0
    while True:
        query = await ctx.client.call(
            "Email/query", {"accountId": ctx.account_id, "limit": PAGE_SIZE}
        )
        ids: list[str] = query.get("ids") or []
        if not ids:
            break

        result = await ctx.client.call(
            "Email/set", {"accountId": ctx.account_id, "destroy": ids}
        )
        if not result.get("destroyed"):
            raise RuntimeError(
                f"Server destroyed none of {len(ids)} emails: {result.get('notDestroyed')}"
            )
        count = len(result["destroyed"])
        destroyed += count
        log.info("  Deleted %d emails...", count)

        if len(ids) < PAGE_SIZE:
            break
    return destroyed


async def destroy_mailbox(ctx: RunContext, mailbox_id: str) -> None:
    """Destroy one mailbox together with any messages only it contains.

    Raises:
        MethodError: If the call itself fails.
        TransportError: On transport failures.
        RuntimeError: If the server lists the mailbox under ``notDestroyed``.

    """
    result = await ctx.client.call(
        "Mailbox/set",
        {
            "accountId": ctx.account_id,
            "destroy": [mailbox_id],
            "onDestroyRemoveEmails": True,
        },
    )
    not_destroyed = result.get("notDestroyed") or {}
    if mailbox_id in not_destroyed:
        error = not_destroyed[mailbox_id]
        raise RuntimeError(f"{error.get('type')}: {error.get('description', '')}")


async def clean_account(ctx: RunContext, force: bool) -> None:
    """Ensure the account holds no messages and no role-less mailboxes.

    Role mailboxes found along the way are recorded in ``ctx.role_mailboxes``.

    Raises:
        PreconditionError: If the account holds data and ``force`` is false.

    """
    mailboxes_result = await ctx.client.call(
        "Mailbox/get", {"accountId": ctx.account_id, "ids": None}
    )
    mailboxes = [MailboxNode.from_jmap(mb) for mb in mailboxes_result.get("list", [])]

    for mailbox in mailboxes:
        if mailbox.role:
            ctx.role_mailboxes[mailbox.role] = mailbox.id

    custom = [mailbox for mailbox in mailboxes if mailbox.role is None]

    count_result = await ctx.client.call(
        "Email/query",
        {"accountId": ctx.account_id, "limit": 1, "calculateTotal": True},
    )
    email_count = count_result.get("total") or 0

    if not custom and email_count == 0:
        log.info("Account is clean.")
        return

    if not force:
        raise PreconditionError(
            f"Account is not empty ({email_count} emails, {len(custom)} custom "
            "mailboxes). Use -f to force-delete existing data."
        )

    log.info(
        "Force-cleaning: %d emails, %d custom mailboxes", email_count, len(custom)
    )
    await destroy_all_emails(ctx)

    for mailbox in destroy_order(custom):
        try:
            await destroy_mailbox(ctx, mailbox.id)
        except (MethodError, TransportError, RuntimeError) as exc:
            log.warning("  Could not delete mailbox %s: %s", mailbox.name, exc)
        else:
            log.info("  Deleted mailbox: %s", mailbox.name)
