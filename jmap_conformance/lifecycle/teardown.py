"""Best-effort removal of everything the run created."""

import logging

from jmap_conformance.context import RunContext
from jmap_conformance.errors import MethodError, TransportError
from jmap_conformance.lifecycle.clean import destroy_all_emails, destroy_mailbox

log = logging.getLogger(__name__)

# Children before their parents
TEARDOWN_ORDER = ("child1", "child2", "folderA", "folderB")


async def teardown(ctx: RunContext) -> None:
    """Destroy all messages, then the fixture mailboxes. Never raises."""
    try:
        destroyed = await destroy_all_emails(ctx)
    except (MethodError, TransportError, RuntimeError) as exc:
        log.warning("  Could not destroy emails: %s", exc)
    else:
        if destroyed:
            log.info("  Destroyed %d emails", destroyed)

    removed = 0
    for key in TEARDOWN_ORDER:
        mailbox_id = ctx.mailbox_ids.get(key)
        if mailbox_id is None:
            continue
        try:
            await destroy_mailbox(ctx, mailbox_id)
        except (MethodError, TransportError, RuntimeError) as exc:
            log.debug("  Mailbox %s not destroyed: %s", key, exc)
        else:
            removed += 1

    if removed:
        log.info("  Destroyed %d mailboxes", removed)
    log.info("  Teardown complete.")
