"""Populate the account with the deterministic fixture set."""

import itertools
import logging
from collections.abc import Sequence
from datetime import datetime, timezone

from jmap_conformance.context import RunContext
from jmap_conformance.errors import MethodError, TransportError
from jmap_conformance.lifecycle.messages import (
    JPEG_BYTES,
    PDF_BYTES,
    FixtureMessage,
    build_fixture_messages,
    utc_date,
)
from jmap_conformance.models.session import SUBMISSION_CAPABILITY

log = logging.getLogger(__name__)

BATCH_SIZE = 5

TOP_LEVEL_MAILBOXES = {"folderA": "Test Folder A", "folderB": "Test Folder B"}
CHILD_MAILBOXES = {"child1": "Child 1", "child2": "Child 2"}


async def seed_data(ctx: RunContext) -> None:
    """Create fixture mailboxes, blobs and messages; discover identities.

    Raises:
        RuntimeError: If the account has no inbox or a mailbox cannot be created.

    """
    await create_mailboxes(ctx)
    await upload_blobs(ctx)
    await import_emails(ctx)
    await discover_identities(ctx)
    log.info(
        "Seeded: %d mailboxes, %d emails", len(ctx.mailbox_ids), len(ctx.email_ids)
    )


async def _create_mailbox_group(
    ctx: RunContext, names: dict[str, str], parent_id: str | None
) -> None:
    result = await ctx.client.call(
        "Mailbox/set",
        {
            "accountId": ctx.account_id,
            "create": {
                key: {"name": name, "parentId": parent_id}
                for key, name in names.items()
            },
        },
    )
    created = result.get("created") or {}
    for key, name in names.items():
        if key not in created:
            raise RuntimeError(
                f"Could not create mailbox {name!r}: "
                f"{(result.get('notCreated') or {}).get(key)}"
            )
        ctx.mailbox_ids[key] = created[key]["id"]
        log.info("  Created: %s (%s)", name, ctx.mailbox_ids[key])
    if new_state := result.get("newState"):
        ctx.client.update_state("Mailbox", new_state)


async def create_mailboxes(ctx: RunContext) -> None:
    await _create_mailbox_group(ctx, TOP_LEVEL_MAILBOXES, None)
    await _create_mailbox_group(ctx, CHILD_MAILBOXES, ctx.mailbox_ids["folderA"])


async def upload_blobs(ctx: RunContext) -> None:
    pdf = await ctx.client.upload(PDF_BYTES, "application/pdf")
    ctx.blob_ids["pdf"] = pdf["blobId"]
    jpeg = await ctx.client.upload(JPEG_BYTES, "image/jpeg")
    ctx.blob_ids["jpeg"] = jpeg["blobId"]
    log.info("  Uploaded %d blobs", len(ctx.blob_ids))


def resolve_mailboxes(ctx: RunContext, names: Sequence[str]) -> dict[str, bool] | None:
    """Map semantic mailbox names to ids; ``None`` if any cannot be resolved.

    ``drafts`` falls back to the inbox on servers without a drafts role.
    """
    resolved: dict[str, bool] = {}
    for name in names:
        mailbox_id = ctx.mailbox_ids.get(name) or ctx.role_mailboxes.get(name)
        if mailbox_id is None and name == "drafts":
            mailbox_id = ctx.role_mailboxes.get("inbox")
        if mailbox_id is None:
            return None
        resolved[mailbox_id] = True
    return resolved


async def import_emails(ctx: RunContext) -> None:
    if "inbox" not in ctx.role_mailboxes:
        raise RuntimeError("No inbox found")

    secondary = ctx.config.accounts.secondary
    messages = build_fixture_messages(
        datetime.now(timezone.utc),
        submission_recipient=secondary.username if secondary else None,
        sender=ctx.config.accounts.primary.username,
    )
    for batch in itertools.batched(messages, BATCH_SIZE):
        await import_batch(ctx, batch)


async def import_batch(ctx: RunContext, batch: Sequence[FixtureMessage]) -> None:
    """Upload a batch of raw messages and import them with one ``Email/import``."""
    emails = {}
    for message in batch:
        mailbox_ids = resolve_mailboxes(ctx, message.mailboxes)
        if mailbox_ids is None:
            log.warning(
                "  Skipping '%s': mailbox %s missing", message.key, list(message.mailboxes)
            )
            continue
        upload = await ctx.client.upload(message.raw, "message/rfc5322")
        emails[message.key] = {
            "blobId": upload["blobId"],
            "mailboxIds": mailbox_ids,
            "keywords": dict(message.keywords),
            "receivedAt": utc_date(message.received_at),
        }
    if not emails:
        return

    result = await ctx.client.call(
        "Email/import", {"accountId": ctx.account_id, "emails": emails}
    )
    created = result.get("created") or {}
    not_created = result.get("notCreated") or {}
    for key in emails:
        if key in created:
            ctx.email_ids[key] = created[key]["id"]
        elif key in not_created:
            error = not_created[key]
            log.warning(
                "  Failed to import '%s': %s - %s",
                key,
                error.get("type"),
                error.get("description", "no details"),
            )

    if new_state := result.get("newState"):
        ctx.client.update_state("Email", new_state)
    log.info(
        "  Imported %d/%d emails", sum(key in created for key in emails), len(batch)
    )


async def discover_identities(ctx: RunContext) -> None:
    """Record identity ids and addresses when the server supports submission."""
    if not ctx.session.has_capability(SUBMISSION_CAPABILITY):
        return

    try:
        result = await ctx.client.call(
            "Identity/get", {"accountId": ctx.account_id, "ids": None}
        )
    except (MethodError, TransportError) as exc:
        log.warning("  Could not fetch identities: %s", exc)
        return

    identities = result.get("list") or []
    ctx.identity_ids = [identity["id"] for identity in identities]
    if identities:
        ctx.identity_email = identities[0].get("email", "")
    log.info("  Discovered %d identities", len(ctx.identity_ids))

    if ctx.secondary_client is None:
        return
    try:
        secondary = await ctx.secondary_client.call(
            "Identity/get", {"accountId": ctx.secondary_client.account_id, "ids": None}
        )
    except (MethodError, TransportError) as exc:
        log.warning("  Could not fetch secondary identities: %s", exc)
        return
    if secondary_list := secondary.get("list"):
        ctx.secondary_email = secondary_list[0].get("email", "")
