"""Push subscription checks (RFC 8620 section 7.2).

Notifications are observed through the event relay channel: the channel URL
is handed to the server as the subscription's callback.
"""

from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from typing import Any

from jmap_conformance.checks.conditions import all_of, has_event_channel, needs_mailboxes
from jmap_conformance.context import RunContext
from jmap_conformance.errors import AssertionFailure
from jmap_conformance.events import EventChannel
from jmap_conformance.registry import CheckDef, TestRegistry

VERIFICATION_TIMEOUT = 15.0
STATE_CHANGE_TIMEOUT = 20.0


def is_verification(subscription_id: str) -> Callable[[Any], bool]:
    def predicate(event: Any) -> bool:
        return (
            isinstance(event, dict)
            and event.get("@type") == "PushVerification"
            and event.get("pushSubscriptionId") == subscription_id
        )

    return predicate


def is_state_change(account_id: str, type_name: str) -> Callable[[Any], bool]:
    def predicate(event: Any) -> bool:
        if not isinstance(event, dict) or event.get("@type") != "StateChange":
            return False
        return type_name in (event.get("changed") or {}).get(account_id, {})

    return predicate


def relay(ctx: RunContext) -> EventChannel:
    if ctx.events is None:
        raise AssertionFailure("No event relay channel available")
    return ctx.events


@asynccontextmanager
async def subscription(
    ctx: RunContext, device: str, types: list[str] | None = None
) -> AsyncGenerator[str, None]:
    """Create a push subscription pointed at the relay; destroy it on exit."""
    channel = relay(ctx)
    result = await ctx.client.call(
        "PushSubscription/set",
        {"create": {"ps": {"deviceClientId": device, "url": channel.url, "types": types}}},
    )
    created = result.get("created") or {}
    ctx.assert_has_property(
        created, "ps", f"Subscription not created: {result.get('notCreated')}"
    )
    subscription_id = created["ps"]["id"]
    try:
        yield subscription_id
    finally:
        await ctx.client.call("PushSubscription/set", {"destroy": [subscription_id]})


async def _verify(ctx: RunContext, subscription_id: str) -> None:
    event = await relay(ctx).wait_for_match(
        is_verification(subscription_id), VERIFICATION_TIMEOUT
    )
    ctx.check(event is not None, "No PushVerification received through the relay")
    ctx.assert_type(event["verificationCode"], "string")
    result = await ctx.client.call(
        "PushSubscription/set",
        {"update": {subscription_id: {"verificationCode": event["verificationCode"]}}},
    )
    ctx.assert_has_property(result.get("updated") or {}, subscription_id)


async def subscription_create(ctx: RunContext) -> None:
    async with subscription(ctx, "jmap-conformance-create") as subscription_id:
        ctx.assert_id_valid(subscription_id)
        got = await ctx.client.call("PushSubscription/get", {"ids": [subscription_id]})
        ctx.assert_length(got["list"], 1)
        ctx.assert_equal(got["list"][0]["deviceClientId"], "jmap-conformance-create")
        # The callback URL must never be returned to the client
        ctx.check("url" not in got["list"][0], "PushSubscription/get must not return url")


async def verification(ctx: RunContext) -> None:
    async with subscription(ctx, "jmap-conformance-verify") as subscription_id:
        await _verify(ctx, subscription_id)


async def state_change(ctx: RunContext) -> None:
    channel = relay(ctx)
    async with subscription(ctx, "jmap-conformance-state", ["Mailbox"]) as subscription_id:
        await _verify(ctx, subscription_id)
        channel.clear()
        await ctx.client.call(
            "Mailbox/set",
            {
                "accountId": ctx.account_id,
                "update": {ctx.mailbox_ids["folderB"]: {"sortOrder": 7}},
            },
        )
        event = await channel.wait_for_match(
            is_state_change(ctx.account_id, "Mailbox"), STATE_CHANGE_TIMEOUT
        )
        ctx.check(event is not None, "No StateChange received after Mailbox/set")


async def subscription_destroy(ctx: RunContext) -> None:
    async with subscription(ctx, "jmap-conformance-destroy") as subscription_id:
        pass
    got = await ctx.client.call("PushSubscription/get", {"ids": [subscription_id]})
    ctx.assert_includes(got.get("notFound") or [], subscription_id)


def register(registry: TestRegistry) -> None:
    registry.define(
        rfc="RFC8620",
        section="7.2",
        category="push",
        checks=[
            CheckDef(
                id="subscription-create",
                name="PushSubscription/set creates a subscription",
                fn=subscription_create,
                run_if=has_event_channel,
            ),
            CheckDef(
                id="verification",
                name="Server sends PushVerification to the callback URL",
                fn=verification,
                section="7.2.2",
                run_if=has_event_channel,
            ),
            CheckDef(
                id="state-change",
                name="Verified subscription receives StateChange",
                fn=state_change,
                section="7.1",
                required=False,
                run_if=all_of(has_event_channel, needs_mailboxes("folderB")),
            ),
            CheckDef(
                id="subscription-destroy",
                name="PushSubscription/set destroy removes subscription",
                fn=subscription_destroy,
                run_if=has_event_channel,
            ),
        ],
    )
