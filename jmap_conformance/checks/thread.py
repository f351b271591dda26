"""Thread checks (RFC 8621 section 3)."""

from datetime import datetime

from jmap_conformance.checks.conditions import needs_emails
from jmap_conformance.context import RunContext
from jmap_conformance.registry import CheckDef, TestRegistry

THREAD_KEYS = ("thread-starter", "thread-reply-1", "thread-reply-2")


async def _thread_ids(ctx: RunContext) -> list[str]:
    result = await ctx.client.call(
        "Email/get",
        {
            "accountId": ctx.account_id,
            "ids": [ctx.email_ids[key] for key in THREAD_KEYS],
            "properties": ["threadId"],
        },
    )
    by_id = {email["id"]: email["threadId"] for email in result["list"]}
    return [by_id[ctx.email_ids[key]] for key in THREAD_KEYS]


async def replies_share_thread(ctx: RunContext) -> None:
    thread_ids = await _thread_ids(ctx)
    ctx.assert_length(set(thread_ids), 1, "Replies must join the starter's thread")


async def get_thread_by_id(ctx: RunContext) -> None:
    thread_id = (await _thread_ids(ctx))[0]
    result = await ctx.client.call(
        "Thread/get", {"accountId": ctx.account_id, "ids": [thread_id]}
    )
    ctx.assert_length(result["list"], 1)
    thread = result["list"][0]
    ctx.assert_equal(thread["id"], thread_id)
    ctx.assert_type(thread["emailIds"], "array")
    ctx.assert_greater_or_equal(len(thread["emailIds"]), 3)
    ctx.client.update_state("Thread", result["state"])


async def thread_email_order(ctx: RunContext) -> None:
    thread_id = (await _thread_ids(ctx))[0]
    result = await ctx.client.call(
        "Thread/get", {"accountId": ctx.account_id, "ids": [thread_id]}
    )
    email_ids = result["list"][0]["emailIds"]
    emails = await ctx.client.call(
        "Email/get",
        {"accountId": ctx.account_id, "ids": email_ids, "properties": ["receivedAt"]},
    )
    received = {
        email["id"]: datetime.fromisoformat(email["receivedAt"].replace("Z", "+00:00"))
        for email in emails["list"]
    }
    dates = [received[email_id] for email_id in email_ids if email_id in received]
    ctx.check(dates == sorted(dates), "emailIds should be ordered by receivedAt")


def register(registry: TestRegistry) -> None:
    fixtures = needs_emails(*THREAD_KEYS)
    registry.define(
        rfc="RFC8621",
        section="3",
        category="thread",
        checks=[
            CheckDef(
                id="replies-share-thread",
                name="Replies are threaded with the original message",
                fn=replies_share_thread,
                run_if=fixtures,
            ),
            CheckDef(
                id="get-thread-by-id",
                name="Thread/get returns thread with emailIds",
                fn=get_thread_by_id,
                section="3.1",
                run_if=fixtures,
            ),
            CheckDef(
                id="get-thread-email-ids-order",
                name="Thread/get emailIds are ordered by receivedAt",
                fn=thread_email_order,
                section="3.1",
                run_if=fixtures,
            ),
        ],
    )
