"""EmailSubmission checks (RFC 8621 section 7)."""

from jmap_conformance.checks.conditions import all_of, has_submission, needs_emails
from jmap_conformance.context import RunContext
from jmap_conformance.registry import CheckDef, TestRegistry


def _has_identity(ctx: RunContext) -> bool | str:
    return True if ctx.identity_ids else "No identity discovered"


async def query_basic(ctx: RunContext) -> None:
    result = await ctx.client.call("EmailSubmission/query", {"accountId": ctx.account_id})
    ctx.assert_type(result.get("ids"), "array")
    ctx.assert_type(result.get("queryState"), "string")


async def set_create(ctx: RunContext) -> None:
    email_id = ctx.email_ids["draft-for-submission"]
    result = await ctx.client.call(
        "EmailSubmission/set",
        {
            "accountId": ctx.account_id,
            "create": {
                "sub": {
                    "identityId": ctx.identity_ids[0],
                    "emailId": email_id,
                    "envelope": {
                        "mailFrom": {"email": ctx.identity_email},
                        "rcptTo": [
                            {"email": ctx.secondary_email or ctx.config.accounts.secondary.username}
                        ],
                    },
                }
            },
        },
    )
    created = result.get("created") or {}
    ctx.assert_has_property(created, "sub", f"Submission not created: {result.get('notCreated')}")
    ctx.assert_id_valid(created["sub"].get("id"))

    got = await ctx.client.call(
        "EmailSubmission/get",
        {"accountId": ctx.account_id, "ids": [created["sub"]["id"]]},
    )
    ctx.assert_length(got["list"], 1)
    ctx.assert_equal(got["list"][0]["emailId"], email_id)


def register(registry: TestRegistry) -> None:
    registry.define(
        rfc="RFC8621",
        section="7",
        category="submission",
        checks=[
            CheckDef(
                id="query-basic",
                name="EmailSubmission/query returns ids",
                fn=query_basic,
                section="7.3",
                run_if=has_submission,
            ),
            CheckDef(
                id="set-create",
                name="EmailSubmission/set sends a draft to the secondary account",
                fn=set_create,
                section="7.5",
                run_if=all_of(
                    has_submission, _has_identity, needs_emails("draft-for-submission")
                ),
            ),
        ],
    )
