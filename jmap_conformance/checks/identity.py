"""Identity checks (RFC 8621 section 6)."""

from jmap_conformance.checks.conditions import has_submission
from jmap_conformance.context import RunContext
from jmap_conformance.registry import CheckDef, TestRegistry


async def get_all(ctx: RunContext) -> None:
    result = await ctx.client.call("Identity/get", {"accountId": ctx.account_id, "ids": None})
    ctx.assert_greater_than(len(result["list"]), 0, "Account must have an identity")
    for identity in result["list"]:
        ctx.assert_id_valid(identity.get("id"))
        ctx.assert_type(identity.get("email"), "string")
        ctx.assert_type(identity.get("mayDelete"), "boolean")
    ctx.client.update_state("Identity", result["state"])


async def get_not_found(ctx: RunContext) -> None:
    missing = "nonexistent-identity-xyz"
    result = await ctx.client.call("Identity/get", {"accountId": ctx.account_id, "ids": [missing]})
    ctx.assert_includes(result.get("notFound") or [], missing)


def register(registry: TestRegistry) -> None:
    registry.define(
        rfc="RFC8621",
        section="6.1",
        category="identity",
        checks=[
            CheckDef(
                id="get-all",
                name="Identity/get returns the account's identities",
                fn=get_all,
                run_if=has_submission,
            ),
            CheckDef(
                id="get-not-found",
                name="Identity/get reports unknown ids in notFound",
                fn=get_not_found,
                run_if=has_submission,
            ),
        ],
    )
