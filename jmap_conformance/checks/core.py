"""Core protocol checks (RFC 8620 sections 2 and 3)."""

import json
from typing import Any

from jmap_conformance.context import RunContext
from jmap_conformance.models.session import CORE_CAPABILITY, MAIL_CAPABILITY
from jmap_conformance.registry import CheckDef, TestRegistry

CORE_LIMITS = (
    "maxSizeUpload",
    "maxConcurrentUpload",
    "maxSizeRequest",
    "maxConcurrentRequests",
    "maxCallsInRequest",
    "maxObjectsInGet",
    "maxObjectsInSet",
)


async def session_core_capability(ctx: RunContext) -> None:
    core = ctx.session.capabilities[CORE_CAPABILITY]
    for limit in CORE_LIMITS:
        ctx.assert_has_property(core, limit)
        ctx.assert_type(core[limit], "number", f"{limit} must be a number")
        ctx.assert_greater_than(core[limit], 0, f"{limit} must be positive")
    ctx.assert_type(core.get("collationAlgorithms"), "array")


async def session_url_templates(ctx: RunContext) -> None:
    session = ctx.session
    for variable in ("{accountId}", "{blobId}", "{type}", "{name}"):
        ctx.assert_string_contains(session.download_url, variable)
    ctx.assert_string_contains(session.upload_url, "{accountId}")
    for variable in ("{types}", "{closeafter}", "{ping}"):
        ctx.assert_string_contains(session.event_source_url, variable)


async def session_primary_account(ctx: RunContext) -> None:
    account_id = ctx.session.primary_accounts.get(MAIL_CAPABILITY)
    ctx.assert_id_valid(account_id)
    ctx.assert_includes(list(ctx.session.accounts), account_id)
    account = ctx.session.accounts[account_id]
    ctx.assert_has_property(account.account_capabilities, MAIL_CAPABILITY)


async def echo_basic(ctx: RunContext) -> None:
    result = await ctx.client.call("Core/echo", {"hello": "world", "number": 42})
    ctx.assert_equal(result.get("hello"), "world")
    ctx.assert_equal(result.get("number"), 42)


async def echo_empty(ctx: RunContext) -> None:
    result = await ctx.client.call("Core/echo", {})
    ctx.assert_deep_equal(result, {})


async def echo_nested(ctx: RunContext) -> None:
    args = {
        "string": "test",
        "number": 42,
        "bool": True,
        "null": None,
        "array": [1, "two", False],
        "object": {"nested": {"deep": "value"}},
    }
    result = await ctx.client.call("Core/echo", args)
    ctx.assert_deep_equal(result, args)


def _first_response(ctx: RunContext, envelope: dict[str, Any]) -> tuple[str, Any]:
    responses = envelope.get("methodResponses") or []
    ctx.check(bool(responses), "Response contains no methodResponses")
    name, args, *_ = responses[0]
    return name, args


async def error_unknown_method(ctx: RunContext) -> None:
    envelope = await ctx.client.raw_request(
        [CORE_CAPABILITY], [["Fake/nonexistent", {}, "c0"]]
    )
    name, args = _first_response(ctx, envelope)
    ctx.assert_equal(name, "error")
    ctx.assert_equal(args.get("type"), "unknownMethod")


async def error_invalid_arguments(ctx: RunContext) -> None:
    envelope = await ctx.client.raw_request(
        ctx.client.default_using(),
        [["Mailbox/get", {"accountId": ctx.account_id, "ids": "not-an-array"}, "c0"]],
    )
    name, args = _first_response(ctx, envelope)
    ctx.assert_equal(name, "error")
    ctx.assert_equal(args.get("type"), "invalidArguments")


async def error_account_not_found(ctx: RunContext) -> None:
    envelope = await ctx.client.raw_request(
        ctx.client.default_using(),
        [["Mailbox/get", {"accountId": "nonexistent-account-id-xyz"}, "c0"]],
    )
    name, args = _first_response(ctx, envelope)
    ctx.assert_equal(name, "error")
    ctx.assert_equal(args.get("type"), "accountNotFound")


async def error_unknown_capability(ctx: RunContext) -> None:
    body = json.dumps(
        {
            "using": [CORE_CAPABILITY, "urn:example:nonexistent"],
            "methodCalls": [["Core/echo", {}, "c0"]],
        }
    )
    response = await ctx.client.raw_post(body)
    ctx.assert_equal(response.status, 400)
    problem = json.loads(response.body)
    ctx.assert_equal(problem.get("type"), "urn:ietf:params:jmap:error:unknownCapability")


async def error_not_json(ctx: RunContext) -> None:
    response = await ctx.client.raw_post("this is not json")
    ctx.assert_equal(response.status, 400)
    problem = json.loads(response.body)
    ctx.assert_equal(problem.get("type"), "urn:ietf:params:jmap:error:notJSON")


async def result_reference(ctx: RunContext) -> None:
    envelope = await ctx.client.raw_request(
        ctx.client.default_using(),
        [
            ["Mailbox/query", {"accountId": ctx.account_id}, "q"],
            [
                "Mailbox/get",
                {
                    "accountId": ctx.account_id,
                    "#ids": ctx.client.ref("q", "Mailbox/query", "/ids"),
                    "properties": ["name"],
                },
                "g",
            ],
        ],
    )
    responses = envelope.get("methodResponses") or []
    ctx.assert_length(responses, 2)
    (query_name, query, _), (get_name, got, _) = responses
    ctx.assert_equal(query_name, "Mailbox/query")
    ctx.assert_equal(get_name, "Mailbox/get")
    ctx.assert_deep_equal([mailbox["id"] for mailbox in got["list"]], query["ids"])


def register(registry: TestRegistry) -> None:
    registry.define(
        rfc="RFC8620",
        section="2",
        category="core",
        checks=[
            CheckDef(
                id="session-core-capability",
                name="Session advertises core capability limits",
                fn=session_core_capability,
            ),
            CheckDef(
                id="session-url-templates",
                name="Session URL templates contain required variables",
                fn=session_url_templates,
            ),
            CheckDef(
                id="session-primary-account",
                name="Primary mail account is listed in accounts",
                fn=session_primary_account,
            ),
        ],
    )
    registry.define(
        rfc="RFC8620",
        section="4",
        category="core",
        checks=[
            CheckDef(id="echo-basic", name="Core/echo returns same arguments", fn=echo_basic),
            CheckDef(id="echo-empty", name="Core/echo with empty arguments", fn=echo_empty),
            CheckDef(
                id="echo-nested",
                name="Core/echo with nested complex arguments",
                fn=echo_nested,
            ),
        ],
    )
    registry.define(
        rfc="RFC8620",
        section="3.6",
        category="core",
        checks=[
            CheckDef(
                id="error-unknown-method",
                name="Server returns unknownMethod for nonexistent method",
                fn=error_unknown_method,
                section="3.6.2",
            ),
            CheckDef(
                id="error-invalid-arguments",
                name="Server returns invalidArguments for wrong argument types",
                fn=error_invalid_arguments,
                section="3.6.2",
            ),
            CheckDef(
                id="error-account-not-found",
                name="Server returns accountNotFound for fake account id",
                fn=error_account_not_found,
                section="3.6.2",
            ),
            CheckDef(
                id="error-unknown-capability",
                name="Request using an unknown capability is rejected",
                fn=error_unknown_capability,
                section="3.6.1",
            ),
            CheckDef(
                id="error-not-json",
                name="Request body that is not JSON is rejected",
                fn=error_not_json,
                section="3.6.1",
            ),
        ],
    )
    registry.define(
        rfc="RFC8620",
        section="3.7",
        category="core",
        checks=[
            CheckDef(
                id="result-reference",
                name="Result references resolve to a previous call's output",
                fn=result_reference,
            ),
        ],
    )
