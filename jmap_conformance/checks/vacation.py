"""VacationResponse checks (RFC 8621 section 8).

The account holds exactly one VacationResponse, with id ``singleton``.
"""

from typing import Any

from jmap_conformance.checks.conditions import has_vacation
from jmap_conformance.context import RunContext
from jmap_conformance.registry import CheckDef, TestRegistry

SINGLETON = "singleton"
NULLABLE_STRINGS = ("fromDate", "toDate", "subject", "textBody", "htmlBody")


async def get_vacation(ctx: RunContext) -> dict[str, Any]:
    result = await ctx.client.call(
        "VacationResponse/get", {"accountId": ctx.account_id, "ids": None}
    )
    ctx.assert_length(result["list"], 1)
    return result["list"][0]


async def update_vacation(ctx: RunContext, patch: dict[str, Any]) -> dict[str, Any]:
    return await ctx.client.call(
        "VacationResponse/set",
        {"accountId": ctx.account_id, "update": {SINGLETON: patch}},
    )


async def get_singleton(ctx: RunContext) -> None:
    result = await ctx.client.call(
        "VacationResponse/get", {"accountId": ctx.account_id, "ids": [SINGLETON]}
    )
    ctx.assert_length(result["list"], 1)
    ctx.assert_equal(result["list"][0]["id"], SINGLETON)


async def get_singleton_null_ids(ctx: RunContext) -> None:
    vacation = await get_vacation(ctx)
    ctx.assert_equal(vacation["id"], SINGLETON)


async def get_singleton_properties(ctx: RunContext) -> None:
    vacation = await get_vacation(ctx)
    ctx.assert_equal(vacation["id"], SINGLETON)
    ctx.assert_type(vacation.get("isEnabled"), "boolean")
    for name in NULLABLE_STRINGS:
        value = vacation.get(name)
        ctx.check(value is None or isinstance(value, str), f"{name} must be null or string")


async def get_not_found_invalid_id(ctx: RunContext) -> None:
    result = await ctx.client.call(
        "VacationResponse/get", {"accountId": ctx.account_id, "ids": ["not-singleton"]}
    )
    ctx.assert_includes(result.get("notFound") or [], "not-singleton")


async def set_enable_vacation(ctx: RunContext) -> None:
    previous = await get_vacation(ctx)
    await update_vacation(
        ctx,
        {
            "isEnabled": True,
            "subject": "Out of Office - Test",
            "textBody": "I am currently out of the office for testing.",
        },
    )
    try:
        vacation = await get_vacation(ctx)
        ctx.assert_equal(vacation["isEnabled"], True)
        ctx.assert_equal(vacation["subject"], "Out of Office - Test")
    finally:
        await update_vacation(
            ctx,
            {
                "isEnabled": previous.get("isEnabled", False),
                "subject": previous.get("subject"),
                "textBody": previous.get("textBody"),
            },
        )


async def set_disable_vacation(ctx: RunContext) -> None:
    await update_vacation(ctx, {"isEnabled": False})
    vacation = await get_vacation(ctx)
    ctx.assert_equal(vacation["isEnabled"], False)


async def set_dates(ctx: RunContext) -> None:
    from_date = "2026-03-01T00:00:00Z"
    to_date = "2026-03-15T00:00:00Z"
    await update_vacation(ctx, {"fromDate": from_date, "toDate": to_date})
    try:
        vacation = await get_vacation(ctx)
        ctx.assert_equal(vacation["fromDate"], from_date)
        ctx.assert_equal(vacation["toDate"], to_date)
    finally:
        await update_vacation(ctx, {"fromDate": None, "toDate": None})


async def set_html_body(ctx: RunContext) -> None:
    await update_vacation(ctx, {"htmlBody": "<p>I am out of office.</p>"})
    try:
        vacation = await get_vacation(ctx)
        ctx.assert_type(vacation.get("htmlBody"), "string")
        ctx.assert_string_contains(vacation["htmlBody"], "out of office")
    finally:
        await update_vacation(ctx, {"htmlBody": None})


async def set_cannot_create(ctx: RunContext) -> None:
    result = await ctx.client.call(
        "VacationResponse/set",
        {"accountId": ctx.account_id, "create": {"newVr": {"isEnabled": False}}},
    )
    not_created = result.get("notCreated") or {}
    ctx.assert_has_property(
        not_created, "newVr", "Should not allow creating a new VacationResponse"
    )
    ctx.assert_equal(not_created["newVr"].get("type"), "singleton")


async def set_cannot_destroy(ctx: RunContext) -> None:
    result = await ctx.client.call(
        "VacationResponse/set", {"accountId": ctx.account_id, "destroy": [SINGLETON]}
    )
    not_destroyed = result.get("notDestroyed") or {}
    ctx.assert_has_property(
        not_destroyed, SINGLETON, "Should not allow destroying the VacationResponse"
    )
    ctx.assert_equal(not_destroyed[SINGLETON].get("type"), "singleton")


def register(registry: TestRegistry) -> None:
    registry.define(
        rfc="RFC8621",
        section="8.1",
        category="vacation",
        checks=[
            CheckDef(
                id="get-singleton",
                name="VacationResponse/get returns the singleton by id",
                fn=get_singleton,
                run_if=has_vacation,
            ),
            CheckDef(
                id="get-singleton-null-ids",
                name="VacationResponse/get with null ids returns the singleton",
                fn=get_singleton_null_ids,
                run_if=has_vacation,
            ),
            CheckDef(
                id="get-singleton-properties",
                name="VacationResponse has all required properties",
                fn=get_singleton_properties,
                run_if=has_vacation,
            ),
            CheckDef(
                id="get-not-found-invalid-id",
                name="VacationResponse/get reports other ids in notFound",
                fn=get_not_found_invalid_id,
                run_if=has_vacation,
            ),
        ],
    )
    registry.define(
        rfc="RFC8621",
        section="8.2",
        category="vacation",
        checks=[
            CheckDef(
                id="set-enable-vacation",
                name="VacationResponse/set enables the response",
                fn=set_enable_vacation,
                run_if=has_vacation,
            ),
            CheckDef(
                id="set-disable-vacation",
                name="VacationResponse/set disables the response",
                fn=set_disable_vacation,
                run_if=has_vacation,
            ),
            CheckDef(
                id="set-dates",
                name="VacationResponse/set stores fromDate and toDate",
                fn=set_dates,
                run_if=has_vacation,
            ),
            CheckDef(
                id="set-html-body",
                name="VacationResponse/set stores htmlBody",
                fn=set_html_body,
                run_if=has_vacation,
            ),
            CheckDef(
                id="set-cannot-create",
                name="VacationResponse/set rejects create with singleton",
                fn=set_cannot_create,
                run_if=has_vacation,
            ),
            CheckDef(
                id="set-cannot-destroy",
                name="VacationResponse/set rejects destroy with singleton",
                fn=set_cannot_destroy,
                run_if=has_vacation,
            ),
        ],
    )
