"""SearchSnippet checks (RFC 8621 section 5)."""

from typing import Any

from jmap_conformance.checks.conditions import needs_emails
from jmap_conformance.context import RunContext
from jmap_conformance.registry import CheckDef, TestRegistry


async def query_text(ctx: RunContext, text: str) -> list[str]:
    result = await ctx.client.call(
        "Email/query", {"accountId": ctx.account_id, "filter": {"text": text}}
    )
    return result.get("ids") or []


async def get_snippets(ctx: RunContext, email_ids: list[str], text: str) -> dict[str, Any]:
    return await ctx.client.call(
        "SearchSnippet/get",
        {"accountId": ctx.account_id, "emailIds": email_ids, "filter": {"text": text}},
    )


def snippet_for(snippets: list[dict[str, Any]], email_id: str) -> dict[str, Any] | None:
    return next((s for s in snippets if s.get("emailId") == email_id), None)


async def snippet_body_match(ctx: RunContext) -> None:
    email_ids = await query_text(ctx, "xylophone")
    ctx.assert_greater_than(len(email_ids), 0)

    result = await get_snippets(ctx, email_ids, "xylophone")
    ctx.assert_greater_than(len(result["list"]), 0)
    snippet = snippet_for(result["list"], ctx.email_ids["thread-reply-2"])
    ctx.check(snippet is not None, "Should have snippet for matching email")
    if preview := snippet.get("preview"):
        ctx.check(
            "xylophone" in preview.lower() or "<mark>" in preview,
            "Preview should highlight the match",
        )


async def snippet_subject_match(ctx: RunContext) -> None:
    email_ids = await query_text(ctx, "Financial Report")
    if not email_ids:
        return

    result = await get_snippets(ctx, email_ids, "Financial Report")
    snippet = snippet_for(result["list"], ctx.email_ids["html-attachment"])
    if snippet and (subject := snippet.get("subject")):
        ctx.check(
            "Financial" in subject or "<mark>" in subject,
            "Subject snippet should highlight match",
        )


async def snippet_null_when_no_match(ctx: RunContext) -> None:
    result = await get_snippets(ctx, [ctx.email_ids["plain-simple"]], "xylophone")
    if result["list"]:
        snippet = result["list"][0]
        ctx.assert_equal(snippet.get("subject"), None)
        ctx.assert_equal(snippet.get("preview"), None)


async def snippet_response_structure(ctx: RunContext) -> None:
    result = await get_snippets(ctx, [ctx.email_ids["plain-simple"]], "meeting")
    ctx.assert_type(result.get("accountId"), "string")
    ctx.assert_type(result.get("list"), "array")
    not_found = result.get("notFound")
    # Unlike Foo/get, an empty notFound is spelled null here
    ctx.check(
        not_found is None or (isinstance(not_found, list) and len(not_found) >= 1),
        "notFound must be null or a non-empty array",
    )


async def snippet_not_found(ctx: RunContext) -> None:
    result = await get_snippets(ctx, ["nonexistent-email-xyz"], "test")
    ctx.check(
        isinstance(result.get("notFound"), list),
        "Expected notFound to contain 'nonexistent-email-xyz', but got null "
        "(server claims all email ids were found)",
    )
    ctx.assert_includes(result["notFound"], "nonexistent-email-xyz")


async def snippet_mark_tags(ctx: RunContext) -> None:
    email_ids = await query_text(ctx, "conference")
    if not email_ids:
        return

    result = await get_snippets(ctx, email_ids, "conference")
    preview = next((s["preview"] for s in result["list"] if s.get("preview")), None)
    if preview:
        ctx.assert_string_contains(preview, "<mark>")
        ctx.assert_string_contains(preview, "</mark>")


def register(registry: TestRegistry) -> None:
    registry.define(
        rfc="RFC8621",
        section="5",
        category="search-snippet",
        checks=[
            CheckDef(
                id="snippet-body-match",
                name="SearchSnippet/get returns a snippet for a body match",
                fn=snippet_body_match,
                run_if=needs_emails("thread-reply-2"),
            ),
            CheckDef(
                id="snippet-subject-match",
                name="SearchSnippet/get returns a snippet for a subject match",
                fn=snippet_subject_match,
                run_if=needs_emails("html-attachment"),
            ),
            CheckDef(
                id="snippet-null-when-no-match",
                name="SearchSnippet/get returns null fields for a non-matching email",
                fn=snippet_null_when_no_match,
                run_if=needs_emails("plain-simple"),
            ),
            CheckDef(
                id="snippet-response-structure",
                name="SearchSnippet/get response has the required properties",
                fn=snippet_response_structure,
                run_if=needs_emails("plain-simple"),
            ),
            CheckDef(
                id="snippet-not-found",
                name="SearchSnippet/get reports unknown email ids in notFound",
                fn=snippet_not_found,
            ),
            CheckDef(
                id="snippet-mark-tags",
                name="SearchSnippet/get highlights matches with mark tags",
                fn=snippet_mark_tags,
                required=False,
            ),
        ],
    )
