"""Email checks (RFC 8621 section 4)."""

from jmap_conformance.checks.conditions import all_of, needs_emails, needs_mailboxes
from jmap_conformance.context import RunContext
from jmap_conformance.registry import CheckDef, TestRegistry

SORT_KEYS = ("sort-test-1", "sort-test-2", "sort-test-3")


async def query_basic(ctx: RunContext) -> None:
    result = await ctx.client.call(
        "Email/query", {"accountId": ctx.account_id, "calculateTotal": True}
    )
    ctx.assert_type(result.get("ids"), "array")
    ctx.assert_type(result.get("queryState"), "string")
    ctx.assert_equal(result.get("position"), 0)
    ctx.assert_greater_or_equal(result.get("total", -1), len(ctx.email_ids))
    for email_id in result["ids"]:
        ctx.assert_id_valid(email_id)


async def query_in_mailbox(ctx: RunContext) -> None:
    result = await ctx.client.call(
        "Email/query",
        {"accountId": ctx.account_id, "filter": {"inMailbox": ctx.mailbox_ids["folderB"]}},
    )
    for key in SORT_KEYS:
        ctx.assert_includes(result["ids"], ctx.email_ids[key])
    ctx.assert_not_includes(result["ids"], ctx.email_ids["plain-simple"])


async def query_has_keyword(ctx: RunContext) -> None:
    result = await ctx.client.call(
        "Email/query",
        {"accountId": ctx.account_id, "filter": {"hasKeyword": "$flagged"}},
    )
    ctx.assert_includes(result["ids"], ctx.email_ids["sort-test-2"])
    ctx.assert_not_includes(result["ids"], ctx.email_ids["sort-test-3"])


async def query_sort_received_at(ctx: RunContext) -> None:
    result = await ctx.client.call(
        "Email/query",
        {
            "accountId": ctx.account_id,
            "filter": {"inMailbox": ctx.mailbox_ids["folderB"]},
            "sort": [{"property": "receivedAt", "isAscending": True}],
        },
    )
    expected = [ctx.email_ids[key] for key in SORT_KEYS]
    positions = [result["ids"].index(email_id) for email_id in expected]
    ctx.check(positions == sorted(positions), "Emails must be ordered by receivedAt")


async def query_sort_size(ctx: RunContext) -> None:
    result = await ctx.client.call(
        "Email/query",
        {
            "accountId": ctx.account_id,
            "filter": {"inMailbox": ctx.mailbox_ids["folderB"]},
            "sort": [{"property": "size", "isAscending": False}],
        },
    )
    # Bodies of 500, 100 and 50 bytes
    expected = [ctx.email_ids[key] for key in ("sort-test-2", "sort-test-1", "sort-test-3")]
    positions = [result["ids"].index(email_id) for email_id in expected]
    ctx.check(positions == sorted(positions), "Emails must be ordered by size")


async def get_properties(ctx: RunContext) -> None:
    result = await ctx.client.call(
        "Email/get",
        {
            "accountId": ctx.account_id,
            "ids": [ctx.email_ids["plain-simple"]],
            "properties": ["subject", "from", "keywords", "mailboxIds", "messageId"],
        },
    )
    ctx.assert_length(result["list"], 1)
    email = result["list"][0]
    ctx.assert_equal(email["subject"], "Meeting tomorrow morning")
    ctx.assert_equal(email["from"][0]["email"], "alice@example.com")
    ctx.assert_equal(email["from"][0]["name"], "Alice Sender")
    ctx.assert_deep_equal(email["keywords"], {"$seen": True})
    ctx.assert_deep_equal(email["mailboxIds"], {ctx.role_mailboxes["inbox"]: True})
    ctx.assert_deep_equal(email["messageId"], ["plain-simple-001@test"])


async def get_body_values(ctx: RunContext) -> None:
    result = await ctx.client.call(
        "Email/get",
        {
            "accountId": ctx.account_id,
            "ids": [ctx.email_ids["plain-simple"]],
            "properties": ["textBody", "bodyValues"],
            "fetchTextBodyValues": True,
        },
    )
    email = result["list"][0]
    ctx.assert_length(email["textBody"], 1)
    part_id = email["textBody"][0]["partId"]
    ctx.assert_has_property(email["bodyValues"], part_id)
    ctx.assert_string_contains(email["bodyValues"][part_id]["value"], "conference room")


async def get_attachments(ctx: RunContext) -> None:
    result = await ctx.client.call(
        "Email/get",
        {
            "accountId": ctx.account_id,
            "ids": [ctx.email_ids["html-attachment"]],
            "properties": ["hasAttachment", "attachments"],
        },
    )
    email = result["list"][0]
    ctx.assert_equal(email["hasAttachment"], True)
    ctx.assert_length(email["attachments"], 1)
    ctx.assert_equal(email["attachments"][0]["name"], "report.pdf")
    ctx.assert_equal(email["attachments"][0]["type"], "application/pdf")


async def multi_mailbox_membership(ctx: RunContext) -> None:
    result = await ctx.client.call(
        "Email/get",
        {
            "accountId": ctx.account_id,
            "ids": [ctx.email_ids["multi-mailbox"]],
            "properties": ["mailboxIds"],
        },
    )
    mailbox_ids = result["list"][0]["mailboxIds"]
    ctx.assert_deep_equal(
        mailbox_ids,
        {ctx.role_mailboxes["inbox"]: True, ctx.mailbox_ids["folderA"]: True},
    )


async def set_update_keywords(ctx: RunContext) -> None:
    email_id = ctx.email_ids["plain-simple"]
    result = await ctx.client.call(
        "Email/set",
        {"accountId": ctx.account_id, "update": {email_id: {"keywords/$flagged": True}}},
    )
    ctx.assert_has_property(result.get("updated") or {}, email_id)
    try:
        got = await ctx.client.call(
            "Email/get",
            {"accountId": ctx.account_id, "ids": [email_id], "properties": ["keywords"]},
        )
        ctx.assert_deep_equal(got["list"][0]["keywords"], {"$seen": True, "$flagged": True})
    finally:
        await ctx.client.call(
            "Email/set",
            {"accountId": ctx.account_id, "update": {email_id: {"keywords/$flagged": None}}},
        )


IMPORT_MESSAGE = "\r\n".join(
    [
        "From: import-test@example.com",
        "To: testuser@example.com",
        "Subject: Import test message",
        "Date: Thu, 01 Jan 2026 12:00:00 +0000",
        "Message-ID: <import-test-001@test>",
        "MIME-Version: 1.0",
        "Content-Type: text/plain; charset=UTF-8",
        "",
        "This is an imported message.",
    ]
)


async def import_valid_message(ctx: RunContext) -> None:
    upload = await ctx.client.upload(IMPORT_MESSAGE.encode(), "message/rfc5322")
    result = await ctx.client.call(
        "Email/import",
        {
            "accountId": ctx.account_id,
            "emails": {
                "imp1": {
                    "blobId": upload["blobId"],
                    "mailboxIds": {ctx.role_mailboxes["inbox"]: True},
                    "keywords": {"$seen": True},
                    "receivedAt": "2026-01-01T12:00:00Z",
                }
            },
        },
    )
    created = result.get("created") or {}
    ctx.assert_has_property(created, "imp1", f"Import failed: {result.get('notCreated')}")
    imported = created["imp1"]
    try:
        ctx.assert_id_valid(imported.get("id"))
        ctx.assert_truthy(imported.get("blobId"), "Imported email must have a blobId")
        ctx.assert_type(imported.get("size"), "number")
        got = await ctx.client.call(
            "Email/get",
            {"accountId": ctx.account_id, "ids": [imported["id"]], "properties": ["subject"]},
        )
        ctx.assert_length(got["list"], 1)
        ctx.assert_equal(got["list"][0]["subject"], "Import test message")
    finally:
        if imported.get("id"):
            await ctx.client.call(
                "Email/set", {"accountId": ctx.account_id, "destroy": [imported["id"]]}
            )


async def changes_no_changes(ctx: RunContext) -> None:
    got = await ctx.client.call("Email/get", {"accountId": ctx.account_id, "ids": []})
    state = got["state"]
    result = await ctx.client.call(
        "Email/changes", {"accountId": ctx.account_id, "sinceState": state}
    )
    ctx.assert_equal(result.get("oldState"), state)
    for key in ("created", "updated", "destroyed"):
        ctx.assert_type(result.get(key), "array", f"{key} must be an array")
        ctx.assert_length(result[key], 0, f"Expected no {key} ids")


def register(registry: TestRegistry) -> None:
    folder_b = all_of(needs_mailboxes("folderB"), needs_emails(*SORT_KEYS))
    registry.define(
        rfc="RFC8621",
        section="4.4",
        category="email",
        checks=[
            CheckDef(id="query-basic", name="Email/query returns message ids", fn=query_basic),
            CheckDef(
                id="query-in-mailbox",
                name="Email/query filters by inMailbox",
                fn=query_in_mailbox,
                section="4.4.1",
                run_if=all_of(folder_b, needs_emails("plain-simple")),
            ),
            CheckDef(
                id="query-has-keyword",
                name="Email/query filters by hasKeyword",
                fn=query_has_keyword,
                section="4.4.1",
                run_if=needs_emails("sort-test-2", "sort-test-3"),
            ),
            CheckDef(
                id="query-sort-received-at",
                name="Email/query sorts by receivedAt",
                fn=query_sort_received_at,
                section="4.4.2",
                run_if=folder_b,
            ),
            CheckDef(
                id="query-sort-size",
                name="Email/query sorts by size descending",
                fn=query_sort_size,
                section="4.4.2",
                required=False,
                run_if=folder_b,
            ),
        ],
    )
    registry.define(
        rfc="RFC8621",
        section="4.2",
        category="email",
        checks=[
            CheckDef(
                id="get-properties",
                name="Email/get returns parsed header properties",
                fn=get_properties,
                run_if=needs_emails("plain-simple"),
            ),
            CheckDef(
                id="get-body-values",
                name="Email/get fetches text body values",
                fn=get_body_values,
                run_if=needs_emails("plain-simple"),
            ),
            CheckDef(
                id="get-attachments",
                name="Email/get lists attachments",
                fn=get_attachments,
                run_if=needs_emails("html-attachment"),
            ),
            CheckDef(
                id="multi-mailbox-membership",
                name="Email imported into two mailboxes reports both",
                fn=multi_mailbox_membership,
                section="4.1.1",
                run_if=all_of(needs_emails("multi-mailbox"), needs_mailboxes("folderA")),
            ),
        ],
    )
    registry.define(
        rfc="RFC8621",
        section="4.6",
        category="email",
        checks=[
            CheckDef(
                id="set-update-keywords",
                name="Email/set patches a keyword",
                fn=set_update_keywords,
                run_if=needs_emails("plain-simple"),
            ),
        ],
    )
    registry.define(
        rfc="RFC8621",
        section="4.8",
        category="email",
        checks=[
            CheckDef(
                id="import-valid-message",
                name="Email/import imports a valid RFC 5322 message",
                fn=import_valid_message,
            ),
        ],
    )
    registry.define(
        rfc="RFC8621",
        section="4.3",
        category="email",
        checks=[
            CheckDef(
                id="changes-no-changes",
                name="Email/changes from the current state is empty",
                fn=changes_no_changes,
            ),
        ],
    )
