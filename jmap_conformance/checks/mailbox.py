"""Mailbox checks (RFC 8621 section 2)."""

from jmap_conformance.checks.conditions import needs_mailboxes
from jmap_conformance.context import RunContext
from jmap_conformance.registry import CheckDef, TestRegistry

ROLE_MAILBOX_PROPERTIES = (
    "id",
    "name",
    "parentId",
    "role",
    "sortOrder",
    "totalEmails",
    "unreadEmails",
    "totalThreads",
    "unreadThreads",
    "myRights",
    "isSubscribed",
)


async def get_all(ctx: RunContext) -> None:
    result = await ctx.client.call("Mailbox/get", {"accountId": ctx.account_id, "ids": None})
    ids = [mailbox["id"] for mailbox in result["list"]]
    for key in ("folderA", "folderB", "child1", "child2"):
        ctx.assert_includes(ids, ctx.mailbox_ids[key], f"Mailbox {key} missing from list")
    roles = [mailbox.get("role") for mailbox in result["list"]]
    ctx.assert_includes(roles, "inbox")
    ctx.assert_type(result.get("state"), "string")
    ctx.client.update_state("Mailbox", result["state"])


async def get_by_ids(ctx: RunContext) -> None:
    result = await ctx.client.call(
        "Mailbox/get", {"accountId": ctx.account_id, "ids": [ctx.mailbox_ids["folderA"]]}
    )
    ctx.assert_length(result["list"], 1)
    mailbox = result["list"][0]
    ctx.assert_equal(mailbox["id"], ctx.mailbox_ids["folderA"])
    ctx.assert_equal(mailbox["name"], "Test Folder A")
    ctx.assert_equal(mailbox.get("parentId"), None)


async def get_not_found(ctx: RunContext) -> None:
    missing = "nonexistent-mailbox-id-xyz"
    result = await ctx.client.call(
        "Mailbox/get", {"accountId": ctx.account_id, "ids": [missing]}
    )
    ctx.assert_length(result["list"], 0)
    ctx.assert_includes(result.get("notFound") or [], missing)


async def get_properties(ctx: RunContext) -> None:
    result = await ctx.client.call(
        "Mailbox/get",
        {
            "accountId": ctx.account_id,
            "ids": [ctx.mailbox_ids["child1"]],
            "properties": ["name", "parentId"],
        },
    )
    mailbox = result["list"][0]
    ctx.assert_deep_equal(sorted(mailbox), ["id", "name", "parentId"])
    ctx.assert_equal(mailbox["parentId"], ctx.mailbox_ids["folderA"])


async def role_mailbox_properties(ctx: RunContext) -> None:
    result = await ctx.client.call(
        "Mailbox/get",
        {"accountId": ctx.account_id, "ids": [ctx.role_mailboxes["inbox"]]},
    )
    inbox = result["list"][0]
    for name in ROLE_MAILBOX_PROPERTIES:
        ctx.assert_has_property(inbox, name)
    ctx.assert_type(inbox["myRights"], "object")
    ctx.assert_type(inbox["myRights"].get("mayReadItems"), "boolean")


async def query_by_parent(ctx: RunContext) -> None:
    result = await ctx.client.call(
        "Mailbox/query",
        {
            "accountId": ctx.account_id,
            "filter": {"parentId": ctx.mailbox_ids["folderA"]},
        },
    )
    ctx.assert_length(result["ids"], 2)
    ctx.assert_includes(result["ids"], ctx.mailbox_ids["child1"])
    ctx.assert_includes(result["ids"], ctx.mailbox_ids["child2"])


async def set_create_destroy(ctx: RunContext) -> None:
    created = await ctx.client.call(
        "Mailbox/set",
        {
            "accountId": ctx.account_id,
            "create": {"tmp": {"name": "Temporary Mailbox", "parentId": None}},
        },
    )
    ctx.assert_has_property(created.get("created") or {}, "tmp")
    mailbox_id = created["created"]["tmp"]["id"]
    ctx.assert_id_valid(mailbox_id)
    ctx.assert_not_equal(created.get("oldState"), created.get("newState"))

    destroyed = await ctx.client.call(
        "Mailbox/set", {"accountId": ctx.account_id, "destroy": [mailbox_id]}
    )
    ctx.assert_includes(destroyed.get("destroyed") or [], mailbox_id)


async def set_destroy_with_children(ctx: RunContext) -> None:
    result = await ctx.client.call(
        "Mailbox/set",
        {"accountId": ctx.account_id, "destroy": [ctx.mailbox_ids["folderA"]]},
    )
    not_destroyed = result.get("notDestroyed") or {}
    ctx.assert_has_property(not_destroyed, ctx.mailbox_ids["folderA"])
    ctx.assert_equal(
        not_destroyed[ctx.mailbox_ids["folderA"]].get("type"), "mailboxHasChild"
    )


async def changes_no_changes(ctx: RunContext) -> None:
    got = await ctx.client.call("Mailbox/get", {"accountId": ctx.account_id, "ids": []})
    state = got["state"]
    result = await ctx.client.call(
        "Mailbox/changes", {"accountId": ctx.account_id, "sinceState": state}
    )
    ctx.assert_equal(result.get("oldState"), state)
    ctx.assert_truthy(result.get("newState"), "newState must be set")
    for key in ("created", "updated", "destroyed"):
        ctx.assert_type(result.get(key), "array", f"{key} must be an array")
        ctx.assert_length(result[key], 0, f"Expected no {key} ids")
    ctx.assert_equal(result.get("hasMoreChanges"), False)

def register(registry: TestRegistry) -> None:
    fixtures = needs_mailboxes("folderA", "folderB", "child1", "child2")
    registry.define(
        rfc="RFC8621",
        section="2.1",
        category="mailbox",
        checks=[
            CheckDef(
                id="get-all",
                name="Mailbox/get with null ids returns all mailboxes",
                fn=get_all,
                run_if=fixtures,
            ),
            CheckDef(
                id="get-by-ids",
                name="Mailbox/get returns requested mailboxes",
                fn=get_by_ids,
                run_if=fixtures,
            ),
            CheckDef(
                id="get-not-found",
                name="Mailbox/get reports unknown ids in notFound",
                fn=get_not_found,
            ),
            CheckDef(
                id="get-properties",
                name="Mailbox/get honours the properties argument",
                fn=get_properties,
                run_if=fixtures,
            ),
            CheckDef(
                id="role-mailbox-properties",
                name="Inbox exposes all standard Mailbox properties",
                fn=role_mailbox_properties,
                section="2",
            ),
        ],
    )
    registry.define(
        rfc="RFC8621",
        section="2.2",
        category="mailbox",
        checks=[
            CheckDef(
                id="changes-no-changes",
                name="Mailbox/changes from the current state is empty",
                fn=changes_no_changes,
            ),
        ],
    )
    registry.define(
        rfc="RFC8621",
        section="2.3",
        category="mailbox",
        checks=[
            CheckDef(
                id="query-by-parent",
                name="Mailbox/query filters by parentId",
                fn=query_by_parent,
                run_if=fixtures,
            ),
        ],
    )
    registry.define(
        rfc="RFC8621",
        section="2.5",
        category="mailbox",
        checks=[
            CheckDef(
                id="set-create-destroy",
                name="Mailbox/set creates and destroys a mailbox",
                fn=set_create_destroy,
            ),
            CheckDef(
                id="set-destroy-with-children",
                name="Mailbox/set refuses to destroy a mailbox with children",
                fn=set_destroy_with_children,
                run_if=fixtures,
            ),
        ],
    )
