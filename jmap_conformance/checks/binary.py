"""Binary data checks (RFC 8620 section 6)."""

from jmap_conformance.checks.conditions import has_cross_account, needs_emails
from jmap_conformance.context import RunContext
from jmap_conformance.registry import CheckDef, TestRegistry

CONTENT = b"Download test content 12345"


async def upload_basic(ctx: RunContext) -> None:
    result = await ctx.client.upload(CONTENT, "text/plain")
    ctx.assert_id_valid(result.get("blobId"))
    ctx.assert_equal(result.get("size"), len(CONTENT))
    ctx.assert_equal(result.get("accountId"), ctx.account_id)
    ctx.assert_string_contains(result.get("type", ""), "text/plain")


async def download_uploaded_blob(ctx: RunContext) -> None:
    upload = await ctx.client.upload(CONTENT, "text/plain")
    response = await ctx.client.download(upload["blobId"], "text/plain", "test.txt")
    ctx.assert_equal(response.status, 200)
    ctx.check(response.body == CONTENT, "Downloaded bytes differ from upload")


async def download_email_blob(ctx: RunContext) -> None:
    result = await ctx.client.call(
        "Email/get",
        {
            "accountId": ctx.account_id,
            "ids": [ctx.email_ids["plain-simple"]],
            "properties": ["blobId"],
        },
    )
    blob_id = result["list"][0]["blobId"]
    response = await ctx.client.download(blob_id, "message/rfc5322", "email.eml")
    ctx.assert_equal(response.status, 200)
    ctx.assert_string_contains(response.body.decode(errors="replace"), "Meeting tomorrow")


async def download_nonexistent_blob(ctx: RunContext) -> None:
    response = await ctx.client.download("nonexistent-blob-id-xyz")
    ctx.assert_equal(response.status, 404)


async def blob_copy(ctx: RunContext) -> None:
    upload = await ctx.client.upload(CONTENT, "text/plain")
    result = await ctx.client.call(
        "Blob/copy",
        {
            "fromAccountId": ctx.account_id,
            "accountId": ctx.cross_account_id,
            "blobIds": [upload["blobId"]],
        },
    )
    ctx.assert_equal(result.get("fromAccountId"), ctx.account_id)
    ctx.assert_equal(result.get("accountId"), ctx.cross_account_id)
    ctx.assert_has_property(result.get("copied") or {}, upload["blobId"])


def register(registry: TestRegistry) -> None:
    registry.define(
        rfc="RFC8620",
        section="6.1",
        category="binary",
        checks=[
            CheckDef(id="upload-basic", name="Upload returns blob metadata", fn=upload_basic),
            CheckDef(
                id="download-uploaded-blob",
                name="Download a previously uploaded blob returns same data",
                fn=download_uploaded_blob,
                section="6.2",
            ),
            CheckDef(
                id="download-email-blob",
                name="Download an email's blob by blobId",
                fn=download_email_blob,
                section="6.2",
                run_if=needs_emails("plain-simple"),
            ),
            CheckDef(
                id="download-nonexistent-blob",
                name="Download nonexistent blobId returns 404",
                fn=download_nonexistent_blob,
                section="6.2",
            ),
            CheckDef(
                id="blob-copy",
                name="Blob/copy copies a blob to another account",
                fn=blob_copy,
                section="6.3",
                required=False,
                run_if=has_cross_account,
            ),
        ],
    )
