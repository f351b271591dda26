"""Deterministic RFC 5322 fixture messages."""

import base64
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

CRLF = "\r\n"

PDF_BYTES = b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n" + b" " * 100
JPEG_BYTES = bytes.fromhex("ffd8ffe000104a46494600010100000100010000ffd9")
# "테스트 이메일입니다" encoded as EUC-KR
EUC_KR_BODY = bytes.fromhex("c5d7bdbac6ae20c0ccb8dec0cfc0d4b4cfb4d9")


@dataclass(frozen=True, kw_only=True)
class FixtureMessage:
    """A message to import, addressed by semantic mailbox names."""

    key: str
    raw: bytes
    mailboxes: Sequence[str]
    received_at: datetime
    keywords: Mapping[str, bool] = field(default_factory=dict)


def rfc2822_date(value: datetime) -> str:
    """Format a date header value in UTC, e.g. ``Thu, 01 Jan 2026 00:00:00 +0000``."""
    return format_datetime(value.astimezone(timezone.utc))


def utc_date(value: datetime) -> str:
    """Format a JMAP UTCDate."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _headers(
    *,
    sender: str,
    to: str,
    subject: str,
    date: datetime,
    message_id: str,
    cc: str | None = None,
    bcc: str | None = None,
    in_reply_to: str | None = None,
    references: str | None = None,
) -> list[str]:
    lines = [f"From: {sender}", f"To: {to}"]
    if cc:
        lines.append(f"Cc: {cc}")
    if bcc:
        lines.append(f"Bcc: {bcc}")
    lines += [
        f"Subject: {subject}",
        f"Date: {rfc2822_date(date)}",
        f"Message-ID: {message_id}",
    ]
    if in_reply_to:
        lines.append(f"In-Reply-To: {in_reply_to}")
    if references:
        lines.append(f"References: {references}")
    lines.append("MIME-Version: 1.0")
    return lines


def plain_message(
    *, body: str, extra_headers: Sequence[str] = (), **headers: str | datetime | None
) -> bytes:
    """Build a single-part ``text/plain`` message."""
    lines = _headers(**headers)  # type: ignore[arg-type]
    lines += [
        "Content-Type: text/plain; charset=UTF-8",
        "Content-Transfer-Encoding: 7bit",
        *extra_headers,
        "",
        body,
    ]
    return CRLF.join(lines).encode()


def multipart_message(
    *, subtype: str, boundary: str, parts: Sequence[Sequence[str]], **headers: str | datetime
) -> bytes:
    """Build a multipart message from pre-rendered parts (header lines, blank, body)."""
    lines = _headers(**headers)  # type: ignore[arg-type]
    lines += [f'Content-Type: multipart/{subtype}; boundary="{boundary}"', ""]
    for part in parts:
        lines += [f"--{boundary}", *part]
    lines.append(f"--{boundary}--")
    return CRLF.join(lines).encode()


def _text_part(content_type: str, body: str) -> list[str]:
    return [
        f"Content-Type: {content_type}; charset=UTF-8",
        "Content-Transfer-Encoding: 7bit",
        "",
        body,
    ]


def build_fixture_messages(
    now: datetime, submission_recipient: str | None = None, sender: str = ""
) -> list[FixtureMessage]:
    """Return the fixture message set, relative to ``now``.

    Mailboxes are referenced by semantic name: role names (``inbox``,
    ``drafts``) or fixture folder names (``folderA``, ``child1``).
    """

    def days_ago(days: float) -> datetime:
        return now - timedelta(days=days)

    def hours_ago(hours: float) -> datetime:
        return now - timedelta(hours=hours)

    messages = [
        FixtureMessage(
            key="plain-simple",
            raw=plain_message(
                sender="Alice Sender <alice@example.com>",
                to="testuser@example.com",
                subject="Meeting tomorrow morning",
                date=days_ago(10),
                message_id="<plain-simple-001@test>",
                body="Let's meet tomorrow at 9am in the conference room.",
            ),
            mailboxes=["inbox"],
            keywords={"$seen": True},
            received_at=days_ago(10),
        ),
        FixtureMessage(
            key="html-attachment",
            raw=multipart_message(
                subtype="mixed",
                boundary="----=_Part_001_fixture",
                sender="Bob Jones <bob@example.org>",
                to="testuser@example.com",
                cc="charlie@example.net",
                subject="Q3 Financial Report",
                date=days_ago(9),
                message_id="<html-attach-001@test>",
                parts=[
                    _text_part(
                        "text/html",
                        "<html><body><h1>Q3 Report</h1>"
                        "<p>Please find the report attached.</p></body></html>",
                    ),
                    [
                        'Content-Type: application/pdf; name="report.pdf"',
                        'Content-Disposition: attachment; filename="report.pdf"',
                        "Content-Transfer-Encoding: base64",
                        "",
                        base64.b64encode(
                            b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog /Pages 2 0 R >>\nendobj\n"
                        ).decode(),
                    ],
                ],
            ),
            mailboxes=["inbox"],
            keywords={"$seen": True, "$flagged": True},
            received_at=days_ago(9),
        ),
        FixtureMessage(
            key="thread-starter",
            raw=plain_message(
                sender="testuser@example.com",
                to="alice@example.com",
                subject="Project Alpha Discussion",
                date=days_ago(8),
                message_id="<thread-alpha-001@test>",
                body="I'd like to discuss the Project Alpha timeline.",
            ),
            mailboxes=["folderA"],
            keywords={"$seen": True},
            received_at=days_ago(8),
        ),
        FixtureMessage(
            key="thread-reply-1",
            raw=plain_message(
                sender="Alice Sender <alice@example.com>",
                to="testuser@example.com",
                subject="Re: Project Alpha Discussion",
                date=days_ago(7),
                message_id="<thread-alpha-002@test>",
                in_reply_to="<thread-alpha-001@test>",
                references="<thread-alpha-001@test>",
                body="Sure, let's discuss. How about Thursday?",
            ),
            mailboxes=["inbox"],
            received_at=days_ago(7),
        ),
        FixtureMessage(
            key="thread-reply-2",
            raw=plain_message(
                sender="Bob Jones <bob@example.org>",
                to="testuser@example.com, alice@example.com",
                subject="Re: Project Alpha Discussion",
                date=days_ago(6),
                message_id="<thread-alpha-003@test>",
                in_reply_to="<thread-alpha-002@test>",
                references="<thread-alpha-001@test> <thread-alpha-002@test>",
                body="Thursday works for me. I'll bring the xylophone presentation materials.",
            ),
            mailboxes=["inbox"],
            keywords={"$answered": True},
            received_at=days_ago(6),
        ),
        FixtureMessage(
            key="multi-mailbox",
            raw=plain_message(
                sender="David Cross <david@example.com>",
                to="testuser@example.com",
                subject="Cross-filed document",
                date=days_ago(5),
                message_id="<multi-mb-001@test>",
                body="This document should appear in multiple folders.",
            ),
            mailboxes=["inbox", "folderA"],
            keywords={"$seen": True},
            received_at=days_ago(5),
        ),
        FixtureMessage(
            key="large-email",
            raw=plain_message(
                sender="Eve Large <eve@example.com>",
                to="testuser@example.com",
                subject="Detailed analysis with data",
                date=days_ago(4),
                message_id="<large-001@test>",
                body="Start of analysis. "
                + "This is a detailed paragraph of analysis text that covers "
                "various topics. " * 700
                + "End of analysis.",
            ),
            mailboxes=["folderB"],
            received_at=days_ago(4),
        ),
        FixtureMessage(
            key="html-only",
            raw=multipart_message(
                subtype="alternative",
                boundary="----=_Alt_001_fixture",
                sender="Frank Newsletter <frank@example.com>",
                to="testuser@example.com",
                subject="Newsletter: Weekly Digest",
                date=days_ago(3),
                message_id="<html-only-001@test>",
                parts=[
                    _text_part("text/plain", "Weekly Digest - plain text version"),
                    _text_part(
                        "text/html",
                        "<html><body><h1>Weekly Digest</h1><p>Here is your "
                        '<b>weekly digest</b> of news.</p><img src="cid:image1"/>'
                        "</body></html>",
                    ),
                ],
            ),
            mailboxes=["inbox"],
            keywords={"$seen": True},
            received_at=days_ago(3),
        ),
        FixtureMessage(
            key="no-subject",
            raw=plain_message(
                sender="Grace Minimal <grace@example.com>",
                to="testuser@example.com",
                subject="",
                date=days_ago(2),
                message_id="<no-subj-001@test>",
                body="This message has no subject.",
            ),
            mailboxes=["inbox"],
            keywords={"$seen": True},
            received_at=days_ago(2),
        ),
        FixtureMessage(
            key="custom-keywords",
            raw=plain_message(
                sender="Henry Tags <henry@example.com>",
                to="testuser@example.com",
                subject="Tagged message",
                date=days_ago(1),
                message_id="<custom-kw-001@test>",
                body="This message has custom keywords applied.",
            ),
            mailboxes=["inbox"],
            keywords={"$seen": True, "$forwarded": True, "custom_label": True},
            received_at=days_ago(1),
        ),
        FixtureMessage(
            key="very-old",
            raw=plain_message(
                sender="Iris Archive <iris@example.com>",
                to="testuser@example.com",
                subject="Archived correspondence",
                date=days_ago(30),
                message_id="<old-001@test>",
                body="This is an old archived email from a month ago.",
            ),
            mailboxes=["folderA"],
            keywords={"$seen": True},
            received_at=days_ago(30),
        ),
        FixtureMessage(
            key="bcc-email",
            raw=plain_message(
                sender="testuser@example.com",
                to="jack@example.com",
                bcc="secret@example.com",
                subject="Confidential note",
                date=days_ago(2),
                message_id="<bcc-001@test>",
                body="This is a confidential message with a BCC recipient.",
            ),
            mailboxes=["folderA"],
            keywords={"$seen": True, "$draft": True},
            received_at=days_ago(2),
        ),
        FixtureMessage(
            key="special-headers",
            raw=plain_message(
                sender="List Admin <list-admin@example.com>",
                to="testuser@example.com",
                subject="Mailing list post",
                date=days_ago(1),
                message_id="<list-001@test>",
                body="This is a post from a mailing list.",
                extra_headers=[
                    "List-Post: <mailto:list@example.com>",
                    "List-Unsubscribe: <https://example.com/unsub>",
                    "X-Custom-Header: custom-value-12345",
                ],
            ),
            mailboxes=["inbox"],
            keywords={"$seen": True},
            received_at=days_ago(1),
        ),
        FixtureMessage(
            key="multipart-related",
            raw=multipart_message(
                subtype="related",
                boundary="----=_Rel_001_fixture",
                sender="Kate Images <kate@example.com>",
                to="testuser@example.com",
                subject="Image embedded email",
                date=hours_ago(12),
                message_id="<related-001@test>",
                parts=[
                    _text_part(
                        "text/html",
                        "<html><body><p>See the image below:</p>"
                        '<img src="cid:image001@test"/></body></html>',
                    ),
                    [
                        "Content-Type: image/jpeg",
                        "Content-ID: <image001@test>",
                        "Content-Disposition: inline",
                        "Content-Transfer-Encoding: base64",
                        "",
                        base64.b64encode(JPEG_BYTES).decode(),
                    ],
                ],
            ),
            mailboxes=["inbox"],
            keywords={"$seen": True},
            received_at=hours_ago(12),
        ),
        FixtureMessage(
            key="intl-sender",
            raw=plain_message(
                sender="=?UTF-8?B?6YeR5Z+O5q2m?= <kaneshiro@example.com>",
                to="testuser@example.com",
                subject="=?UTF-8?B?44GT44KT44Gr44Gh44Gv?=",
                date=hours_ago(6),
                message_id="<intl-001@test>",
                body="This message has an internationalized sender name and subject.",
            ),
            mailboxes=["inbox"],
            received_at=hours_ago(6),
        ),
        FixtureMessage(
            key="sort-test-1",
            raw=plain_message(
                sender="Zara First <zara@example.com>",
                to="testuser@example.com",
                subject="Alpha sort test",
                date=days_ago(5),
                message_id="<sort-001@test>",
                body="A" * 100,
            ),
            mailboxes=["folderB"],
            keywords={"$seen": True},
            received_at=days_ago(3),
        ),
        FixtureMessage(
            key="sort-test-2",
            raw=plain_message(
                sender="Amy Second <amy@example.com>",
                to="testuser@example.com",
                subject="Beta sort test",
                date=days_ago(3),
                message_id="<sort-002@test>",
                body="B" * 500,
            ),
            mailboxes=["folderB"],
            keywords={"$seen": True, "$flagged": True},
            received_at=days_ago(2),
        ),
        FixtureMessage(
            key="sort-test-3",
            raw=plain_message(
                sender="Mike Third <mike@example.com>",
                to="testuser@example.com",
                subject="Gamma sort test",
                date=days_ago(1),
                message_id="<sort-003@test>",
                body="C" * 50,
            ),
            mailboxes=["folderB"],
            received_at=days_ago(1),
        ),
    ]

    if submission_recipient:
        messages.append(
            FixtureMessage(
                key="draft-for-submission",
                raw=plain_message(
                    sender=sender,
                    to=submission_recipient,
                    subject="Test submission email",
                    date=hours_ago(1),
                    message_id="<submission-001@test>",
                    body="This email will be used for submission testing.",
                ),
                mailboxes=["drafts"],
                keywords={"$seen": True, "$draft": True},
                received_at=hours_ago(1),
            )
        )

    messages += [
        FixtureMessage(
            key="child-mailbox-email",
            raw=plain_message(
                sender="Nancy Nested <nancy@example.com>",
                to="testuser@example.com",
                subject="In nested folder",
                date=days_ago(5),
                message_id="<child-001@test>",
                body="This email lives in a nested child mailbox.",
            ),
            mailboxes=["child1"],
            keywords={"$seen": True},
            received_at=days_ago(5),
        ),
        FixtureMessage(
            key="korean-euckr",
            raw=CRLF.join(
                [
                    "From: =?EUC-KR?B?seS/tbjR?= <korean-sender@example.com>",
                    "To: testuser@example.com",
                    "Subject: =?EUC-KR?B?sNa0z7TZx9Cw+A==?=",
                    f"Date: {rfc2822_date(hours_ago(5))}",
                    "Message-ID: <korean-001@test>",
                    "MIME-Version: 1.0",
                    "Content-Type: text/plain; charset=EUC-KR",
                    "Content-Transfer-Encoding: base64",
                    "",
                    base64.b64encode(EUC_KR_BODY).decode(),
                ]
            ).encode(),
            mailboxes=["inbox"],
            keywords={"$seen": True},
            received_at=hours_ago(5),
        ),
        FixtureMessage(
            key="invalid-ascii",
            # Deliberately broken: control characters, an overlong line and
            # raw 8-bit bytes in a us-ascii body
            raw=CRLF.encode().join(
                [
                    b"From: broken@example.com",
                    b"To: testuser@example.com",
                    b"Subject: Malformed email test",
                    f"Date: {rfc2822_date(hours_ago(4))}".encode(),
                    b"Message-ID: <invalid-001@test>",
                    b"MIME-Version: 1.0",
                    b"Content-Type: text/plain; charset=us-ascii",
                    b"X-Broken-Header: value with \x01\x02 control chars",
                    b"",
                    b"This email has some issues.",
                    b"It has a line that is way too long: " + b"x" * 1000,
                    b"And some 8-bit chars in ASCII: caf\xe9 na\xefve r\xe9sum\xe9",
                    b"End of message.",
                ]
            ),
            mailboxes=["inbox"],
            keywords={"$seen": True},
            received_at=hours_ago(4),
        ),
    ]
    return messages
