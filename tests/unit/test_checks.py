"""Tests for the check catalog and a sample of check bodies."""

from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

from jmap_conformance.checks import (
    build_catalog,
    core,
    email,
    mailbox,
    push,
    search_snippet,
    vacation,
)
from jmap_conformance.checks.conditions import (
    all_of,
    has_cross_account,
    has_event_channel,
    has_submission,
    has_vacation,
    needs_emails,
    needs_mailboxes,
)
from jmap_conformance.context import RunContext
from jmap_conformance.errors import AssertionFailure
from jmap_conformance.lifecycle import clean_account, seed_data
from jmap_conformance.testing.fakes import FakeJmapClient
from jmap_conformance.testing.payloads import make_session

CATEGORY_ORDER = [
    "core",
    "binary",
    "mailbox",
    "thread",
    "email",
    "search-snippet",
    "identity",
    "submission",
    "vacation",
    "push",
]


@pytest.fixture
async def seeded(ctx: RunContext) -> RunContext:
    await clean_account(ctx, force=False)
    await seed_data(ctx)
    return ctx


class TestCatalog:
    """Tests for build_catalog."""

    def test_categories_in_run_order(self) -> None:
        """Categories appear in one contiguous block each, in order."""
        categories: list[str] = []
        for test in build_catalog().list():
            if not categories or categories[-1] != test.category:
                categories.append(test.category)

        assert categories == CATEGORY_ORDER

    def test_descriptors_are_complete(self) -> None:
        """Every check cites an RFC section and has a name."""
        for test in build_catalog().list():
            assert test.rfc in ("RFC8620", "RFC8621"), test.test_id
            assert test.section, test.test_id
            assert test.name, test.test_id

    def test_fresh_catalog_per_call(self) -> None:
        """Each call builds an independent registry."""
        assert len(build_catalog()) == len(build_catalog()) > 0

    def test_filter_on_catalog(self) -> None:
        """Real ids are addressable by glob."""
        ids = [t.test_id for t in build_catalog().list("mailbox/get-*")]
        assert ids == [
            "mailbox/get-all",
            "mailbox/get-by-ids",
            "mailbox/get-not-found",
            "mailbox/get-properties",
        ]

    def test_vacation_checks_need_capability(self) -> None:
        """Every vacation check is gated on the capability."""
        tests = build_catalog().list("vacation/*")

        assert len(tests) == 10
        assert all(test.run_if is has_vacation for test in tests)

    def test_changes_checks_registered(self) -> None:
        """Mailbox and Email each have a changes check."""
        ids = [t.test_id for t in build_catalog().list("*/changes-*")]
        assert ids == ["mailbox/changes-no-changes", "email/changes-no-changes"]


class TestConditions:
    """Tests for the skip predicates."""

    def test_submission(self, ctx: RunContext, fake_client: FakeJmapClient) -> None:
        """Needs the submission capability."""
        assert "does not advertise" in str(has_submission(ctx))
        fake_client.session = make_session(submission=True)
        assert has_submission(ctx) is True

    def test_vacation(self, ctx: RunContext, fake_client: FakeJmapClient) -> None:
        """Needs the vacationresponse capability."""
        assert has_vacation(ctx) == "Server does not support vacationresponse"
        fake_client.session = make_session(vacation=True)
        assert has_vacation(ctx) is True

    def test_event_channel_and_cross_account(self, ctx: RunContext) -> None:
        """Need a channel and another account respectively."""
        assert has_event_channel(ctx) == "No event relay channel available"
        assert has_cross_account(ctx) == "No cross-account access available"
        ctx.cross_account_id = "shared1"
        assert has_cross_account(ctx) is True

    def test_fixture_presence(self, ctx: RunContext) -> None:
        """Missing fixtures are named in the reason."""
        ctx.email_ids["plain-simple"] = "e1"

        assert needs_emails("plain-simple")(ctx) is True
        assert needs_emails("plain-simple", "very-old")(ctx) == "Fixture emails missing: very-old"
        assert needs_mailboxes("folderA")(ctx) == "Fixture mailboxes missing: folderA"

    def test_all_of_first_reason_wins(self, ctx: RunContext) -> None:
        """Predicates are evaluated in order."""
        predicate = all_of(needs_emails("a"), needs_mailboxes("b"))
        assert predicate(ctx) == "Fixture emails missing: a"
        assert all_of()(ctx) is True


class TestCoreChecks:
    """Core checks against the in-memory account."""

    @pytest.mark.parametrize(
        "body",
        [
            core.session_core_capability,
            core.session_url_templates,
            core.session_primary_account,
            core.echo_basic,
            core.echo_empty,
        ],
    )
    async def test_pass(self, ctx: RunContext, body) -> None:
        """A well-formed session and echo pass."""
        await body(ctx)

    async def test_echo_mismatch_fails(
        self, ctx: RunContext, fake_client: FakeJmapClient
    ) -> None:
        """An echo that drops arguments fails."""
        with patch.object(fake_client, "call", AsyncMock(return_value={"hello": "world"})):
            with pytest.raises(AssertionFailure, match="Expected 42, got null"):
                await core.echo_basic(ctx)


class TestMailboxChecks:
    """Mailbox checks against the in-memory account."""

    @pytest.mark.parametrize(
        "body",
        [
            mailbox.get_all,
            mailbox.get_by_ids,
            mailbox.get_not_found,
            mailbox.set_create_destroy,
            mailbox.set_destroy_with_children,
        ],
    )
    async def test_pass(self, seeded: RunContext, body) -> None:
        """A conforming server passes."""
        await body(seeded)

    async def test_get_all_missing_fixture(
        self, seeded: RunContext, fake_client: FakeJmapClient
    ) -> None:
        """A fixture mailbox missing from the list fails the check."""
        del fake_client.mailboxes[seeded.mailbox_ids["folderB"]]

        with pytest.raises(AssertionFailure, match="Mailbox folderB missing from list"):
            await mailbox.get_all(seeded)

    async def test_destroy_with_children_allowed_fails(
        self, seeded: RunContext, fake_client: FakeJmapClient
    ) -> None:
        """Destroying a parent must be refused."""
        for key in ("child1", "child2"):
            del fake_client.mailboxes[seeded.mailbox_ids[key]]

        with pytest.raises(AssertionFailure, match="mailboxHasChild"):
            await mailbox.set_destroy_with_children(seeded)

    async def test_changes_no_changes(self, seeded: RunContext) -> None:
        """Mailbox/changes from the current state is empty."""
        await mailbox.changes_no_changes(seeded)

    async def test_changes_more_changes_fails(
        self, ctx: RunContext, fake_client: FakeJmapClient
    ) -> None:
        """hasMoreChanges must be false when nothing changed."""
        responses = {
            "Mailbox/get": {"list": [], "state": "s1"},
            "Mailbox/changes": {
                "oldState": "s1",
                "newState": "s1",
                "hasMoreChanges": True,
                "created": [],
                "updated": [],
                "destroyed": [],
            },
        }
        with patch.object(fake_client, "call", answering(responses)):
            with pytest.raises(AssertionFailure, match="Expected false, got true"):
                await mailbox.changes_no_changes(ctx)


def answering(responses: dict[str, dict[str, Any]]) -> AsyncMock:
    """A ``call`` replacement answering by method name."""

    async def call(method_name: str, args: Any, call_id: str = "c0") -> dict[str, Any]:
        return responses[method_name]

    return AsyncMock(side_effect=call)


class TestEmailChecks:
    """Email import and changes checks against the in-memory account."""

    async def test_import_valid_message(
        self, seeded: RunContext, fake_client: FakeJmapClient
    ) -> None:
        """The imported message is readable and removed afterwards."""
        before = set(fake_client.emails)

        await email.import_valid_message(seeded)

        assert set(fake_client.emails) == before
        imported = [args for method, args in fake_client.calls if method == "Email/import"]
        assert imported[-1]["emails"]["imp1"]["keywords"] == {"$seen": True}

    async def test_import_rejected(
        self, seeded: RunContext, fake_client: FakeJmapClient
    ) -> None:
        """A refused import fails with the server's reason."""
        fake_client.rejected_imports.add("imp1")

        with pytest.raises(AssertionFailure, match="Import failed: .*invalidEmail"):
            await email.import_valid_message(seeded)

    async def test_changes_no_changes(self, seeded: RunContext) -> None:
        """Email/changes from the current state is empty."""
        await email.changes_no_changes(seeded)

    async def test_changes_reporting_ids_fails(
        self, ctx: RunContext, fake_client: FakeJmapClient
    ) -> None:
        """Ids reported for an unchanged state fail the check."""
        responses = {
            "Email/get": {"list": [], "state": "s1"},
            "Email/changes": {
                "oldState": "s1",
                "newState": "s1",
                "created": [],
                "updated": ["e1"],
                "destroyed": [],
            },
        }
        with patch.object(fake_client, "call", answering(responses)):
            with pytest.raises(AssertionFailure, match="Expected no updated ids"):
                await email.changes_no_changes(ctx)


class TestSearchSnippetChecks:
    """SearchSnippet checks against canned responses."""

    async def test_body_match(self, ctx: RunContext, fake_client: FakeJmapClient) -> None:
        """A highlighted preview for the matching email passes."""
        ctx.email_ids["thread-reply-2"] = "e2"
        responses = {
            "Email/query": {"ids": ["e2"]},
            "SearchSnippet/get": {
                "accountId": "acc1",
                "list": [
                    {"emailId": "e2", "subject": None, "preview": "the <mark>xylophone</mark>"}
                ],
                "notFound": None,
            },
        }
        with patch.object(fake_client, "call", answering(responses)):
            await search_snippet.snippet_body_match(ctx)

    async def test_body_match_missing_snippet(
        self, ctx: RunContext, fake_client: FakeJmapClient
    ) -> None:
        """No snippet for the matching email fails."""
        ctx.email_ids["thread-reply-2"] = "e2"
        responses = {
            "Email/query": {"ids": ["e2"]},
            "SearchSnippet/get": {
                "accountId": "acc1",
                "list": [{"emailId": "e9", "subject": None, "preview": None}],
                "notFound": None,
            },
        }
        with patch.object(fake_client, "call", answering(responses)):
            with pytest.raises(AssertionFailure, match="Should have snippet"):
                await search_snippet.snippet_body_match(ctx)

    async def test_not_found_null_fails(
        self, ctx: RunContext, fake_client: FakeJmapClient
    ) -> None:
        """A null notFound for an unknown id is a server bug."""
        responses = {"SearchSnippet/get": {"accountId": "acc1", "list": [], "notFound": None}}
        with patch.object(fake_client, "call", answering(responses)):
            with pytest.raises(AssertionFailure, match="but got null"):
                await search_snippet.snippet_not_found(ctx)

    async def test_response_structure_rejects_empty_not_found(
        self, ctx: RunContext, fake_client: FakeJmapClient
    ) -> None:
        """An empty notFound list must be spelled null."""
        ctx.email_ids["plain-simple"] = "e1"
        responses = {"SearchSnippet/get": {"accountId": "acc1", "list": [], "notFound": []}}
        with patch.object(fake_client, "call", answering(responses)):
            with pytest.raises(AssertionFailure, match="non-empty array"):
                await search_snippet.snippet_response_structure(ctx)

    async def test_mark_tags_skipped_without_matches(
        self, ctx: RunContext, fake_client: FakeJmapClient
    ) -> None:
        """Nothing to check when no email matches."""
        with patch.object(fake_client, "call", answering({"Email/query": {"ids": []}})):
            await search_snippet.snippet_mark_tags(ctx)


class TestVacationChecks:
    """VacationResponse checks against the in-memory singleton."""

    @pytest.fixture(autouse=True)
    def _vacation_session(self, fake_client: FakeJmapClient) -> None:
        fake_client.session = make_session(vacation=True)

    @pytest.mark.parametrize(
        "body",
        [
            vacation.get_singleton,
            vacation.get_singleton_null_ids,
            vacation.get_singleton_properties,
            vacation.get_not_found_invalid_id,
            vacation.set_enable_vacation,
            vacation.set_disable_vacation,
            vacation.set_dates,
            vacation.set_html_body,
            vacation.set_cannot_create,
            vacation.set_cannot_destroy,
        ],
    )
    async def test_pass(self, ctx: RunContext, body) -> None:
        """A conforming singleton passes."""
        await body(ctx)

    async def test_enable_restores_previous_settings(
        self, ctx: RunContext, fake_client: FakeJmapClient
    ) -> None:
        """The response is put back the way it was found."""
        fake_client.vacation["subject"] = "Away"

        await vacation.set_enable_vacation(ctx)

        assert fake_client.vacation["isEnabled"] is False
        assert fake_client.vacation["subject"] == "Away"
        assert fake_client.vacation["textBody"] is None

    async def test_bad_property_type_fails(
        self, ctx: RunContext, fake_client: FakeJmapClient
    ) -> None:
        """Nullable strings must not hold other types."""
        fake_client.vacation["toDate"] = 20260315

        with pytest.raises(AssertionFailure, match="toDate must be null or string"):
            await vacation.get_singleton_properties(ctx)

    async def test_destroy_allowed_fails(
        self, ctx: RunContext, fake_client: FakeJmapClient
    ) -> None:
        """Destroying the singleton must be refused."""
        responses = {"VacationResponse/set": {"destroyed": ["singleton"], "notDestroyed": None}}
        with patch.object(fake_client, "call", answering(responses)):
            with pytest.raises(AssertionFailure, match="Should not allow destroying"):
                await vacation.set_cannot_destroy(ctx)


class TestPushChecks:
    """Push checks without a relay channel."""

    @pytest.mark.parametrize("body", [push.verification, push.state_change])
    async def test_no_channel_fails_cleanly(
        self, ctx: RunContext, fake_client: FakeJmapClient, body
    ) -> None:
        """A missing channel is an assertion failure, not a crash."""
        with pytest.raises(AssertionFailure, match="No event relay channel available"):
            await body(ctx)

        assert "PushSubscription/set" not in fake_client.methods_called()

    def test_predicates(self) -> None:
        """Notifications are matched on type and identifiers."""
        verification = push.is_verification("ps1")
        state_change = push.is_state_change("acc1", "Mailbox")

        assert verification({"@type": "PushVerification", "pushSubscriptionId": "ps1"})
        assert not verification({"@type": "PushVerification", "pushSubscriptionId": "ps2"})
        assert state_change({"@type": "StateChange", "changed": {"acc1": {"Mailbox": "s2"}}})
        assert not state_change({"@type": "StateChange", "changed": {"acc2": {"Mailbox": "s2"}}})
        assert not state_change("not an event")
