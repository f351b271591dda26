"""Mutable state shared by the checks of one run, plus the assertion surface."""

import json
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from jmap_conformance.client import JmapClient
from jmap_conformance.config import HarnessConfig
from jmap_conformance.errors import AssertionFailure
from jmap_conformance.models.result import Exchange
from jmap_conformance.models.session import Session

if TYPE_CHECKING:
    from jmap_conformance.events import EventChannel

JMAP_ID = re.compile(r"^[A-Za-z0-9_-]{1,255}$")

TYPE_NAMES: Mapping[str, type | tuple[type, ...]] = {
    "string": str,
    "number": (int, float),
    "boolean": bool,
    "object": (dict, list, type(None)),
    "array": list,
}


def _show(value: Any) -> str:
    return json.dumps(value, default=repr, ensure_ascii=False)


def _same_type(a: Any, b: Any) -> bool:
    # bool is an int subclass; 1 and True must not compare equal
    return isinstance(a, bool) == isinstance(b, bool)


def strict_equal(a: Any, b: Any) -> bool:
    """Scalar equality without bool/number coercion."""
    return _same_type(a, b) and a == b


def deep_equal(a: Any, b: Any) -> bool:
    """Structural equality for decoded JSON values.

    Lists compare element-wise in order; mappings compare key sets, then
    values, recursively.
    """
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        return a.keys() == b.keys() and all(deep_equal(a[k], b[k]) for k in a)
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(deep_equal(x, y) for x, y in zip(a, b))
    if isinstance(a, (Mapping, list)) or isinstance(b, (Mapping, list)):
        return False
    return strict_equal(a, b)


class Assertions:
    """Assertion helpers; each failure raises :class:`AssertionFailure`."""

    def check(self, condition: bool, message: str) -> None:
        if not condition:
            raise AssertionFailure(message)

    def assert_equal(self, actual: Any, expected: Any, message: str | None = None) -> None:
        if not strict_equal(actual, expected):
            raise AssertionFailure(
                message or f"Expected {_show(expected)}, got {_show(actual)}"
            )

    def assert_not_equal(
        self, actual: Any, not_expected: Any, message: str | None = None
    ) -> None:
        if strict_equal(actual, not_expected):
            raise AssertionFailure(
                message or f"Expected value to differ from {_show(not_expected)}"
            )

    def assert_deep_equal(
        self, actual: Any, expected: Any, message: str | None = None
    ) -> None:
        if not deep_equal(actual, expected):
            raise AssertionFailure(
                message
                or "Deep equality failed.\n"
                f"Expected: {json.dumps(expected, indent=2, default=repr)}\n"
                f"Actual:   {json.dumps(actual, indent=2, default=repr)}"
            )

    def assert_truthy(self, value: Any, message: str | None = None) -> None:
        if not value:
            raise AssertionFailure(message or f"Expected truthy value, got {_show(value)}")

    def assert_falsy(self, value: Any, message: str | None = None) -> None:
        if value:
            raise AssertionFailure(message or f"Expected falsy value, got {_show(value)}")

    def assert_includes(
        self, items: Sequence[Any], item: Any, message: str | None = None
    ) -> None:
        if not any(strict_equal(x, item) for x in items):
            raise AssertionFailure(
                message
                or f"Expected array to include {_show(item)}, got {_show(list(items))}"
            )

    def assert_not_includes(
        self, items: Sequence[Any], item: Any, message: str | None = None
    ) -> None:
        if any(strict_equal(x, item) for x in items):
            raise AssertionFailure(
                message or f"Expected array to NOT include {_show(item)}"
            )

    def assert_has_property(
        self, obj: Mapping[str, Any], key: str, message: str | None = None
    ) -> None:
        if key not in obj:
            raise AssertionFailure(message or f"Expected object to have property '{key}'")

    def assert_type(self, value: Any, expected_type: str, message: str | None = None) -> None:
        """Check a JSON type name: string, number, boolean, object or array."""
        expected = TYPE_NAMES.get(expected_type)
        matches = expected is not None and isinstance(value, expected)
        if expected_type == "number" and isinstance(value, bool):
            matches = False
        if not matches:
            raise AssertionFailure(
                message
                or f"Expected type '{expected_type}', got '{type(value).__name__}'"
            )

    def assert_greater_than(
        self, actual: float, minimum: float, message: str | None = None
    ) -> None:
        if not actual > minimum:
            raise AssertionFailure(message or f"Expected {actual} > {minimum}")

    def assert_greater_or_equal(
        self, actual: float, minimum: float, message: str | None = None
    ) -> None:
        if not actual >= minimum:
            raise AssertionFailure(message or f"Expected {actual} >= {minimum}")

    def assert_less_than(
        self, actual: float, maximum: float, message: str | None = None
    ) -> None:
        if not actual < maximum:
            raise AssertionFailure(message or f"Expected {actual} < {maximum}")

    def assert_length(
        self, items: Sequence[Any], expected: int, message: str | None = None
    ) -> None:
        if len(items) != expected:
            raise AssertionFailure(
                message or f"Expected array length {expected}, got {len(items)}"
            )

    def assert_string_contains(
        self, text: str, substring: str, message: str | None = None
    ) -> None:
        if substring not in text:
            raise AssertionFailure(
                message
                or f"Expected string to contain '{substring}', got '{text[:200]}'"
            )

    def assert_matches(
        self, text: str, pattern: str | re.Pattern[str], message: str | None = None
    ) -> None:
        compiled = re.compile(pattern) if isinstance(pattern, str) else pattern
        if not compiled.search(text):
            raise AssertionFailure(
                message
                or f"Expected string to match {compiled.pattern!r}, got '{text[:200]}'"
            )

    def assert_id_valid(self, value: Any, message: str | None = None) -> None:
        if not isinstance(value, str) or not JMAP_ID.match(value):
            raise AssertionFailure(message or f"Invalid JMAP Id format: {_show(value)}")


@dataclass(kw_only=True)
class RunContext(Assertions):
    """State handed to each check in turn.

    Owned by the runner. Fixture maps are keyed by stable semantic names
    (``folderA``, ``thread-starter``, ``pdf``) and hold server-assigned ids;
    a name is absent when its fixture could not be created.
    """

    client: JmapClient
    config: HarnessConfig
    secondary_client: JmapClient | None = None
    cross_account_id: str | None = None
    events: "EventChannel | None" = None
    mailbox_ids: dict[str, str] = field(default_factory=dict)
    email_ids: dict[str, str] = field(default_factory=dict)
    blob_ids: dict[str, str] = field(default_factory=dict)
    identity_ids: list[str] = field(default_factory=list)
    identity_email: str = ""
    secondary_email: str = ""
    role_mailboxes: dict[str, str] = field(default_factory=dict)

    @property
    def session(self) -> Session:
        return self.client.session

    @property
    def account_id(self) -> str:
        return self.client.account_id

    def drain_exchanges(self) -> list[Exchange]:
        """Drain recorded exchanges of the primary and secondary clients."""
        exchanges = self.client.drain_exchanges()
        if self.secondary_client is not None:
            exchanges.extend(self.secondary_client.drain_exchanges())
        return exchanges
