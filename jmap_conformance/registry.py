"""Catalog of conformance checks."""

import re
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from jmap_conformance.context import RunContext

type CheckBody = Callable[["RunContext"], Awaitable[None]]
type SkipPredicate = Callable[["RunContext"], "bool | str"]


@dataclass(frozen=True, kw_only=True)
class TestDescriptor:
    """An immutable catalog entry.

    ``run_if`` returns ``True`` to run the check; any other value is taken as
    the human-readable reason for skipping it.
    """

    __test__ = False

    test_id: str
    name: str
    rfc: str
    section: str
    fn: CheckBody
    required: bool = True
    run_if: SkipPredicate | None = None

    @property
    def category(self) -> str:
        """Leading path segment of the test id."""
        return self.test_id.split("/", 1)[0]


@dataclass(frozen=True, kw_only=True)
class CheckDef:
    """Short-form definition expanded by :meth:`TestRegistry.define`."""

    id: str
    name: str
    fn: CheckBody
    section: str | None = None
    required: bool = True
    run_if: SkipPredicate | None = None


class TestRegistry:
    """Ordered catalog; registration order is the run order."""

    __test__ = False

    def __init__(self) -> None:
        self._tests: list[TestDescriptor] = []
        self._ids: set[str] = set()

    def __len__(self) -> int:
        return len(self._tests)

    def register(self, descriptor: TestDescriptor) -> None:
        """Append a descriptor to the catalog.

        Raises:
            ValueError: If the test id is already registered.

        """
        if descriptor.test_id in self._ids:
            raise ValueError(f"Duplicate test id: {descriptor.test_id}")
        self._ids.add(descriptor.test_id)
        self._tests.append(descriptor)

    def define(
        self, *, rfc: str, section: str, category: str, checks: Sequence[CheckDef]
    ) -> None:
        """Register a group of checks sharing an RFC, section and category."""
        for check in checks:
            self.register(
                TestDescriptor(
                    test_id=f"{category}/{check.id}",
                    name=check.name,
                    rfc=rfc,
                    section=check.section or section,
                    required=check.required,
                    run_if=check.run_if,
                    fn=check.fn,
                )
            )

    def list(
        self,
        filter: str | None = None,
        exclude_categories: Sequence[str] = (),
    ) -> list[TestDescriptor]:
        """Return the catalog, minus excluded categories, matching ``filter``.

        ``filter`` is a comma-separated list of patterns; a test is kept if
        its id matches any of them.
        """
        result = [t for t in self._tests if t.category not in exclude_categories]

        if filter:
            patterns = [
                compile_pattern(token.strip())
                for token in filter.split(",")
                if token.strip()
            ]
            if patterns:
                result = [
                    t for t in result if any(p.search(t.test_id) for p in patterns)
                ]

        return result


def compile_pattern(token: str) -> re.Pattern[str]:
    """Compile a filter token.

    Tokens without ``*`` or ``?`` match as substrings; anything else is a
    glob anchored to the whole id.
    """
    if "*" not in token and "?" not in token:
        return re.compile(re.escape(token))
    regex = "".join(
        ".*" if char == "*" else "." if char == "?" else re.escape(char)
        for char in token
    )
    return re.compile(f"^{regex}$")
