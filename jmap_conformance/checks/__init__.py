"""The conformance check catalog."""

from jmap_conformance.checks import (
    binary,
    core,
    email,
    identity,
    mailbox,
    push,
    search_snippet,
    submission,
    thread,
    vacation,
)
from jmap_conformance.registry import TestRegistry

CATEGORY_MODULES = (
    core,
    binary,
    mailbox,
    thread,
    email,
    search_snippet,
    identity,
    submission,
    vacation,
    push,
)


def build_catalog() -> TestRegistry:
    """Register every check, in run order."""
    registry = TestRegistry()
    for module in CATEGORY_MODULES:
        module.register(registry)
    return registry


__all__ = ["build_catalog"]
