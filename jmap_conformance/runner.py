"""Sequential execution of the check catalog against one account."""

import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from contextlib import AbstractAsyncContextManager, AsyncExitStack
from dataclasses import dataclass

from jmap_conformance.client import JmapClient
from jmap_conformance.config import AccountConfig, HarnessConfig
from jmap_conformance.context import RunContext
from jmap_conformance.events import EventChannel
from jmap_conformance.lifecycle import clean_account, seed_data, teardown
from jmap_conformance.models.result import Status, TestResult
from jmap_conformance.models.session import MAIL_CAPABILITY, Session
from jmap_conformance.registry import TestDescriptor, TestRegistry

log = logging.getLogger(__name__)

type ClientFactory = Callable[
    [AccountConfig, HarnessConfig], AbstractAsyncContextManager[JmapClient]
]
type ChannelFactory = Callable[[str], Awaitable[EventChannel | None]]

PROGRESS_LABELS = {"passed": "PASS", "skipped": "SKIP"}


@dataclass(frozen=True, kw_only=True)
class RunOptions:
    """Per-invocation switches."""

    filter: str | None = None
    force_destroy: bool = False
    fail_only: bool = False


def find_cross_account(session: Session, own_account_id: str) -> str | None:
    """Return another mail-capable account visible in ``session``, if any."""
    for account_id, account in session.accounts.items():
        if account_id != own_account_id and MAIL_CAPABILITY in account.account_capabilities:
            return account_id
    return None


def progress_label(result: TestResult) -> str:
    if result.status == "failed":
        return "FAIL" if result.required else "WARN"
    return PROGRESS_LABELS[result.status]


def error_message(exc: Exception) -> str:
    return str(exc) or type(exc).__name__


@dataclass(frozen=True, kw_only=True)
class TestRunner:
    """Drives clean, seed, the check loop and teardown for one run."""

    __test__ = False

    config: HarnessConfig
    registry: TestRegistry
    client_factory: ClientFactory = JmapClient.from_config
    channel_factory: ChannelFactory = EventChannel.connect

    def excluded_categories(self) -> Sequence[str]:
        """Categories that cannot run with this configuration."""
        excluded = []
        if self.config.accounts.secondary is None:
            log.warning("No secondary account configured, skipping submission checks")
            excluded.append("submission")
        if self.config.no_local_callback:
            log.warning("noLocalCallback set, skipping push callback checks")
            excluded.append("push")
        return excluded

    async def run(self, options: RunOptions) -> list[TestResult]:
        """Run the filtered catalog and return one result per check, in order.

        Raises:
            ConfigurationError: If a session cannot be bootstrapped.
            PreconditionError: If the account is dirty and not forced.
            TransportError: On network failures during setup.

        """
        tests = self.registry.list(options.filter, self.excluded_categories())

        async with AsyncExitStack() as stack:
            client = await stack.enter_async_context(
                self.client_factory(self.config.accounts.primary, self.config)
            )
            log.info("Connected to %s", self.config.session_url)
            log.info("Account: %s (%s)", client.session.username, client.account_id)

            secondary = None
            if self.config.accounts.secondary is not None:
                secondary = await stack.enter_async_context(
                    self.client_factory(self.config.accounts.secondary, self.config)
                )
                log.info(
                    "Secondary account: %s (%s)",
                    secondary.session.username,
                    secondary.account_id,
                )

            ctx = RunContext(
                client=client,
                config=self.config,
                secondary_client=secondary,
                cross_account_id=find_cross_account(client.session, client.account_id),
            )
            if any(test.category == "push" for test in tests):
                ctx.events = await self.channel_factory(self.config.event_relay_url)
                if ctx.events is None:
                    log.warning("Event relay unavailable, push checks will be skipped")
                else:
                    stack.push_async_callback(ctx.events.close)

            log.info("--- Cleaning account ---")
            await clean_account(ctx, options.force_destroy)
            try:
                log.info("--- Seeding test data ---")
                await seed_data(ctx)
                ctx.drain_exchanges()

                log.info("--- Running %d tests ---", len(tests))
                return await self._run_tests(ctx, tests, options)
            finally:
                log.info("--- Tearing down ---")
                try:
                    await teardown(ctx)
                except Exception as exc:
                    log.warning("Teardown error: %s", exc)

    async def _run_tests(
        self, ctx: RunContext, tests: Sequence[TestDescriptor], options: RunOptions
    ) -> list[TestResult]:
        results: list[TestResult] = []
        for index, test in enumerate(tests, start=1):
            result = await self._run_one(ctx, test)
            results.append(result)
            if not options.fail_only or result.status == "failed":
                log.info(
                    "[%*d/%d] %s  %s (%dms)",
                    len(str(len(tests))),
                    index,
                    len(tests),
                    progress_label(result),
                    test.test_id,
                    result.duration_ms,
                )
                if result.status == "skipped" and result.error:
                    log.debug("  reason: %s", result.error)
        return results

    async def _run_one(self, ctx: RunContext, test: TestDescriptor) -> TestResult:
        status: Status = "passed"
        error: str | None = None
        duration_ms = 0

        try:
            verdict = test.run_if(ctx) if test.run_if is not None else True
        except Exception as exc:
            verdict = False
            status = "failed"
            error = error_message(exc)
            log.debug("%s skip condition raised", test.test_id, exc_info=True)
        else:
            if verdict is not True:
                status = "skipped"
                error = str(verdict)

        if verdict is True:
            start = time.perf_counter()
            try:
                await test.fn(ctx)
            except Exception as exc:
                status = "failed"
                error = error_message(exc)
                log.debug("%s failed", test.test_id, exc_info=True)
            duration_ms = round((time.perf_counter() - start) * 1000)

        return TestResult(
            test_id=test.test_id,
            name=test.name,
            rfc=test.rfc,
            section=test.section,
            required=test.required,
            status=status,
            duration_ms=duration_ms,
            error=error,
            exchanges=tuple(ctx.drain_exchanges()),
        )
