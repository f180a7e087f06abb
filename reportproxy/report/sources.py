"""
Report Sources

Implementations of the report source contract. A report source is read
on every reportable call, so "the current report" may change between
calls (for instance, one report per test case).
"""

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

from structlog import get_logger

from reportproxy.report.base import EventReport

logger = get_logger(__name__)


class StaticReportSource:
    """
    Report source that always designates the same report.

    Usage:
        source = StaticReportSource(MemoryEventReport())
        factory = ReportingProxyFactory(source)
    """

    def __init__(self, report: EventReport | None):
        self._report = report

    @property
    def current_report(self) -> EventReport | None:
        return self._report


class ContextReportSource:
    """
    Report source scoped to the active execution context.

    The current report lives in a ``ContextVar``, so each thread and
    each asyncio task sees its own activation. Activations nest: leaving
    an inner block restores the outer report.

    Usage:
        source = ContextReportSource()
        factory = ReportingProxyFactory(source)

        with source.activate(MemoryEventReport()) as report:
            phone = factory.create(Phone, real_phone)
            phone.call("123456")

        assert report.activities[0].qualified_name == "Phone::call"
    """

    def __init__(self, name: str = "reportproxy_current_report"):
        self._current: ContextVar[EventReport | None] = ContextVar(name, default=None)

    @property
    def current_report(self) -> EventReport | None:
        return self._current.get()

    @contextmanager
    def activate(self, report: EventReport) -> Iterator[EventReport]:
        """
        Designate a report as current for the duration of a block.

        Args:
            report: The report to activate.

        Yields:
            The activated report.
        """
        token = self._current.set(report)
        logger.debug("report_activated", report=type(report).__name__)
        try:
            yield report
        finally:
            self._current.reset(token)
            logger.debug("report_deactivated", report=type(report).__name__)
