"""
Reporting Interceptor

Dispatch core of the proxy layer. Every member access routed through a
reporting proxy arrives here as a CallDescriptor; the interceptor either
forwards it untouched or wraps the forwarded call in an activity on the
current event report.
"""

from datetime import datetime, UTC
from typing import Any

from structlog import get_logger

from reportproxy.config import Settings, get_settings
from reportproxy.errors import NoActiveReportError, ProxyConfigurationError
from reportproxy.proxy.models import Bucket, CallDescriptor
from reportproxy.report.base import EventReport, ReportSource

logger = get_logger(__name__)

# Buckets forwarded without touching the report
PASS_THROUGH_BUCKETS: frozenset[Bucket] = frozenset({
    Bucket.FOUNDATIONAL,
    Bucket.EXCLUDED,
    Bucket.NON_OVERRIDABLE,
    Bucket.PROPERTY_GET,
})


class ReportingInterceptor:
    """
    Records reportable calls as activities on the current report.

    For a reportable call the sequence is: start the activity, forward
    the call, then finish the activity on success or record the error
    and re-raise it unchanged on failure. Any raised exception counts as
    a failure, including cancellation and interpreter exits, so every
    start is followed by a finish or an error. The current report is looked
    up once per call, so successive calls may land on different reports.

    Nothing is buffered or deferred, and no lock is held while the
    wrapped instance runs.

    Usage:
        interceptor = ReportingInterceptor(StaticReportSource(report))
        result = interceptor.intercept(call)
    """

    def __init__(
        self,
        report_source: ReportSource,
        settings: Settings | None = None,
    ):
        """
        Initialize the interceptor.

        Args:
            report_source: Supplies the currently active report.
            settings: Interception settings. Defaults to global settings.
        """
        self.report_source = report_source
        self.settings = settings or get_settings()

    def intercept(self, call: CallDescriptor) -> Any:
        """
        Dispatch one synchronous call.

        Args:
            call: The intercepted invocation.

        Returns:
            Whatever the wrapped member returned.

        Raises:
            ProxyConfigurationError: If the call carries no known bucket.
            NoActiveReportError: If a report is required and none is active.
        """
        if call.bucket in PASS_THROUGH_BUCKETS:
            return call.proceed()
        self._ensure_reportable(call)

        report, token = self._start(call)
        if report is None:
            return call.proceed()

        start_time = datetime.now(UTC)
        try:
            result = call.proceed()
        except BaseException as e:
            self._fail(report, call, e)
            raise

        self._finish(report, call, token, start_time)
        return result

    async def intercept_async(self, call: CallDescriptor) -> Any:
        """
        Dispatch one call to a coroutine member.

        The wrapped coroutine is awaited in the caller's task; the
        activity finishes when it completes.
        """
        if call.bucket in PASS_THROUGH_BUCKETS:
            return await call.proceed()
        self._ensure_reportable(call)

        report, token = self._start(call)
        if report is None:
            return await call.proceed()

        start_time = datetime.now(UTC)
        try:
            result = await call.proceed()
        except BaseException as e:
            self._fail(report, call, e)
            raise

        self._finish(report, call, token, start_time)
        return result

    # =========================================================================
    # Helper Methods
    # =========================================================================

    def _ensure_reportable(self, call: CallDescriptor) -> None:
        if not isinstance(call.bucket, Bucket) or not call.bucket.reported:
            raise ProxyConfigurationError(
                f"Cannot dispatch {call.qualified_name}: unhandled bucket {call.bucket!r}"
            )

    def _start(self, call: CallDescriptor) -> tuple[EventReport | None, Any]:
        """Open the activity on the current report, if there is one."""
        report = self.report_source.current_report
        if report is None:
            if self.settings.require_active_report:
                raise NoActiveReportError(
                    f"No active report for {call.qualified_name}"
                )
            logger.debug("no_active_report", member=call.qualified_name)
            return None, None

        args, kwargs = call.reported_arguments(self.settings.normalize_arguments)
        token = report.record_activity_started(call.qualified_name, *args, **kwargs)
        return report, token

    def _finish(
        self,
        report: EventReport,
        call: CallDescriptor,
        token: Any,
        start_time: datetime,
    ) -> None:
        report.record_activity_finished(token)

        latency = (datetime.now(UTC) - start_time).total_seconds() * 1000
        logger.debug(
            "activity_finished",
            member=call.qualified_name,
            kind=call.kind.value,
            duration_ms=latency,
        )

    def _fail(
        self,
        report: EventReport,
        call: CallDescriptor,
        error: BaseException,
    ) -> None:
        report.record_error(error)

        logger.warning(
            "activity_failed",
            member=call.qualified_name,
            kind=call.kind.value,
            error_type=type(error).__name__,
            error=str(error),
        )
