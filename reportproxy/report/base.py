"""
Report Contracts

Structural interfaces for the two collaborators the interceptor talks
to: the report source, which names the currently active report, and the
report, which receives activity events.
"""

from collections.abc import Hashable
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class EventReport(Protocol):
    """
    Receives activity events for one logical run.

    ``record_activity_started`` returns an opaque token that is handed
    back exactly once to ``record_activity_finished``. ``record_error``
    is not tied to any open activity.
    """

    def record_activity_started(
        self,
        qualified_name: str,
        /,
        *arguments: Any,
        **keyword_arguments: Any,
    ) -> Hashable:
        ...

    def record_activity_finished(self, token: Hashable) -> None:
        ...

    def record_error(self, error: BaseException) -> None:
        ...


@runtime_checkable
class ReportSource(Protocol):
    """Read-only accessor for the currently active report."""

    @property
    def current_report(self) -> EventReport | None:
        ...
