"""
reportproxy

Transparent reporting proxies: wrap an object behind its capability class
and record every overridable method call and property write as a timed
activity on the currently active event report.
"""

from reportproxy.errors import (
    NoActiveReportError,
    ProxyConfigurationError,
    ReportProxyError,
    UnknownActivityError,
)
from reportproxy.proxy.factory import ReportingProxyFactory
from reportproxy.proxy.markers import event_report
from reportproxy.report.memory import MemoryEventReport
from reportproxy.report.sources import ContextReportSource, StaticReportSource

__version__ = "0.1.0"

__all__ = [
    "ContextReportSource",
    "MemoryEventReport",
    "NoActiveReportError",
    "ProxyConfigurationError",
    "ReportProxyError",
    "ReportingProxyFactory",
    "StaticReportSource",
    "UnknownActivityError",
    "event_report",
]
