"""
Exception Types

Errors introduced by the proxy layer itself. Failures raised by a
wrapped instance are never translated into these; they propagate
unchanged.
"""


class ReportProxyError(Exception):
    """Base class for reportproxy errors."""
    pass


class ProxyConfigurationError(ReportProxyError):
    """A proxied type cannot be classified into an interception table."""
    pass


class NoActiveReportError(ReportProxyError):
    """A reportable call was made while no event report was active."""
    pass


class UnknownActivityError(ReportProxyError):
    """An activity token was never started or was already closed."""
    pass
