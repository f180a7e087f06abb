"""
Example Phone Session

A small session that demonstrates how to wrap a device behind its
capability class and collect every call as an activity.
"""

from reportproxy import (
    ContextReportSource,
    MemoryEventReport,
    ReportingProxyFactory,
    event_report,
)
from reportproxy.logging_config import configure_logging


class Phone:
    """Capability class the session is written against."""

    def call(self, number: str) -> None:
        raise NotImplementedError

    def charge(self) -> None:
        raise NotImplementedError

    @event_report(ignore=True)
    def ping(self) -> bool:
        raise NotImplementedError

    @property
    def owner(self) -> str:
        raise NotImplementedError

    @owner.setter
    def owner(self, value: str) -> None:
        raise NotImplementedError


class OfficePhone(Phone):
    """Concrete device."""

    def __init__(self):
        self._owner = "nobody"
        self.battery = 20

    def call(self, number: str) -> None:
        if self.battery < 10:
            raise RuntimeError("Low battery level")
        self.battery -= 10

    def charge(self) -> None:
        self.battery = 100

    def ping(self) -> bool:
        return True

    @property
    def owner(self) -> str:
        return self._owner

    @owner.setter
    def owner(self, value: str) -> None:
        self._owner = value


def main():
    configure_logging()

    source = ContextReportSource()
    factory = ReportingProxyFactory(source)

    with source.activate(MemoryEventReport("phone-session")) as report:
        phone = factory.create(Phone, OfficePhone())
        phone.owner = "Bill Gates"
        phone.ping()
        phone.call("123456")
        phone.call("098765")
        try:
            phone.call("555")
        except RuntimeError as e:
            print(f"Call failed: {e}")
        phone.charge()

    print(f"\nSession report: {report.name}")
    for activity in report.activities:
        duration = f"{activity.duration_ms:.3f} ms" if activity.duration_ms is not None else "unfinished"
        print(f"  {activity.qualified_name:<20} {activity.arguments!s:<16} {duration}")
    for error in report.errors:
        print(f"  error: {error.error_type}: {error.message}")
    print(f"\nStats: {report.stats}")


if __name__ == "__main__":
    main()
