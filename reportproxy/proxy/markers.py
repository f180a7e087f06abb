"""
Exclusion Marker

Declarative per-member metadata read when a proxied type is classified.
Members marked with ``event_report(ignore=True)`` are forwarded by the
proxy but never reported.
"""

from typing import Any, Callable, TypeVar

from reportproxy.proxy.models import ExclusionRule

MARKER_ATTRIBUTE = "__event_report__"

F = TypeVar("F", bound=Callable[..., Any] | property)


class MarkedProperty(property):
    """
    Property carrying an exclusion rule of its own.

    Accessor functions may be shared with a base class property (a
    subclass built with ``@Base.prop.setter`` reuses ``Base``'s getter),
    so the rule lives on the property object. Adding accessors with
    ``getter``/``setter``/``deleter`` keeps the rule.
    """

    def getter(self, fget):
        return self._carry(super().getter(fget))

    def setter(self, fset):
        return self._carry(super().setter(fset))

    def deleter(self, fdel):
        return self._carry(super().deleter(fdel))

    def _carry(self, prop: property) -> property:
        setattr(prop, MARKER_ATTRIBUTE, getattr(self, MARKER_ATTRIBUTE, None))
        return prop


def event_report(*, ignore: bool = False) -> Callable[[F], F]:
    """
    Attach reporting metadata to a method or property.

    Usage:
        class Phone:
            @event_report(ignore=True)
            def send_message(self) -> None:
                ...

            @event_report(ignore=True)
            @property
            def battery(self) -> int:
                ...

    Args:
        ignore: Never report calls to the decorated member.

    Returns:
        A decorator returning the member with the marker attached. A
        property is returned as an equivalent MarkedProperty.
    """
    rule = ExclusionRule(ignore=ignore)

    def decorator(member: F) -> F:
        if isinstance(member, property):
            marked = MarkedProperty(member.fget, member.fset, member.fdel, member.__doc__)
            setattr(marked, MARKER_ATTRIBUTE, rule)
            return marked
        if isinstance(member, (staticmethod, classmethod)):
            setattr(member.__func__, MARKER_ATTRIBUTE, rule)
        else:
            setattr(member, MARKER_ATTRIBUTE, rule)
        return member

    return decorator


def read_marker(member: Any) -> ExclusionRule | None:
    """
    Read the exclusion marker of a class namespace entry.

    Args:
        member: A function, property, staticmethod or classmethod.

    Returns:
        The attached rule, or None when the member is unmarked.
    """
    if isinstance(member, property):
        rule = getattr(member, MARKER_ATTRIBUTE, None)
        if rule is not None:
            return rule
        # accessors marked directly as functions
        for accessor in (member.fget, member.fset):
            rule = getattr(accessor, MARKER_ATTRIBUTE, None)
            if rule is not None:
                return rule
        return None
    if isinstance(member, (staticmethod, classmethod)):
        member = member.__func__
    return getattr(member, MARKER_ATTRIBUTE, None)
