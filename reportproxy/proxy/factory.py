"""
Reporting Proxy Factory

Generates, per proxied type, a subclass whose members route every
access through the ReportingInterceptor, and instantiates it around a
wrapped object. The proxy is an instance of the proxied type, so
callers use it exactly like the original object.
"""

import copy
import functools
import operator
import threading
import types
from dataclasses import dataclass, replace
from typing import Any, Callable, TypeVar

from structlog import get_logger

from reportproxy.config import Settings, get_settings
from reportproxy.proxy.classifier import build_interception_table, declared_members
from reportproxy.proxy.interceptor import ReportingInterceptor
from reportproxy.proxy.models import (
    CallDescriptor,
    ExclusionConfig,
    InterceptionTable,
    MemberKind,
    MemberSpec,
)
from reportproxy.report.base import ReportSource

logger = get_logger(__name__)

T = TypeVar("T")

STATE_ATTRIBUTE = "_reportproxy_state"

# Root-object operations, forwarded with the same protocol the caller
# would get when using the wrapped object directly
ROOT_FORWARDERS: dict[str, Callable[..., Any]] = {
    "__repr__": repr,
    "__str__": str,
    "__hash__": hash,
    "__format__": format,
    "__eq__": operator.eq,
    "__ne__": operator.ne,
    "__lt__": operator.lt,
    "__le__": operator.le,
    "__gt__": operator.gt,
    "__ge__": operator.ge,
}


@dataclass(frozen=True)
class ProxyState:
    """Per-proxy state: the forwarding target and its interceptor."""

    wrapped: Any
    interceptor: ReportingInterceptor
    table: InterceptionTable


def _state(proxy: Any) -> ProxyState:
    return object.__getattribute__(proxy, STATE_ATTRIBUTE)


def _instantiate(proxy_class: type, state: ProxyState) -> Any:
    # no wrapped member is touched and no __init__ runs
    proxy = object.__new__(proxy_class)
    object.__setattr__(proxy, STATE_ATTRIBUTE, state)
    return proxy


def is_proxy(obj: Any) -> bool:
    """Whether an object is a reporting proxy."""
    try:
        return isinstance(object.__getattribute__(obj, STATE_ATTRIBUTE), ProxyState)
    except AttributeError:
        return False


def unwrap(proxy: Any) -> Any:
    """
    Return the instance a reporting proxy forwards to.

    Raises:
        TypeError: If the object is not a reporting proxy.
    """
    if not is_proxy(proxy):
        raise TypeError(f"Not a reporting proxy: {type(proxy).__name__}")
    return _state(proxy).wrapped


# =============================================================================
# Member stubs
# =============================================================================


def _method_stub(spec: MemberSpec, original: Any) -> Callable[..., Any]:
    """Build the proxy-side function for a method-kind member."""
    name = spec.name
    forwarder = ROOT_FORWARDERS.get(name)

    def target_of(wrapped: Any) -> Callable[..., Any]:
        if forwarder is not None:
            return functools.partial(forwarder, wrapped)
        return getattr(wrapped, name)

    if spec.is_coroutine:
        async def stub(self, *args, **kwargs):
            state = _state(self)
            call = CallDescriptor(spec, target_of(state.wrapped), args, kwargs)
            return await state.interceptor.intercept_async(call)
    else:
        def stub(self, *args, **kwargs):
            state = _state(self)
            call = CallDescriptor(spec, target_of(state.wrapped), args, kwargs)
            return state.interceptor.intercept(call)

    if original is not None:
        # keep name, doc and signature; the original's __dict__ (abstract
        # flags, markers) stays behind
        functools.update_wrapper(stub, original, updated=())
    else:
        stub.__name__ = name
    return stub


class RoutedAttribute:
    """
    Data descriptor standing in for a property or class-level field.

    Reads, writes and deletes on a proxy instance are dispatched through
    the interceptor to the wrapped instance. Class-level access returns
    the original namespace entry.
    """

    def __init__(
        self,
        name: str,
        table: InterceptionTable,
        class_value: Any,
    ):
        self.name = name
        self.class_value = class_value
        self.get_spec = table.lookup(name, MemberKind.PROPERTY_GET)
        self.set_spec = table.lookup(name, MemberKind.PROPERTY_SET)
        self.delete_spec = table.lookup(name, MemberKind.PROPERTY_DELETE)
        self.__doc__ = getattr(class_value, "__doc__", None) if isinstance(class_value, property) else None

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self.class_value
        if self.get_spec is None:
            raise AttributeError(
                f"property {self.name!r} of {type(instance).__name__!r} object has no getter"
            )
        state = _state(instance)
        call = CallDescriptor(
            self.get_spec,
            functools.partial(getattr, state.wrapped, self.name),
        )
        return state.interceptor.intercept(call)

    def __set__(self, instance: Any, value: Any) -> None:
        if self.set_spec is None:
            raise AttributeError(
                f"property {self.name!r} of {type(instance).__name__!r} object has no setter"
            )
        state = _state(instance)
        call = CallDescriptor(
            self.set_spec,
            functools.partial(setattr, state.wrapped, self.name),
            (value,),
        )
        state.interceptor.intercept(call)

    def __delete__(self, instance: Any) -> None:
        if self.delete_spec is None:
            raise AttributeError(
                f"property {self.name!r} of {type(instance).__name__!r} object has no deleter"
            )
        state = _state(instance)
        call = CallDescriptor(
            self.delete_spec,
            functools.partial(delattr, state.wrapped, self.name),
        )
        state.interceptor.intercept(call)


def _forward_data(proxy: Any, name: str, kind: MemberKind, *args: Any) -> Any:
    """Route an access to an undeclared (instance data) attribute."""
    state = _state(proxy)
    accessor = {
        MemberKind.PROPERTY_GET: getattr,
        MemberKind.PROPERTY_SET: setattr,
        MemberKind.PROPERTY_DELETE: delattr,
    }[kind]
    call = CallDescriptor(
        state.table.data_member(name, kind),
        functools.partial(accessor, state.wrapped, name),
        args,
    )
    return state.interceptor.intercept(call)


def build_proxy_class(table: InterceptionTable) -> type:
    """
    Generate the proxy subclass for an interception table.

    Args:
        table: Classification of the proxied type's members.

    Returns:
        A subclass of the proxied type named '<TypeName>ReportingProxy'.
    """
    proxied_type = table.proxied_type
    declared = declared_members(proxied_type)

    namespace: dict[str, Any] = {
        "__slots__": (STATE_ATTRIBUTE,),
        "__module__": proxied_type.__module__,
        "__doc__": proxied_type.__doc__,
    }

    for (name, kind), spec in table.members.items():
        original = declared.get(name, (None, None))[1]
        if kind == MemberKind.METHOD:
            namespace[name] = _method_stub(spec, original)
        elif name not in namespace:
            namespace[name] = RoutedAttribute(name, table, original)

    routed_attributes = table.attribute_names | {STATE_ATTRIBUTE}

    def __getattribute__(self, name):
        if name in class_names:
            return object.__getattribute__(self, name)
        return _forward_data(self, name, MemberKind.PROPERTY_GET)

    def __setattr__(self, name, value):
        if name in routed_attributes:
            object.__setattr__(self, name, value)
        else:
            _forward_data(self, name, MemberKind.PROPERTY_SET, value)

    def __delattr__(self, name):
        if name in routed_attributes:
            object.__delattr__(self, name)
        else:
            _forward_data(self, name, MemberKind.PROPERTY_DELETE)

    def __copy__(self):
        state = _state(self)
        return _instantiate(type(self), replace(state, wrapped=copy.copy(state.wrapped)))

    def __deepcopy__(self, memo):
        state = _state(self)
        return _instantiate(type(self), replace(state, wrapped=copy.deepcopy(state.wrapped, memo)))

    def __reduce_ex__(self, protocol):
        raise TypeError(
            f"cannot pickle {type(self).__name__!r} object; pickle the wrapped instance instead"
        )

    namespace["__getattribute__"] = __getattribute__
    namespace["__setattr__"] = __setattr__
    namespace["__delattr__"] = __delattr__
    namespace["__copy__"] = __copy__
    namespace["__deepcopy__"] = __deepcopy__
    namespace["__reduce_ex__"] = __reduce_ex__

    proxy_class = types.new_class(
        f"{proxied_type.__name__}ReportingProxy",
        (proxied_type,),
        exec_body=lambda ns: ns.update(namespace),
    )
    proxy_class.__qualname__ = f"{proxied_type.__qualname__}ReportingProxy"
    # every declared function is overridden; nothing abstract remains
    proxy_class.__abstractmethods__ = frozenset()

    # names resolved by normal lookup on the proxy (stubs, class-level
    # descriptors, object machinery); anything else is instance data
    class_names = frozenset(
        name for klass in proxy_class.__mro__ for name in vars(klass)
    )

    return proxy_class


class ReportingProxyFactory:
    """
    Creates reporting proxies around wrapped instances.

    The interception table and proxy class of each proxied type are
    built once and cached. The factory holds no per-proxy state, so one
    factory can create any number of independent proxies.

    ``copy.copy`` and ``copy.deepcopy`` of a proxy return a new proxy
    around a copy of the wrapped instance, reporting to the same source.
    Proxies cannot be pickled.

    Usage:
        source = ContextReportSource()
        factory = ReportingProxyFactory(source)

        with source.activate(MemoryEventReport()) as report:
            phone = factory.create(Phone, real_phone)
            phone.call("123456")
            phone.owner = "Bill Gates"
    """

    def __init__(
        self,
        report_source: ReportSource,
        settings: Settings | None = None,
        exclusions: ExclusionConfig | None = None,
    ):
        """
        Initialize the factory.

        Args:
            report_source: Supplies the current report on every call.
            settings: Interception settings. Defaults to global settings.
            exclusions: Explicit per-type exclusion lists. Merged with the
                settings' exclusions file when one is configured.
        """
        self.report_source = report_source
        self.settings = settings or get_settings()

        exclusions = exclusions or ExclusionConfig()
        if self.settings.exclusions_file is not None:
            exclusions = exclusions.merge(
                ExclusionConfig.from_file(self.settings.exclusions_file)
            )
        self.exclusions = exclusions

        self.interceptor = ReportingInterceptor(report_source, self.settings)

        self._tables: dict[type, InterceptionTable] = {}
        self._proxy_classes: dict[type, type] = {}
        self._lock = threading.Lock()

        logger.info(
            "reporting_proxy_factory_initialized",
            report_source=type(report_source).__name__,
            exclusion_count=len(exclusions.exclusions),
        )

    def create(self, proxied_type: type[T], wrapped: Any) -> T:
        """
        Create a proxy around a wrapped instance.

        No wrapped member is accessed and nothing is reported while the
        proxy is constructed.

        Args:
            proxied_type: Capability class the proxy presents.
            wrapped: Instance the proxy forwards to.

        Returns:
            An instance of a generated subclass of proxied_type.

        Raises:
            TypeError: If proxied_type is not a class.
            ValueError: If wrapped is None.
            ProxyConfigurationError: If proxied_type cannot be classified.
        """
        if wrapped is None:
            raise ValueError("Cannot create a reporting proxy around None")

        proxy_class = self.proxy_class(proxied_type)
        table = self._tables[proxied_type]

        return _instantiate(
            proxy_class,
            ProxyState(wrapped=wrapped, interceptor=self.interceptor, table=table),
        )

    def interception_table(self, proxied_type: type) -> InterceptionTable:
        """Get (building if needed) the interception table of a type."""
        with self._lock:
            return self._table_locked(proxied_type)

    def proxy_class(self, proxied_type: type) -> type:
        """Get (building if needed) the proxy class of a type."""
        with self._lock:
            proxy_class = self._proxy_classes.get(proxied_type)
            if proxy_class is None:
                table = self._table_locked(proxied_type)
                proxy_class = build_proxy_class(table)
                self._proxy_classes[proxied_type] = proxy_class

                logger.info(
                    "proxy_class_generated",
                    proxied_type=proxied_type.__qualname__,
                    proxy_class=proxy_class.__name__,
                    reported_members=sorted(s.qualified_name for s in table.reported_members),
                )
            return proxy_class

    def _table_locked(self, proxied_type: type) -> InterceptionTable:
        table = self._tables.get(proxied_type)
        if table is None:
            if not isinstance(proxied_type, type):
                raise TypeError(f"Proxied type must be a class, got {proxied_type!r}")
            table = build_interception_table(
                proxied_type,
                self.exclusions.excluded_members(proxied_type),
            )
            self._tables[proxied_type] = table
        return table
