"""
Member Classifier

Builds the interception table of a proxied type from its static
metadata: where each member is declared, whether it can be overridden,
and whether it carries the exclusion marker. Argument values never take
part in classification.
"""

import functools
import inspect
import types
from abc import ABC
from typing import Any, Generic, Protocol

from structlog import get_logger

from reportproxy.errors import ProxyConfigurationError
from reportproxy.proxy.markers import read_marker
from reportproxy.proxy.models import Bucket, InterceptionTable, MemberKind, MemberSpec

logger = get_logger(__name__)

# Bases whose members are never part of a capability surface
ROOT_TYPES: tuple[type, ...] = (object, Generic, Protocol, ABC)

# Operations every object inherits from the root type
FOUNDATIONAL_OPERATIONS: tuple[str, ...] = (
    "__repr__",
    "__str__",
    "__eq__",
    "__ne__",
    "__lt__",
    "__le__",
    "__gt__",
    "__ge__",
    "__hash__",
    "__format__",
)

# Object-model hooks the proxy class must keep for itself
MACHINERY_NAMES: frozenset[str] = frozenset({
    "__init__",
    "__new__",
    "__init_subclass__",
    "__class_getitem__",
    "__subclasshook__",
    "__getattr__",
    "__getattribute__",
    "__setattr__",
    "__delattr__",
    "__del__",
    "__dir__",
    "__reduce__",
    "__reduce_ex__",
    "__getstate__",
    "__setstate__",
    "__getnewargs__",
    "__getnewargs_ex__",
    "__copy__",
    "__deepcopy__",
    "__replace__",
    "__sizeof__",
    "__set_name__",
    "__get__",
    "__set__",
    "__delete__",
    "__instancecheck__",
    "__subclasscheck__",
    "__mro_entries__",
    "__post_init__",
})

# Descriptors resolved through normal class lookup, never intercepted
CLASS_LEVEL_DESCRIPTORS: tuple[type, ...] = (
    staticmethod,
    classmethod,
    functools.cached_property,
)

# Slot and builtin attribute descriptors; forwarded like data fields
SLOT_DESCRIPTORS: tuple[type, ...] = (
    types.MemberDescriptorType,
    types.GetSetDescriptorType,
)


def is_dunder(name: str) -> bool:
    return len(name) > 4 and name.startswith("__") and name.endswith("__")


def is_private(name: str) -> bool:
    return name.startswith("_") and not is_dunder(name)


def declared_members(proxied_type: type) -> dict[str, tuple[type, Any]]:
    """
    Map each member name to its declaring class and raw namespace entry.

    Follows attribute resolution: walking the MRO from the most-derived
    class, the first definition of a name wins.
    """
    declared: dict[str, tuple[type, Any]] = {}
    for klass in proxied_type.__mro__:
        if klass in ROOT_TYPES:
            continue
        for name, member in vars(klass).items():
            declared.setdefault(name, (klass, member))
    return declared


def _signature_of(function: Any) -> inspect.Signature | None:
    try:
        return inspect.signature(function)
    except (TypeError, ValueError):
        return None


def _is_excluded(member: Any, excluded_by_config: bool) -> bool:
    if excluded_by_config:
        return True
    rule = read_marker(member)
    return rule is not None and rule.ignore


def _classify_function(
    name: str,
    owner: type,
    function: Any,
    excluded: bool,
) -> MemberSpec:
    if excluded:
        bucket = Bucket.EXCLUDED
    elif getattr(function, "__final__", False) or is_private(name):
        bucket = Bucket.NON_OVERRIDABLE
    else:
        bucket = Bucket.METHOD

    return MemberSpec(
        name=name,
        declaring_type=owner,
        kind=MemberKind.METHOD,
        bucket=bucket,
        signature=_signature_of(function),
        is_coroutine=inspect.iscoroutinefunction(function),
    )


def _classify_property(
    name: str,
    owner: type,
    prop: property,
    excluded: bool,
) -> list[MemberSpec]:
    if excluded:
        get_bucket = set_bucket = Bucket.EXCLUDED
    elif name.startswith("_"):
        get_bucket = set_bucket = Bucket.NON_OVERRIDABLE
    else:
        get_bucket, set_bucket = Bucket.PROPERTY_GET, Bucket.PROPERTY_SET

    specs = []
    if prop.fget is not None:
        specs.append(MemberSpec(name, owner, MemberKind.PROPERTY_GET, get_bucket))
    if prop.fset is not None:
        specs.append(MemberSpec(name, owner, MemberKind.PROPERTY_SET, set_bucket))
    if prop.fdel is not None:
        specs.append(MemberSpec(name, owner, MemberKind.PROPERTY_DELETE, Bucket.NON_OVERRIDABLE))
    return specs


def _classify_field(name: str, owner: type) -> list[MemberSpec]:
    return [
        MemberSpec(name, owner, kind, Bucket.NON_OVERRIDABLE)
        for kind in (MemberKind.PROPERTY_GET, MemberKind.PROPERTY_SET, MemberKind.PROPERTY_DELETE)
    ]


def classify_member(
    name: str,
    owner: type,
    member: Any,
    excluded_by_config: bool = False,
) -> list[MemberSpec]:
    """
    Classify one namespace entry of a proxied type.

    Args:
        name: Attribute name.
        owner: Class whose namespace holds the entry.
        member: The raw namespace entry.
        excluded_by_config: Whether an exclusion config lists the member.

    Returns:
        Table entries for the member; empty when the proxy leaves the
        member to default class lookup.

    Raises:
        ProxyConfigurationError: If the entry is a descriptor of a kind
            the proxy cannot reason about.
    """
    if is_dunder(name):
        if name in MACHINERY_NAMES or not inspect.isfunction(member):
            return []
        if name in FOUNDATIONAL_OPERATIONS:
            return [MemberSpec(
                name=name,
                declaring_type=owner,
                kind=MemberKind.METHOD,
                bucket=Bucket.FOUNDATIONAL,
                signature=_signature_of(member),
                is_coroutine=inspect.iscoroutinefunction(member),
            )]
        # protocol operations the type declares (__call__, __setitem__, ...)
        return [_classify_function(name, owner, member, _is_excluded(member, excluded_by_config))]

    if isinstance(member, property):
        return _classify_property(name, owner, member, _is_excluded(member, excluded_by_config))

    if inspect.isfunction(member):
        return [_classify_function(name, owner, member, _is_excluded(member, excluded_by_config))]

    if isinstance(member, CLASS_LEVEL_DESCRIPTORS):
        return []

    if isinstance(member, SLOT_DESCRIPTORS):
        return _classify_field(name, owner)

    if hasattr(type(member), "__get__") and not isinstance(member, type):
        raise ProxyConfigurationError(
            f"Cannot classify {owner.__name__}.{name}: "
            f"unsupported descriptor {type(member).__name__}"
        )

    # private class-level data stays with the class (abc/typing bookkeeping)
    if name.startswith("_"):
        return []

    return _classify_field(name, owner)


def build_interception_table(
    proxied_type: type,
    excluded_names: frozenset[str] = frozenset(),
) -> InterceptionTable:
    """
    Build the interception table of a proxied type.

    Args:
        proxied_type: The capability class to proxy.
        excluded_names: Member names excluded by explicit configuration.

    Returns:
        InterceptionTable: Classification of every member.

    Raises:
        TypeError: If proxied_type is not a class.
        ProxyConfigurationError: If a member cannot be classified or an
            excluded name is not declared on the type.
    """
    if not isinstance(proxied_type, type):
        raise TypeError(f"Proxied type must be a class, got {proxied_type!r}")

    declared = declared_members(proxied_type)

    unknown = sorted(excluded_names - declared.keys())
    if unknown:
        raise ProxyConfigurationError(
            f"Excluded members not declared on {proxied_type.__name__}: {', '.join(unknown)}"
        )

    members: dict[tuple[str, MemberKind], MemberSpec] = {}
    for name, (owner, member) in declared.items():
        for spec in classify_member(name, owner, member, name in excluded_names):
            members[(spec.name, spec.kind)] = spec

    for name in FOUNDATIONAL_OPERATIONS:
        members.setdefault(
            (name, MemberKind.METHOD),
            MemberSpec(name, object, MemberKind.METHOD, Bucket.FOUNDATIONAL),
        )

    table = InterceptionTable(proxied_type=proxied_type, members=members)

    logger.debug(
        "interception_table_built",
        proxied_type=proxied_type.__qualname__,
        member_count=len(members),
        reported_count=len(table.reported_members),
    )

    return table
