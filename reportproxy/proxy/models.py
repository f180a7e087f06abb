"""
Proxy Models

Types shared by the classifier, the interceptor and the factory:
member classification buckets, interception table entries, per-call
descriptors, and the exclusion metadata and configuration.
"""

import inspect
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from reportproxy.errors import ProxyConfigurationError


class MemberKind(str, Enum):
    """How a member is being accessed."""

    METHOD = "method"
    PROPERTY_GET = "property_get"
    PROPERTY_SET = "property_set"
    PROPERTY_DELETE = "property_delete"


class Bucket(str, Enum):
    """Classification of an intercepted member."""

    FOUNDATIONAL = "foundational"
    """Root-object and language protocol operations (repr, eq, hash, ...)."""

    EXCLUDED = "excluded"
    """Marked with the exclusion marker or listed in an exclusion config."""

    NON_OVERRIDABLE = "non_overridable"
    """Final or private members and plain data fields."""

    METHOD = "method"
    """Overridable method; reported."""

    PROPERTY_GET = "property_get"
    """Read of an overridable property; forwarded unreported."""

    PROPERTY_SET = "property_set"
    """Write of an overridable property; reported."""

    @property
    def reported(self) -> bool:
        """Whether calls in this bucket produce activity events."""
        return self in (Bucket.METHOD, Bucket.PROPERTY_SET)


def setter_name(name: str) -> str:
    """
    Name under which a property write is reported.

    CapWords properties get a ``Set`` prefix (``Owner`` -> ``SetOwner``),
    anything else a ``set_`` prefix (``owner`` -> ``set_owner``).
    """
    if name[:1].isupper():
        return f"Set{name}"
    return f"set_{name}"


@dataclass(frozen=True)
class MemberSpec:
    """
    One entry of an interception table.

    Built once per proxied type and shared by every call to the member.
    """

    name: str
    declaring_type: type
    kind: MemberKind
    bucket: Bucket
    signature: inspect.Signature | None = None
    is_coroutine: bool = False

    @property
    def qualified_name(self) -> str:
        """Identifier used in activity events, '<DeclaringType>::<Member>'."""
        member = setter_name(self.name) if self.kind == MemberKind.PROPERTY_SET else self.name
        return f"{self.declaring_type.__name__}::{member}"

    @property
    def reported(self) -> bool:
        return self.bucket.reported


@dataclass(frozen=True)
class InterceptionTable:
    """
    Classification of every member of a proxied type.

    ``members`` is keyed by (member name, access kind). Names the type
    does not declare are plain data fields and are resolved through
    ``data_member``.
    """

    proxied_type: type
    members: dict[tuple[str, MemberKind], MemberSpec] = field(default_factory=dict)

    def lookup(self, name: str, kind: MemberKind) -> MemberSpec | None:
        return self.members.get((name, kind))

    def data_member(self, name: str, kind: MemberKind) -> MemberSpec:
        """Spec for a plain data field access, always forwarded unreported."""
        return MemberSpec(
            name=name,
            declaring_type=self.proxied_type,
            kind=kind,
            bucket=Bucket.NON_OVERRIDABLE,
        )

    @property
    def attribute_names(self) -> frozenset[str]:
        """Names of declared properties and class-level data fields."""
        return frozenset(
            name for name, kind in self.members if kind != MemberKind.METHOD
        )

    @property
    def reported_members(self) -> list[MemberSpec]:
        return [spec for spec in self.members.values() if spec.reported]


@dataclass(frozen=True)
class CallDescriptor:
    """
    One intercepted invocation.

    ``target`` performs the real work against the wrapped instance;
    ``args`` and ``kwargs`` are the caller's arguments, untouched.
    """

    member: MemberSpec
    target: Callable[..., Any]
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = field(default_factory=dict)

    @property
    def qualified_name(self) -> str:
        return self.member.qualified_name

    @property
    def kind(self) -> MemberKind:
        return self.member.kind

    @property
    def bucket(self) -> Bucket:
        return self.member.bucket

    def proceed(self) -> Any:
        """Forward the call to the wrapped instance."""
        return self.target(*self.args, **self.kwargs)

    def reported_arguments(self, normalize: bool = True) -> tuple[tuple[Any, ...], dict[str, Any]]:
        """
        Arguments as they are handed to the report.

        With ``normalize``, arguments are bound to the declared signature:
        values passed by keyword for positional parameters become
        positional, in declaration order. Keyword-only values stay
        keywords. Arguments that do not bind are reported as passed.
        """
        signature = self.member.signature
        if not normalize or signature is None:
            return self.args, dict(self.kwargs)

        try:
            bound = signature.bind(None, *self.args, **self.kwargs)
        except TypeError:
            return self.args, dict(self.kwargs)

        return bound.args[1:], dict(bound.kwargs)


# =============================================================================
# Exclusion metadata
# =============================================================================


class ExclusionRule(BaseModel):
    """Reporting metadata attached to a member by ``event_report``."""

    model_config = ConfigDict(frozen=True)

    ignore: bool = Field(
        default=False,
        description="Never report calls to this member"
    )


def type_key(cls: type) -> str:
    """Reference of a class in exclusion configs, 'module:QualName'."""
    return f"{cls.__module__}:{cls.__qualname__}"


class TypeExclusion(BaseModel):
    """Excluded members of one proxied type."""

    type: str = Field(
        description="Class reference in 'module:QualName' form"
    )

    members: list[str] = Field(
        default_factory=list,
        description="Member names never reported for this type"
    )

    reason: str = Field(
        default="",
        description="Why these members are excluded"
    )

    @field_validator("type")
    @classmethod
    def validate_type_reference(cls, value: str) -> str:
        module, sep, qualname = value.partition(":")
        if not sep or not module or not qualname:
            raise ValueError(f"Type reference must look like 'module:QualName', got {value!r}")
        return value


class ExclusionConfig(BaseModel):
    """
    Explicit per-type exclusion lists.

    Complements the ``event_report(ignore=True)`` marker for types whose
    source cannot be decorated.

    Example YAML:
    ```yaml
    name: telephony
    version: "1.0"

    exclusions:
      - type: "myapp.devices:Phone"
        members: [send_message, ping]
        reason: "Chatty calls that add nothing to the report"
    ```
    """

    name: str = Field(
        default="default",
        description="Name of this exclusion set"
    )

    version: str = Field(
        default="1.0",
        description="Config version"
    )

    description: str = Field(
        default="",
        description="Human-readable description"
    )

    exclusions: list[TypeExclusion] = Field(
        default_factory=list,
        description="Excluded members per type"
    )

    @classmethod
    def from_file(cls, path: Path | str) -> "ExclusionConfig":
        """
        Load an exclusion config from a YAML file.

        Args:
            path: Path to the YAML file.

        Returns:
            ExclusionConfig: The parsed config.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            ProxyConfigurationError: If the YAML or its content is invalid.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Exclusions file not found: {path}")

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ProxyConfigurationError(f"Invalid exclusions YAML in {path}: {e}") from e

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExclusionConfig":
        """Create an exclusion config from a dictionary."""
        try:
            return cls(**data)
        except (TypeError, ValidationError) as e:
            raise ProxyConfigurationError(f"Invalid exclusion config: {e}") from e

    def excluded_members(self, cls: type) -> frozenset[str]:
        """Names excluded for a class (exact type match, bases not consulted)."""
        key = type_key(cls)
        names: set[str] = set()
        for entry in self.exclusions:
            if entry.type == key:
                names.update(entry.members)
        return frozenset(names)

    def merge(self, other: "ExclusionConfig") -> "ExclusionConfig":
        """Combine two configs; the result excludes what either excludes."""
        return ExclusionConfig(
            name=self.name,
            version=self.version,
            description=self.description,
            exclusions=[*self.exclusions, *other.exclusions],
        )
