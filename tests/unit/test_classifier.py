"""
Tests for the Member Classifier
"""

import pytest

from devices import Amplifier, Dialer, Handset, Modem, MutedAmplifier, Phone, SmartPhone
from reportproxy.errors import ProxyConfigurationError
from reportproxy.proxy.classifier import build_interception_table, classify_member
from reportproxy.proxy.markers import read_marker
from reportproxy.proxy.models import Bucket, MemberKind, setter_name


class TestInterceptionTable:
    """Test suite for building interception tables."""

    @pytest.fixture
    def table(self):
        """Interception table of the Phone capability."""
        return build_interception_table(Phone)

    def bucket(self, table, name, kind=MemberKind.METHOD):
        return table.lookup(name, kind).bucket

    # =========================================================================
    # Reportable members
    # =========================================================================

    def test_public_methods_are_reported(self, table):
        """Test that plain public methods land in the method bucket."""
        assert self.bucket(table, "call") == Bucket.METHOD
        assert self.bucket(table, "charge") == Bucket.METHOD
        assert self.bucket(table, "dial") == Bucket.METHOD

    def test_property_write_is_reported_read_is_not(self, table):
        """Test the property read/write asymmetry."""
        assert self.bucket(table, "owner", MemberKind.PROPERTY_GET) == Bucket.PROPERTY_GET
        assert self.bucket(table, "owner", MemberKind.PROPERTY_SET) == Bucket.PROPERTY_SET
        assert table.lookup("owner", MemberKind.PROPERTY_GET).reported is False
        assert table.lookup("owner", MemberKind.PROPERTY_SET).reported is True

    def test_read_only_property_has_no_setter_entry(self, table):
        """Test that a property without a setter gets only a read entry."""
        assert table.lookup("model", MemberKind.PROPERTY_GET) is not None
        assert table.lookup("model", MemberKind.PROPERTY_SET) is None

    def test_qualified_names(self, table):
        """Test '<Type>::<Member>' naming, including setters."""
        assert table.lookup("call", MemberKind.METHOD).qualified_name == "Phone::call"
        assert table.lookup("owner", MemberKind.PROPERTY_SET).qualified_name == "Phone::set_owner"

    def test_capwords_setter_name(self):
        """Test that CapWords properties are reported as Set<Name>."""
        table = build_interception_table(Handset)

        assert table.lookup("Owner", MemberKind.PROPERTY_SET).qualified_name == "Handset::SetOwner"
        assert table.lookup("Call", MemberKind.METHOD).qualified_name == "Handset::Call"

    def test_setter_name_rules(self):
        """Test setter naming for both conventions."""
        assert setter_name("Owner") == "SetOwner"
        assert setter_name("owner") == "set_owner"

    # =========================================================================
    # Members never reported
    # =========================================================================

    def test_marked_method_is_excluded(self, table):
        """Test that event_report(ignore=True) excludes a method."""
        assert self.bucket(table, "send_message") == Bucket.EXCLUDED

    def test_marked_property_is_excluded(self, table):
        """Test that a marked property stays excluded after adding a setter."""
        assert self.bucket(table, "battery", MemberKind.PROPERTY_GET) == Bucket.EXCLUDED
        assert self.bucket(table, "battery", MemberKind.PROPERTY_SET) == Bucket.EXCLUDED

    def test_final_and_private_methods_are_non_overridable(self, table):
        """Test that final and underscore methods are never reported."""
        assert self.bucket(table, "serial_number") == Bucket.NON_OVERRIDABLE
        assert self.bucket(table, "_diagnostics") == Bucket.NON_OVERRIDABLE

    def test_class_level_field_is_non_overridable(self, table):
        """Test that plain class data is forwarded as a field."""
        for kind in (MemberKind.PROPERTY_GET, MemberKind.PROPERTY_SET, MemberKind.PROPERTY_DELETE):
            assert self.bucket(table, "device_id", kind) == Bucket.NON_OVERRIDABLE

    def test_staticmethod_left_to_class_lookup(self, table):
        """Test that static methods get no table entry."""
        assert table.lookup("supported_networks", MemberKind.METHOD) is None

    def test_root_operations_are_foundational(self, table):
        """Test that repr/eq/hash and friends are always present and foundational."""
        for name in ("__repr__", "__str__", "__eq__", "__hash__"):
            assert self.bucket(table, name) == Bucket.FOUNDATIONAL

    def test_object_machinery_is_not_in_table(self, table):
        """Test that construction and attribute hooks are never intercepted."""
        for name in ("__init__", "__new__", "__getattribute__", "__setattr__"):
            assert table.lookup(name, MemberKind.METHOD) is None

    def test_reported_members(self, table):
        """Test the list of reported entries."""
        names = sorted(spec.qualified_name for spec in table.reported_members)
        assert names == ["Phone::call", "Phone::charge", "Phone::dial", "Phone::set_owner"]

    # =========================================================================
    # Inheritance
    # =========================================================================

    def test_declaring_type_names_inherited_members(self):
        """Test that inherited members keep their declaring type in the name."""
        table = build_interception_table(SmartPhone)

        assert table.lookup("browse", MemberKind.METHOD).qualified_name == "SmartPhone::browse"
        assert table.lookup("call", MemberKind.METHOD).qualified_name == "Phone::call"

    def test_coroutine_members_are_flagged(self):
        """Test that async methods are detected."""
        table = build_interception_table(SmartPhone)

        spec = table.lookup("sync_contacts", MemberKind.METHOD)
        assert spec.is_coroutine is True
        assert spec.bucket == Bucket.METHOD

    def test_abstract_members_are_classified(self):
        """Test an ABC capability class."""
        table = build_interception_table(Modem)

        assert table.lookup("connect", MemberKind.METHOD).bucket == Bucket.METHOD
        assert table.lookup("signal", MemberKind.PROPERTY_GET).bucket == Bucket.PROPERTY_GET


class TestClassificationFailures:
    """Test suite for configuration defects."""

    def test_config_exclusion(self):
        """Test that excluded names from configuration are honoured."""
        table = build_interception_table(Phone, frozenset({"charge", "owner"}))

        assert table.lookup("charge", MemberKind.METHOD).bucket == Bucket.EXCLUDED
        assert table.lookup("owner", MemberKind.PROPERTY_SET).bucket == Bucket.EXCLUDED
        assert table.lookup("call", MemberKind.METHOD).bucket == Bucket.METHOD

    def test_unknown_excluded_name_fails_fast(self):
        """Test that excluding an undeclared member is a configuration error."""
        with pytest.raises(ProxyConfigurationError) as exc:
            build_interception_table(Phone, frozenset({"teleport"}))

        assert "teleport" in str(exc.value)

    def test_unsupported_descriptor_fails_fast(self):
        """Test that unknown descriptor kinds are rejected."""

        class Opaque:
            def __get__(self, instance, owner=None):
                return 42

        class Gadget:
            reading = Opaque()

        with pytest.raises(ProxyConfigurationError) as exc:
            build_interception_table(Gadget)

        assert "Gadget.reading" in str(exc.value)

    def test_non_class_rejected(self):
        """Test that only classes can be classified."""
        with pytest.raises(TypeError):
            build_interception_table(Phone())

    def test_classify_member_ignores_dunder_data(self):
        """Test that dunder data entries are skipped."""
        assert classify_member("__doc__", Phone, "docs") == []
        assert classify_member("__slots__", Phone, ()) == []


class TestMarkerScope:
    """Test suite for exclusion markers on redefined properties."""

    def test_subclass_marker_leaves_base_property_reported(self):
        """Test that marking a subclass redefinition does not exclude the base property."""
        base = build_interception_table(Amplifier)
        derived = build_interception_table(MutedAmplifier)

        assert base.lookup("level", MemberKind.PROPERTY_SET).bucket == Bucket.PROPERTY_SET
        assert derived.lookup("level", MemberKind.PROPERTY_SET).bucket == Bucket.EXCLUDED
        assert read_marker(Amplifier.level) is None
        assert read_marker(MutedAmplifier.level).ignore is True

    def test_marker_survives_added_setter(self):
        """Test that the marker follows a property through .setter."""
        assert read_marker(Phone.battery).ignore is True
        assert isinstance(Phone.battery, property)


class TestProtocolOperations:
    """Test suite for dunder members declared by the capability class."""

    @pytest.fixture
    def table(self):
        return build_interception_table(Dialer)

    def test_declared_protocol_operations_are_reported(self, table):
        """Test that __call__, __getitem__, __setitem__ and __len__ are methods."""
        for name in ("__call__", "__getitem__", "__setitem__", "__len__"):
            spec = table.lookup(name, MemberKind.METHOD)
            assert spec.bucket == Bucket.METHOD
            assert spec.qualified_name == f"Dialer::{name}"

    def test_declared_root_operation_stays_foundational(self, table):
        """Test that redefining __repr__ keeps it out of the report."""
        assert table.lookup("__repr__", MemberKind.METHOD).bucket == Bucket.FOUNDATIONAL
        assert table.lookup("__repr__", MemberKind.METHOD).declaring_type is Dialer

    def test_excluded_protocol_operation(self):
        """Test that protocol operations can be excluded by configuration."""
        table = build_interception_table(Dialer, frozenset({"__len__"}))

        assert table.lookup("__len__", MemberKind.METHOD).bucket == Bucket.EXCLUDED
