# Overview: Pytest coverage for payload validation and amount parsing.

from decimal import Decimal

import pytest

from poscore.amounts import money, quantity, to_decimal, COST_PLACES
from poscore.errors import ValidationError
from poscore.models import Register, RegisterSession, StockMovement
from poscore.validation import ModelValidationPolicy, require_int_arg, validate_payload

REGISTER_POLICY = ModelValidationPolicy(
    writable_fields={"location_id", "register_number", "name", "is_active"},
    required_on_create={"location_id", "register_number", "name"},
)


class TestValidatePayload:
    def test_clean_payload(self):
        patch = validate_payload(
            model=Register,
            payload={"location_id": "3", "register_number": " REG-01 ", "name": "Front"},
            policy=REGISTER_POLICY,
        )
        assert patch == {"location_id": 3, "register_number": "REG-01", "name": "Front"}

    def test_identity_fields_dropped(self):
        patch = validate_payload(
            model=Register,
            payload={"location_id": 1, "register_number": "R", "name": "N", "vendor_id": 7, "user_id": 2},
            policy=REGISTER_POLICY,
        )
        assert "vendor_id" not in patch
        assert "user_id" not in patch

    def test_missing_required(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_payload(model=Register, payload={"name": "Front"}, policy=REGISTER_POLICY)
        assert exc_info.value.details["missing"] == ["location_id", "register_number"]

    def test_partial_skips_required(self):
        patch = validate_payload(model=Register, payload={"name": "Back"}, policy=REGISTER_POLICY, partial=True)
        assert patch == {"name": "Back"}

    @pytest.mark.parametrize("value", [1.5, "1e3", "2.0", "", True, [1]])
    def test_integer_strictness(self, value):
        with pytest.raises(ValidationError):
            validate_payload(
                model=Register,
                payload={"location_id": value, "register_number": "R", "name": "N"},
                policy=REGISTER_POLICY,
            )

    def test_boolean_must_be_bool(self):
        with pytest.raises(ValidationError):
            validate_payload(model=Register, payload={"is_active": "yes"}, policy=REGISTER_POLICY, partial=True)

    def test_string_length_enforced(self):
        with pytest.raises(ValidationError):
            validate_payload(
                model=Register,
                payload={"location_id": 1, "register_number": "R" * 33, "name": "N"},
                policy=REGISTER_POLICY,
            )

    def test_blank_required_string(self):
        with pytest.raises(ValidationError):
            validate_payload(model=Register, payload={"name": "   "}, policy=REGISTER_POLICY, partial=True)

    def test_numeric_quantized_to_column_scale(self):
        policy = ModelValidationPolicy(writable_fields={"opening_cash"})
        patch = validate_payload(model=RegisterSession, payload={"opening_cash": "10.005"}, policy=policy)
        assert patch["opening_cash"] == Decimal("10.01")

    def test_extra_field_borrows_column_type(self):
        policy = ModelValidationPolicy(
            writable_fields={"location_id"},
            extra_fields={"location_id": "to_location_id"},
        )
        assert validate_payload(model=StockMovement, payload={"location_id": "4"}, policy=policy) == {"location_id": 4}

    def test_non_object_payload(self):
        with pytest.raises(ValidationError):
            validate_payload(model=Register, payload=[1, 2], policy=REGISTER_POLICY)


class TestAmounts:
    def test_money_rounds_half_up(self):
        assert money("2.345") == Decimal("2.35")
        assert money(0.1) == Decimal("0.10")

    def test_quantity_scale(self):
        assert quantity("1.0005") == Decimal("1.001")

    def test_cost_scale(self):
        assert to_decimal(3, "cost_per_unit", places=COST_PLACES) == Decimal("3.0000")

    @pytest.mark.parametrize("value", [None, True, "", "abc", "NaN", "Infinity", "1e12"])
    def test_rejects_junk(self, value):
        with pytest.raises(ValidationError):
            money(value)


class TestRequireIntArg:
    def test_parses(self):
        assert require_int_arg({"limit": "20"}, "limit") == 20

    def test_absent(self):
        assert require_int_arg({}, "limit") is None
        with pytest.raises(ValidationError):
            require_int_arg({}, "limit", required=True)

    def test_junk(self):
        with pytest.raises(ValidationError):
            require_int_arg({"limit": "ten"}, "limit")
