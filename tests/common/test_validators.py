from decimal import Decimal

import pytest

from src.shule_system.shule_system.common.validators import (
    parse_decimal,
    parse_int,
    require_positive,
    round_half_up,
)
from src.shule_system.shule_system.core.exceptions import ValidationError


@pytest.mark.parametrize("value", ["NaN", "sNaN", "Infinity", "-Infinity", float("nan"), float("inf")])
def test_non_finite_amounts_are_rejected(value):
    with pytest.raises(ValidationError):
        parse_decimal(value, "amount")
    with pytest.raises(ValidationError):
        require_positive(value, "amount")


def test_parse_decimal_keeps_cents():
    assert parse_decimal("12.349", "amount") == Decimal("12.35")
    assert parse_decimal(7, "amount") == Decimal("7.00")


def test_infinite_integer_is_a_validation_error():
    with pytest.raises(ValidationError):
        parse_int(float("inf"), "capacity")


@pytest.mark.parametrize(
    "value, places, expected",
    [(2.5, 0, Decimal("3")), (12.5, 0, Decimal("13")), (Decimal("0.125"), 2, Decimal("0.13")), (66.666, 2, Decimal("66.67"))],
)
def test_round_half_up(value, places, expected):
    assert round_half_up(value, places) == expected
