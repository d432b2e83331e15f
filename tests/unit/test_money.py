"""
Unit tests for money and quantity helpers.
"""

import pytest
from decimal import Decimal

from orderdesk.exceptions import ValidationError
from orderdesk.utils.money import apply_percentage, money_str, round2, to_decimal, to_money, to_quantity
from orderdesk.utils.formatters import money_br, percent_br


class TestRounding:
    """Tests for round2 and apply_percentage."""

    def test_round_half_up(self):
        assert round2(Decimal('2.675')) == Decimal('2.68')
        assert round2(Decimal('2.665')) == Decimal('2.67')

    def test_round_negative_half_away_from_zero(self):
        assert round2(Decimal('-1.005')) == Decimal('-1.01')

    def test_round_accepts_int_and_float(self):
        assert round2(3) == Decimal('3.00')
        assert round2(0.1) == Decimal('0.10')

    def test_nan_propagates(self):
        assert round2(Decimal('NaN')).is_nan()

    def test_apply_percentage_is_not_rounded(self):
        assert apply_percentage(Decimal('19.99'), Decimal('15')) == Decimal('2.9985')


class TestBoundaryConversion:
    """Tests for to_decimal / to_quantity / to_money."""

    @pytest.mark.parametrize('value,expected', [
        (3, Decimal('3')),
        ('12.50', Decimal('12.50')),
        (1.5, Decimal('1.5')),
        (Decimal('7'), Decimal('7')),
    ])
    def test_to_decimal(self, value, expected):
        assert to_decimal(value) == expected

    @pytest.mark.parametrize('value', [None, True, 'abc', 'NaN', 'Infinity', float('nan'), [1]])
    def test_to_decimal_rejects(self, value):
        with pytest.raises(ValidationError):
            to_decimal(value)

    @pytest.mark.parametrize('value,expected', [(3, 3), ('4', 4), (5.0, 5)])
    def test_to_quantity(self, value, expected):
        assert to_quantity(value) == expected

    @pytest.mark.parametrize('value', [0, -2, 1.5, '2.5', None])
    def test_to_quantity_rejects(self, value):
        with pytest.raises(ValidationError) as exc:
            to_quantity(value)
        assert exc.value.status_code == 400

    def test_to_money_default(self):
        assert to_money(None, 'shipping_rate', default=0) == Decimal('0')

    def test_to_money_required_without_default(self):
        with pytest.raises(ValidationError):
            to_money('', 'price')

    def test_to_money_negative(self):
        with pytest.raises(ValidationError) as exc:
            to_money('-5', 'shipping_rate')
        assert exc.value.field == 'shipping_rate'


class TestFormatting:
    """Tests for JSON and printed money formats."""

    def test_money_str(self):
        assert money_str(Decimal('270')) == '270.00'
        assert money_str(None) == '0.00'

    def test_money_br(self):
        assert money_br(Decimal('1500')) == 'R$ 1.500,00'
        assert money_br(Decimal('13.5')) == 'R$ 13,50'
        assert money_br(None) == '-'

    def test_percent_br(self):
        assert percent_br(Decimal('10.00')) == '10%'
        assert percent_br(Decimal('12.50')) == '12,5%'
