"""
Unit tests for the pricing engine (line pricing, pending stock, aggregation,
reconciliation).
"""

import pytest
from decimal import Decimal

from orderdesk.exceptions import ValidationError
from orderdesk.utils.money import round2
from orderdesk.services.pricing_service import (
    Discount, LineItemInput, StoredTotals, aggregate_order, drift_fields,
    needs_reconciliation, price_batch, price_line_item, price_line_items, resolve_pending
)

PROMO = Discount(id=1, discount_percentage=Decimal('10'), commission_percentage=Decimal('5'), name='Promo 10')


def line(base='100.00', quantity=3, discount=None, stock=5, **kwargs):
    return LineItemInput(
        product_id=1,
        quantity=quantity,
        base_price=Decimal(base),
        discount=discount,
        stock_available=stock,
        **kwargs
    )


class TestPriceLineItem:
    """Tests for price_line_item."""

    def test_discounted_line_with_commission(self):
        """100.00 x 3 at 10% off, 5% commission, enough stock."""
        result = price_line_item(line(discount=PROMO))

        assert result.unit_price_original == Decimal('100.00')
        assert result.unit_price_final == Decimal('90.00')
        assert result.line_subtotal == Decimal('270.00')
        assert result.discount_amount == Decimal('30.00')
        assert result.commission_amount == Decimal('13.50')
        assert result.pending_quantity == 0
        assert result.has_pending is False
        assert result.discount_id == 1

    def test_no_discount_keeps_base_price(self):
        result = price_line_item(line(base='42.37', quantity=2))

        assert result.unit_price_final == Decimal('42.37')
        assert result.discount_amount == Decimal('0.00')
        assert result.commission_amount == Decimal('0.00')
        assert result.discount_id is None

    def test_zero_percent_discount(self):
        zero = Discount(id=2, discount_percentage=Decimal('0'), commission_percentage=Decimal('0'))
        result = price_line_item(line(discount=zero))

        assert result.unit_price_final == Decimal('100.00')
        assert result.discount_amount == Decimal('0.00')

    def test_full_discount_is_a_free_item(self):
        free = Discount(id=3, discount_percentage=Decimal('100'), commission_percentage=Decimal('5'))
        result = price_line_item(line(discount=free))

        assert result.unit_price_final == Decimal('0.00')
        assert result.line_subtotal == Decimal('0.00')
        assert result.discount_amount == Decimal('300.00')
        assert result.commission_amount == Decimal('0.00')

    def test_unit_price_rounds_half_up(self):
        """19.99 - 15% = 16.9915 -> 16.99; subtotal uses the rounded unit price."""
        rule = Discount(id=4, discount_percentage=Decimal('15'))
        result = price_line_item(line(base='19.99', quantity=7, discount=rule))

        assert result.unit_price_final == Decimal('16.99')
        assert result.line_subtotal == Decimal('118.93')
        # discount amount keeps the unrounded per-unit discount: 7 * 2.9985
        assert result.discount_amount == Decimal('20.99')

    def test_half_cent_rounds_up(self):
        rule = Discount(id=5, discount_percentage=Decimal('50'))
        result = price_line_item(line(base='0.05', quantity=1, discount=rule))

        assert result.unit_price_final == Decimal('0.03')

    def test_percentage_above_hundred_never_goes_negative(self):
        rule = Discount(id=6, discount_percentage=Decimal('150'))
        result = price_line_item(line(discount=rule))

        assert result.unit_price_final == Decimal('0.00')
        assert result.line_subtotal == Decimal('0.00')

    def test_zero_base_price_is_valid(self):
        result = price_line_item(line(base='0'))
        assert result.line_subtotal == Decimal('0.00')

    def test_client_reference_is_carried(self):
        result = price_line_item(line(client_reference='PO-77'))
        assert result.client_reference == 'PO-77'

    @pytest.mark.parametrize('quantity', [0, -1])
    def test_non_positive_quantity_rejected(self, quantity):
        with pytest.raises(ValidationError) as exc:
            price_line_item(line(quantity=quantity))
        assert exc.value.field == 'quantity'

    @pytest.mark.parametrize('quantity', [1.5, '2', True, None])
    def test_non_integer_quantity_rejected(self, quantity):
        with pytest.raises(ValidationError):
            price_line_item(line(quantity=quantity))

    def test_negative_base_price_rejected(self):
        with pytest.raises(ValidationError) as exc:
            price_line_item(line(base='-1.00'))
        assert exc.value.field == 'base_price'

    @pytest.mark.parametrize('base', ['0.005', '19.999', '1.0001'])
    def test_sub_cent_base_price_rejected(self, base):
        with pytest.raises(ValidationError) as exc:
            price_line_item(line(base=base, quantity=1, stock=1))
        assert exc.value.field == 'base_price'

    def test_nan_base_price_rejected(self):
        with pytest.raises(ValidationError):
            price_line_item(line(base='NaN'))

    def test_negative_stock_rejected(self):
        with pytest.raises(ValidationError):
            price_line_item(line(stock=-2))


class TestResolvePending:
    """Tests for the pending-quantity resolver."""

    def test_enough_stock(self):
        assert resolve_pending(5, 5) == (0, False)

    def test_one_short(self):
        assert resolve_pending(6, 5) == (1, True)

    def test_no_stock(self):
        assert resolve_pending(4, 0) == (4, True)

    def test_shortage_on_line(self):
        result = price_line_item(line(base='50.00', quantity=10, stock=4))

        assert result.pending_quantity == 6
        assert result.has_pending is True
        assert result.line_subtotal == Decimal('500.00')


class TestAggregateOrder:
    """Tests for aggregate_order."""

    def test_two_lines_with_shipping(self):
        results = price_line_items([line(discount=PROMO), line(discount=PROMO)])
        aggregate = aggregate_order(results, Decimal('15.00'))

        assert aggregate.subtotal == Decimal('540.00')
        assert aggregate.total_discount == Decimal('60.00')
        assert aggregate.total_commission == Decimal('27.00')
        assert aggregate.shipping_rate == Decimal('15.00')
        assert aggregate.total == Decimal('555.00')
        assert aggregate.has_pending_items is False
        assert aggregate.items_count == 2

    def test_discount_is_not_subtracted_twice(self):
        aggregate = aggregate_order(price_line_items([line(discount=PROMO)]))
        assert aggregate.total == aggregate.subtotal == Decimal('270.00')

    def test_empty_order(self):
        aggregate = aggregate_order([], Decimal('25.00'))

        assert aggregate.subtotal == Decimal('0.00')
        assert aggregate.total == Decimal('25.00')
        assert aggregate.has_pending_items is False
        assert aggregate.items_count == 0

    def test_any_pending_line_flags_order(self):
        results = price_line_items([line(stock=10), line(quantity=11, stock=10)])
        assert aggregate_order(results).has_pending_items is True

    def test_negative_shipping_rejected(self):
        with pytest.raises(ValidationError):
            aggregate_order([], Decimal('-1'))

    def test_to_dict_uses_two_decimal_strings(self):
        data = aggregate_order([], 25).to_dict()
        assert data['total'] == '25.00'
        assert data['subtotal'] == '0.00'


class TestReconciliation:
    """Tests for drift detection between stored and recomputed totals."""

    def computed(self):
        return aggregate_order(price_line_items([line(discount=PROMO), line(discount=PROMO)]), Decimal('15.00'))

    def test_identical_totals(self):
        stored = StoredTotals(subtotal=Decimal('540.00'), total_discount=Decimal('60.00'), total=Decimal('555.00'))
        assert needs_reconciliation(self.computed(), stored) is False

    def test_one_cent_is_within_tolerance(self):
        stored = StoredTotals(subtotal=Decimal('540.01'), total_discount=Decimal('60.00'), total=Decimal('555.01'))
        assert needs_reconciliation(self.computed(), stored) is False

    def test_two_cents_is_drift(self):
        stored = StoredTotals(subtotal=Decimal('540.02'), total_discount=Decimal('60.00'), total=Decimal('555.02'))

        assert needs_reconciliation(self.computed(), stored) is True
        assert drift_fields(self.computed(), stored) == ['subtotal', 'total']

    def test_discount_drift_alone(self):
        stored = StoredTotals(subtotal=Decimal('540.00'), total_discount=Decimal('0'), total=Decimal('555.00'))
        assert drift_fields(self.computed(), stored) == ['total_discount']

    def test_missing_stored_values_count_as_zero(self):
        assert needs_reconciliation(aggregate_order([]), StoredTotals()) is False
        assert needs_reconciliation(self.computed(), StoredTotals()) is True

    def test_non_numeric_stored_value_drifts(self):
        stored = StoredTotals(subtotal='abc', total_discount=Decimal('60.00'), total=Decimal('555.00'))
        assert drift_fields(self.computed(), stored) == ['subtotal']

    def test_custom_tolerance(self):
        stored = StoredTotals(subtotal=Decimal('540.50'), total_discount=Decimal('60.00'), total=Decimal('555.50'))
        assert needs_reconciliation(self.computed(), stored, tolerance=Decimal('1.00')) is False


class TestPriceBatch:
    """Tests for price_batch (independent pricing of each line)."""

    def test_invalid_line_does_not_affect_others(self):
        batch = price_batch([line(), line(quantity=0), line(base='10.00', quantity=1)])

        assert [index for index, _ in batch.results] == [0, 2]
        assert [index for index, _ in batch.failures] == [1]
        assert batch.results[1][1].line_subtotal == Decimal('10.00')

    def test_price_line_items_fails_fast(self):
        with pytest.raises(ValidationError):
            price_line_items([line(), line(quantity=0)])


BASE_PRICES = ['0.00', '0.01', '0.05', '0.99', '1.00', '9.99', '19.99', '33.33', '100.00', '1234.57']
DISCOUNT_PERCENTAGES = ['0', '0.5', '1', '5', '10', '12.5', '15', '33.33', '50', '66.67', '99', '99.99', '100']

MIXED_ORDERS = [
    [],
    [('100.00', 3, '10', 5)],
    [('100.00', 3, '10', 5), ('100.00', 3, '10', 5)],
    [('19.99', 7, '15', 3), ('0.05', 1, '50', 0), ('1234.57', 2, '0', 10)],
    [('33.33', 3, '33.33', 1), ('9.99', 11, '12.5', 11), ('0.01', 99, '99.99', 0)],
]


def mixed_lines(spec):
    return [
        line(base=base, quantity=quantity, stock=stock,
             discount=Discount(id=index, discount_percentage=Decimal(pct), commission_percentage=Decimal('3')))
        for index, (base, quantity, pct, stock) in enumerate(spec)
    ]


class TestPricingInvariants:
    """Properties that hold for every input, not just the worked examples."""

    @pytest.mark.parametrize('base', BASE_PRICES)
    @pytest.mark.parametrize('pct', DISCOUNT_PERCENTAGES)
    def test_unit_price_within_zero_and_base(self, base, pct):
        rule = Discount(id=1, discount_percentage=Decimal(pct))
        result = price_line_item(line(base=base, quantity=1, discount=rule))

        assert Decimal('0') <= result.unit_price_final <= Decimal(base)
        assert result.discount_amount >= 0

    @pytest.mark.parametrize('base', BASE_PRICES)
    @pytest.mark.parametrize('pct', ['0', '12.5', '100'])
    def test_pricing_is_deterministic(self, base, pct):
        item = line(base=base, quantity=4, discount=Discount(id=1, discount_percentage=Decimal(pct)))
        assert price_line_item(item) == price_line_item(item)

    @pytest.mark.parametrize('spec', MIXED_ORDERS)
    @pytest.mark.parametrize('rate', ['0', '0.01', '15.00', '25.5'])
    def test_totals_add_up(self, spec, rate):
        results = price_line_items(mixed_lines(spec))
        aggregate = aggregate_order(results, Decimal(rate))

        assert aggregate.subtotal == round2(sum((r.line_subtotal for r in results), Decimal('0')))
        assert aggregate.total_discount == round2(sum((r.discount_amount for r in results), Decimal('0')))
        assert aggregate.total == round2(aggregate.subtotal + Decimal(rate))
        assert aggregate.has_pending_items == any(r.has_pending for r in results)
        assert aggregate.items_count == len(spec)

    @pytest.mark.parametrize('spec', MIXED_ORDERS)
    def test_aggregate_never_drifts_from_itself(self, spec):
        aggregate = aggregate_order(price_line_items(mixed_lines(spec)), Decimal('15.00'))

        assert needs_reconciliation(aggregate, aggregate) is False
        assert drift_fields(aggregate, aggregate) == []

    @pytest.mark.parametrize('quantity,stock', [(1, 0), (5, 5), (6, 5), (10, 4), (3, 100)])
    def test_pending_never_negative(self, quantity, stock):
        result = price_line_item(line(quantity=quantity, stock=stock))

        assert result.pending_quantity == max(0, quantity - stock)
        assert result.has_pending == (result.pending_quantity > 0)
