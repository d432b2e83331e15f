"""
Order pricing and reconciliation engine.

Pure, stateless functions: every call works on the snapshot it is given and
never touches the database, so it can run concurrently for any number of
orders. Persistence and lookups live in order_service / catalog_service.

Flow for an order edit:
    price_line_item (per item, includes pending resolution)
        -> aggregate_order (all items + shipping)
        -> needs_reconciliation (when comparing against a stored order)
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from orderdesk.exceptions import ValidationError
from orderdesk.utils.money import ZERO, apply_percentage, money_str, round2, to_decimal

RECONCILIATION_TOLERANCE = Decimal('0.01')
RECONCILED_FIELDS = ('subtotal', 'total_discount', 'total')


@dataclass(frozen=True)
class Discount:
    """Named percentage rule applied to a line (commission may be 0)."""
    id: Any
    discount_percentage: Decimal = ZERO
    commission_percentage: Decimal = ZERO
    name: Optional[str] = None


@dataclass(frozen=True)
class LineItemInput:
    """Requested order line, already resolved against product and discount lookups."""
    product_id: Any
    quantity: int
    base_price: Decimal
    discount: Optional[Discount] = None
    client_reference: Optional[str] = None
    stock_available: int = 0


@dataclass(frozen=True)
class LineItemResult:
    """Computed order line. Monetary fields are rounded to 2 decimals."""
    product_id: Any
    quantity: int
    unit_price_original: Decimal
    unit_price_final: Decimal
    line_subtotal: Decimal
    discount_amount: Decimal
    commission_amount: Decimal
    pending_quantity: int
    has_pending: bool
    discount_id: Any = None
    discount_percentage: Decimal = ZERO
    commission_percentage: Decimal = ZERO
    client_reference: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product_id': self.product_id,
            'quantity': self.quantity,
            'original_unit_price': money_str(self.unit_price_original),
            'unit_price': money_str(self.unit_price_final),
            'total_price': money_str(self.line_subtotal),
            'discount_id': self.discount_id,
            'discount_percentage': str(self.discount_percentage),
            'discount_amount': money_str(self.discount_amount),
            'commission_percentage': str(self.commission_percentage),
            'commission_amount': money_str(self.commission_amount),
            'client_ref': self.client_reference,
            'pending_quantity': self.pending_quantity,
            'has_pending': self.has_pending,
        }


@dataclass(frozen=True)
class OrderAggregate:
    """Order-level totals. Authoritative; stored order columns are a cache of this."""
    subtotal: Decimal
    total_discount: Decimal
    total_commission: Decimal
    shipping_rate: Decimal
    total: Decimal
    has_pending_items: bool
    items_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'subtotal': money_str(self.subtotal),
            'total_discount': money_str(self.total_discount),
            'total_commission': money_str(self.total_commission),
            'shipping_rate': money_str(self.shipping_rate),
            'total': money_str(self.total),
            'has_pending_items': self.has_pending_items,
            'items_count': self.items_count,
        }


@dataclass(frozen=True)
class StoredTotals:
    """Aggregate fields as previously persisted on an order row."""
    subtotal: Optional[Decimal] = None
    total_discount: Optional[Decimal] = None
    total: Optional[Decimal] = None


def _whole_number(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, Decimal)):
        raise ValidationError(f'{field_name} must be a whole number', field=field_name)
    if isinstance(value, Decimal):
        if not value.is_finite() or value != value.to_integral_value():
            raise ValidationError(f'{field_name} must be a whole number', field=field_name)
        value = int(value)
    return value


def resolve_pending(quantity: int, stock_available: int) -> Tuple[int, bool]:
    """
    Split a requested quantity against available stock.

    Pending quantities never block an order; they are recorded so the order
    can be fulfilled once stock arrives.
    """
    pending_quantity = max(0, quantity - stock_available)
    return pending_quantity, pending_quantity > 0


def price_line_item(item: LineItemInput) -> LineItemResult:
    """
    Price a single order line.

    Steps:
        1. discount per unit = base * discount% / 100 (kept unrounded)
        2. unit price final  = round2(base - discount per unit)
        3. line subtotal     = round2(quantity * unit price final)
        4. discount amount   = round2(quantity * discount per unit)
        5. commission        = round2(line subtotal * commission% / 100)

    Raises:
        ValidationError: non-positive quantity, negative base price or one
            with more than 2 decimals, negative stock or non-finite numbers.
    """
    quantity = _whole_number(item.quantity, 'quantity')
    if quantity <= 0:
        raise ValidationError('quantity must be greater than 0', field='quantity')

    base_price = to_decimal(item.base_price, 'base_price')
    if base_price < 0:
        raise ValidationError('base_price cannot be negative', field='base_price')
    if base_price != round2(base_price):
        raise ValidationError('base_price must have at most 2 decimal places', field='base_price')

    stock_available = _whole_number(item.stock_available, 'stock_available')
    if stock_available < 0:
        raise ValidationError('stock_available cannot be negative', field='stock_available')

    discount = item.discount
    discount_pct = to_decimal(discount.discount_percentage, 'discount_percentage') if discount else ZERO
    commission_pct = to_decimal(discount.commission_percentage, 'commission_percentage') if discount else ZERO

    # Percentages are clamped by callers; still never price below 0 or above base
    discount_per_unit = min(max(apply_percentage(base_price, discount_pct), ZERO), base_price)

    unit_price_final = round2(base_price - discount_per_unit)
    line_subtotal = round2(quantity * unit_price_final)
    discount_amount = round2(quantity * discount_per_unit)
    commission_amount = max(round2(apply_percentage(line_subtotal, commission_pct)), ZERO)

    pending_quantity, has_pending = resolve_pending(quantity, stock_available)

    return LineItemResult(
        product_id=item.product_id,
        quantity=quantity,
        unit_price_original=round2(base_price),
        unit_price_final=unit_price_final,
        line_subtotal=line_subtotal,
        discount_amount=discount_amount,
        commission_amount=commission_amount,
        pending_quantity=pending_quantity,
        has_pending=has_pending,
        discount_id=discount.id if discount else None,
        discount_percentage=discount_pct,
        commission_percentage=commission_pct,
        client_reference=item.client_reference,
    )


def price_line_items(items: Iterable[LineItemInput]) -> List[LineItemResult]:
    """Price every line, failing fast on the first invalid one."""
    return [price_line_item(item) for item in items]


def aggregate_order(results: Iterable[LineItemResult], shipping_rate: Any = ZERO) -> OrderAggregate:
    """
    Sum priced lines into order totals.

    total = subtotal + shipping. The discount is already netted out of every
    unit_price_final, so it is not subtracted a second time.
    An empty list is a valid draft: zero totals and total == shipping.
    """
    shipping = to_decimal(shipping_rate, 'shipping_rate')
    if shipping < 0:
        raise ValidationError('shipping_rate cannot be negative', field='shipping_rate')

    subtotal = ZERO
    total_discount = ZERO
    total_commission = ZERO
    has_pending_items = False
    items_count = 0

    for result in results:
        subtotal += result.line_subtotal
        total_discount += result.discount_amount
        total_commission += result.commission_amount
        has_pending_items = has_pending_items or result.has_pending
        items_count += 1

    subtotal = round2(subtotal)
    return OrderAggregate(
        subtotal=subtotal,
        total_discount=round2(total_discount),
        total_commission=round2(total_commission),
        shipping_rate=round2(shipping),
        total=round2(subtotal + shipping),
        has_pending_items=has_pending_items,
        items_count=items_count,
    )


def drift_fields(computed: OrderAggregate, stored: Any,
                 tolerance: Decimal = RECONCILIATION_TOLERANCE) -> List[str]:
    """
    Return the aggregate fields whose stored value differs from the computed
    one by strictly more than the tolerance. Missing stored values count as 0;
    non-numeric stored values always drift.
    """
    drifted = []
    for name in RECONCILED_FIELDS:
        raw = getattr(stored, name, None)
        if raw is None:
            raw = ZERO
        try:
            stored_value = to_decimal(raw, name)
        except ValidationError:
            drifted.append(name)
            continue
        if abs(getattr(computed, name) - stored_value) > tolerance:
            drifted.append(name)
    return drifted


def needs_reconciliation(computed: OrderAggregate, stored: Any,
                         tolerance: Decimal = RECONCILIATION_TOLERANCE) -> bool:
    """
    True when stored totals drifted from the freshly computed aggregate.

    Read-only: the caller decides whether to write the computed values back.
    """
    return bool(drift_fields(computed, stored, tolerance))


@dataclass(frozen=True)
class BatchPricing:
    """
    Outcome of pricing a batch where each line succeeds or fails on its own.
    Both lists hold (position in the input, outcome) pairs.
    """
    results: List[Tuple[int, LineItemResult]] = field(default_factory=list)
    failures: List[Tuple[int, ValidationError]] = field(default_factory=list)


def price_batch(items: Iterable[LineItemInput]) -> BatchPricing:
    """
    Price lines independently: an invalid line is reported by its position
    and does not affect the results of the others.
    """
    results = []
    failures = []
    for index, item in enumerate(items):
        try:
            results.append((index, price_line_item(item)))
        except ValidationError as e:
            failures.append((index, e))
    return BatchPricing(results=results, failures=failures)
