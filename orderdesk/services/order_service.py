"""
Order service - create, edit, list and reconcile orders.

Every mutation of the line items or the shipping rate reprices through
pricing_service and writes the aggregate in the same transaction as the
items, so a reader never sees a half-replaced item set.
"""

import logging
from datetime import datetime, date, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orderdesk.blueprints.metrics import order_totals_drift_total, order_items_priced_total
from orderdesk.models import Order, OrderItem, OrderStatus, Client, can_transition, parse_status
from orderdesk.exceptions import OrderDeskError, BusinessLogicError, NotFoundError, ValidationError, \
    InvalidStatusTransitionError
from orderdesk.services import catalog_service
from orderdesk.services.pricing_service import (
    LineItemInput, aggregate_order, drift_fields, price_batch, price_line_items
)
from orderdesk.utils.money import money_str, to_money, to_quantity

logger = logging.getLogger(__name__)

CREATE_STATUSES = {OrderStatus.DRAFT, OrderStatus.CONFIRMED}
HEADER_FIELDS = ('client_id', 'payment_condition_id', 'notes', 'shipping_rate', 'items')


class OrderStore:
    """
    Order persistence over one request's SQLAlchemy session.

    Writes are staged on the session; callers commit or roll back the whole
    unit (order row + items) at once.
    """

    def __init__(self, session: Session):
        self.session = session

    def get(self, order_id: Any, lock: bool = False) -> Order:
        query = self.session.query(Order).filter(Order.id == catalog_service.parse_id(order_id, 'order_id'))
        if lock:
            query = query.with_for_update()
        order = query.first()
        if not order:
            raise NotFoundError(f'Order {order_id} not found')
        return order

    def next_order_number(self) -> str:
        """Sequential numbering: last numeric order number + 1, starting at "1"."""
        last = self.session.query(Order.order_number).order_by(Order.id.desc()).first()
        if not last:
            return '1'
        try:
            return str(int(last[0]) + 1)
        except (TypeError, ValueError):
            return str(self.session.query(Order).count() + 1)

    def add(self, order: Order) -> None:
        self.session.add(order)
        self.session.flush()

    def append_items(self, order: Order, results) -> List[OrderItem]:
        rows = [OrderItem.from_result(result) for result in results]
        for row in rows:
            order.items.append(row)
        self.session.flush()
        return rows

    def replace_items(self, order: Order, results) -> List[OrderItem]:
        """Delete-then-insert of the whole item set."""
        order.items.clear()
        self.session.flush()
        return self.append_items(order, results)

    def write_totals(self, order: Order, aggregate) -> None:
        order.apply_aggregate(aggregate)
        order.updated_at = datetime.now(timezone.utc)
        self.session.flush()

    def delete(self, order: Order) -> None:
        self.session.delete(order)
        self.session.flush()


def _is_order_number_clash(error: IntegrityError) -> bool:
    """True when the unique constraint on orders.order_number fired."""
    return 'order_number' in str(error.orig)


def _stored_aggregate(order: Order, shipping_rate: Optional[Decimal] = None):
    """Aggregate recomputed from the rows currently attached to the order."""
    shipping = order.shipping_rate if shipping_rate is None else shipping_rate
    return aggregate_order(
        [item.to_line_result() for item in order.items],
        shipping if shipping is not None else Decimal('0')
    )


def _clean_text(value: Any, max_length: Optional[int] = None) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if max_length:
        text = text[:max_length]
    return text or None


def _build_line_inputs(session: Session, raw_items: Any) -> List[LineItemInput]:
    """
    Resolve request lines ({product_id, quantity, discount_id?, client_ref?})
    against the catalog. Lookup defaults are applied here, once.
    """
    if not isinstance(raw_items, list):
        raise ValidationError('items must be a list', field='items')

    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f'Item {index + 1}: invalid item', field='items')

    products = catalog_service.get_products(session, [raw.get('product_id') for raw in raw_items])
    discounts = {}

    inputs = []
    for index, raw in enumerate(raw_items):
        try:
            product = products[catalog_service.parse_id(raw.get('product_id'), 'product_id')]
            quantity = to_quantity(raw.get('quantity'))

            discount = None
            discount_id = raw.get('discount_id')
            if discount_id not in (None, '', 'none'):
                if discount_id not in discounts:
                    discounts[discount_id] = catalog_service.get_discount(session, discount_id)
                discount = discounts[discount_id]
        except ValidationError as e:
            raise ValidationError(f'Item {index + 1}: {e.message}', field=e.field)

        inputs.append(LineItemInput(
            product_id=product.id,
            quantity=quantity,
            base_price=product.price,
            discount=discount,
            client_reference=_clean_text(raw.get('client_ref'), 64),
            stock_available=max(product.stock or 0, 0)
        ))
    return inputs


def _transition(order: Order, requested: Any) -> bool:
    """Move the order to `requested`. Returns False when it is already there."""
    status = parse_status(requested)
    if status is None:
        raise ValidationError(f"Unknown status '{requested}'", field='status')
    if status == order.status_enum:
        return False
    if not can_transition(order.status_enum, status):
        raise InvalidStatusTransitionError(order.status, status)
    order.status = status.value
    return True


def create_order(session: Session, data: Dict[str, Any]) -> Order:
    """
    Create an order with its items.

    Steps:
        1. Validate client, payment condition and status
        2. Price every line from the current product price, stock and discount
        3. Aggregate totals (total = subtotal + shipping)
        4. Persist order and items in one transaction
    """
    if not isinstance(data, dict):
        raise ValidationError('Invalid order payload')

    store = OrderStore(session)
    try:
        client = catalog_service.get_client(session, data.get('client_id'))
        condition = catalog_service.get_payment_condition(session, data.get('payment_condition_id'))

        status = parse_status(data.get('status') or OrderStatus.DRAFT.value)
        if status not in CREATE_STATUSES:
            raise ValidationError('New orders must be draft or confirmed', field='status')

        shipping_rate = to_money(data.get('shipping_rate'), 'shipping_rate', default=0)
        results = price_line_items(_build_line_inputs(session, data.get('items') or []))
        aggregate = aggregate_order(results, shipping_rate)

        order = Order(
            order_number=store.next_order_number(),
            client_id=client.id,
            payment_condition_id=condition.id if condition else None,
            status=status.value,
            notes=_clean_text(data.get('notes'))
        )
        order.apply_aggregate(aggregate)
        store.add(order)
        store.append_items(order, results)

        session.commit()
    except IntegrityError as e:
        session.rollback()
        if _is_order_number_clash(e):
            raise BusinessLogicError('Order number already taken, please retry.', status_code=409)
        raise
    except OrderDeskError as e:
        session.rollback()
        raise e
    except Exception:
        session.rollback()
        raise

    order_items_priced_total.labels(operation='create').inc(len(results))
    logger.info(
        f"[ORDERS] Order {order.order_number} created: {aggregate.items_count} items, "
        f"total={aggregate.total}, pending={aggregate.has_pending_items}"
    )
    return order


def get_order(session: Session, order_id: Any) -> Order:
    return OrderStore(session).get(order_id)


def _parse_date(value: Any, field: str) -> date:
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise ValidationError(f'{field} must be a date (YYYY-MM-DD)', field=field)


def _parse_positive_int(value: Any, field: str, default: int) -> int:
    if value in (None, ''):
        return default
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a positive integer', field=field)
    if parsed < 1:
        raise ValidationError(f'{field} must be a positive integer', field=field)
    return parsed


def list_orders(session: Session, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    List orders, newest first.

    Filters: search (order number, client code or name), status, client_id,
    date_from / date_to (inclusive days), has_pending, page, limit.
    """
    filters = filters or {}
    max_limit = current_app.config.get('ORDERS_PAGE_LIMIT_MAX', 100)
    page = _parse_positive_int(filters.get('page'), 'page', 1)
    limit = min(_parse_positive_int(filters.get('limit'), 'limit', 10), max_limit)

    query = session.query(Order).outerjoin(Client, Client.id == Order.client_id)

    search = (filters.get('search') or '').strip()
    if search:
        query = query.filter(
            or_(
                Order.order_number.ilike(f'%{search}%'),
                Client.code.ilike(f'%{search}%'),
                Client.name.ilike(f'%{search}%')
            )
        )

    if filters.get('status'):
        status = parse_status(filters['status'])
        if status is None:
            raise ValidationError(f"Unknown status '{filters['status']}'", field='status')
        query = query.filter(Order.status == status.value)

    if filters.get('client_id'):
        query = query.filter(Order.client_id == catalog_service.parse_id(filters['client_id'], 'client_id'))

    if filters.get('date_from'):
        start = _parse_date(filters['date_from'], 'date_from')
        query = query.filter(Order.created_at >= datetime.combine(start, datetime.min.time()))

    if filters.get('date_to'):
        end = _parse_date(filters['date_to'], 'date_to') + timedelta(days=1)
        query = query.filter(Order.created_at < datetime.combine(end, datetime.min.time()))

    has_pending = filters.get('has_pending')
    if has_pending not in (None, ''):
        query = query.filter(Order.has_pending_items.is_(str(has_pending).lower() in ('1', 'true', 'yes')))

    total_count = query.count()
    orders = query.order_by(Order.created_at.desc(), Order.id.desc()) \
        .offset((page - 1) * limit).limit(limit).all()

    return {
        'orders': orders,
        'total_count': total_count,
        'page': page,
        'limit': limit,
        'total_pages': (total_count + limit - 1) // limit,
    }


def update_order(session: Session, order_id: Any, data: Dict[str, Any]) -> Order:
    """
    Update an order.

    - Status only: validated transition, totals untouched.
    - Header and/or items: allowed while the order is draft or confirmed;
      items are repriced and replaced atomically and the aggregate rewritten.
    """
    if not isinstance(data, dict):
        raise ValidationError('Invalid order payload')

    store = OrderStore(session)
    try:
        order = store.get(order_id, lock=True)
        edited = [name for name in HEADER_FIELDS if name in data]
        requested_status = data.get('status')

        if not edited and requested_status in (None, ''):
            raise ValidationError('Nothing to update')

        if edited:
            if not order.is_editable:
                raise BusinessLogicError(
                    f'Order {order.order_number} can no longer be edited (status: {order.status})',
                    status_code=409
                )

            if 'client_id' in data:
                order.client_id = catalog_service.get_client(session, data['client_id']).id
            if 'payment_condition_id' in data:
                condition = catalog_service.get_payment_condition(session, data['payment_condition_id'])
                order.payment_condition_id = condition.id if condition else None
            if 'notes' in data:
                order.notes = _clean_text(data['notes'])

            shipping_rate = order.shipping_rate
            if 'shipping_rate' in data:
                shipping_rate = to_money(data['shipping_rate'], 'shipping_rate', default=0)

            if 'items' in data:
                results = price_line_items(_build_line_inputs(session, data['items']))
                store.replace_items(order, results)

            store.write_totals(order, _stored_aggregate(order, shipping_rate))

        if requested_status not in (None, ''):
            _transition(order, requested_status)
            order.updated_at = datetime.now(timezone.utc)

        session.commit()
    except OrderDeskError as e:
        session.rollback()
        raise e
    except Exception:
        session.rollback()
        raise

    logger.info(f"[ORDERS] Order {order.order_number} updated ({', '.join(edited) or 'status'})")
    return order


def delete_order(session: Session, order_id: Any) -> str:
    """Delete a draft or confirmed order with its items. Returns the order number."""
    store = OrderStore(session)
    try:
        order = store.get(order_id, lock=True)
        if not order.is_deletable:
            raise BusinessLogicError('Only draft or confirmed orders can be deleted')
        order_number = order.order_number
        store.delete(order)
        session.commit()
    except OrderDeskError as e:
        session.rollback()
        raise e
    except Exception:
        session.rollback()
        raise

    logger.info(f"[ORDERS] Order {order_number} deleted")
    return order_number


def list_order_items(session: Session, order_id: Any) -> List[OrderItem]:
    """Items grouped by client_ref (nulls last), then in insertion order."""
    order = OrderStore(session).get(order_id)
    return session.query(OrderItem).filter(OrderItem.order_id == order.id).order_by(
        OrderItem.client_ref.is_(None),
        OrderItem.client_ref.asc(),
        OrderItem.created_at.asc(),
        OrderItem.id.asc()
    ).all()


def add_order_item(session: Session, order_id: Any, data: Dict[str, Any]) -> OrderItem:
    """Price one line, append it and refresh the order aggregate."""
    if not isinstance(data, dict):
        raise ValidationError('Invalid item payload')

    store = OrderStore(session)
    try:
        order = store.get(order_id, lock=True)
        if not order.is_editable:
            raise BusinessLogicError(
                f'Order {order.order_number} can no longer be edited (status: {order.status})',
                status_code=409
            )

        results = price_line_items(_build_line_inputs(session, [data]))
        row = store.append_items(order, results)[0]
        store.write_totals(order, _stored_aggregate(order))
        session.commit()
    except OrderDeskError as e:
        session.rollback()
        raise e
    except Exception:
        session.rollback()
        raise

    order_items_priced_total.labels(operation='add').inc()
    logger.info(f"[ORDERS] Item added to order {order.order_number}: product={row.product_id} qty={row.quantity}")
    return row


def bulk_add_items(session: Session, order_id: Any, items: Any, discount_id: Any = None,
                   client_ref: Any = None) -> Dict[str, Any]:
    """
    Add many products to an order by product code.

    Each entry is validated and priced on its own: unknown codes go to
    `not_found`, invalid entries to `failed`, and neither affects the rest.
    All priced lines are inserted together with the new aggregate.
    An unknown or inactive discount falls back to no discount.
    """
    max_items = current_app.config.get('BULK_ADD_MAX_ITEMS', 50)
    if not isinstance(items, list) or not items:
        raise ValidationError('Product list is required', field='items')
    if len(items) > max_items:
        raise ValidationError(f'At most {max_items} products per request', field='items')

    store = OrderStore(session)
    try:
        order = store.get(order_id, lock=True)
        if not order.is_editable:
            raise BusinessLogicError(
                f'Order {order.order_number} can no longer be edited (status: {order.status})',
                status_code=409
            )

        discount = catalog_service.get_discount_or_none(session, discount_id)
        reference = _clean_text(client_ref, 64)

        codes = [entry.get('code') for entry in items if isinstance(entry, dict) and isinstance(entry.get('code'), str)]
        products = catalog_service.find_products_by_codes(session, codes)

        not_found = []
        failed = []
        inputs = []
        entries = []
        for index, entry in enumerate(items):
            code = entry.get('code') if isinstance(entry, dict) else None
            if not isinstance(code, str) or not code.strip():
                failed.append({'index': index, 'code': None, 'error': 'Product code is required'})
                continue
            code = catalog_service.normalize_code(code)

            product = products.get(code)
            if not product:
                not_found.append(code)
                continue

            try:
                quantity = to_quantity(entry.get('quantity'))
            except ValidationError as e:
                failed.append({'index': index, 'code': code, 'error': e.message})
                continue

            inputs.append(LineItemInput(
                product_id=product.id,
                quantity=quantity,
                base_price=product.price,
                discount=discount,
                client_reference=reference,
                stock_available=max(product.stock or 0, 0)
            ))
            entries.append((index, code, product))

        batch = price_batch(inputs)
        for position, error in batch.failures:
            index, code, _ = entries[position]
            failed.append({'index': index, 'code': code, 'error': error.message})

        found = []
        if batch.results:
            store.append_items(order, [result for _, result in batch.results])
            store.write_totals(order, _stored_aggregate(order))
            for position, result in batch.results:
                _, code, product = entries[position]
                found.append({
                    'code': code,
                    'name': product.display_name,
                    'application': product.application,
                    'stock': product.stock,
                    **result.to_dict()
                })

        session.commit()
    except OrderDeskError as e:
        session.rollback()
        raise e
    except Exception:
        session.rollback()
        raise

    failed.sort(key=lambda f: f['index'])
    order_items_priced_total.labels(operation='bulk_add').inc(len(found))
    logger.info(
        f"[ORDERS] Bulk add to order {order.order_number}: {len(found)} inserted, "
        f"{len(not_found)} not found, {len(failed)} failed"
    )
    return {
        'success': True,
        'statistics': {
            'total': len(items),
            'found': len(found),
            'not_found': len(not_found),
            'failed': len(failed),
            'inserted': len(found),
        },
        'results': {
            'found': found,
            'not_found': not_found,
            'failed': failed,
        },
        'discount_applied': {
            'id': discount.id,
            'name': discount.name,
            'percentage': str(discount.discount_percentage),
        } if discount else None,
        'order': order.to_dict(),
    }


def _tolerance() -> Decimal:
    return Decimal(str(current_app.config.get('RECONCILIATION_TOLERANCE', '0.01')))


def get_order_totals(session: Session, order_id: Any) -> Dict[str, Any]:
    """
    Recompute totals from the stored items and compare them with the cached
    columns. Read-only.
    """
    order = OrderStore(session).get(order_id)
    computed = _stored_aggregate(order)
    drifted = drift_fields(computed, order, _tolerance())

    if drifted:
        order_totals_drift_total.labels(source='totals').inc()
        logger.warning(
            f"[RECONCILE] Order {order.order_number} drifted on {', '.join(drifted)}: "
            f"stored subtotal={order.subtotal} total={order.total}, "
            f"computed subtotal={computed.subtotal} total={computed.total}"
        )

    return {
        'order_id': order.id,
        'order_number': order.order_number,
        **computed.to_dict(),
        'saved_subtotal': money_str(order.subtotal),
        'saved_total_discount': money_str(order.total_discount),
        'saved_total': money_str(order.total),
        'needs_update': bool(drifted),
        'drift_fields': drifted,
    }


def recalculate_order_totals(session: Session, order_id: Any) -> Dict[str, Any]:
    """Write the totals recomputed from the stored items back to the order."""
    store = OrderStore(session)
    try:
        order = store.get(order_id, lock=True)
        computed = _stored_aggregate(order)
        drifted = drift_fields(computed, order, _tolerance())
        changed = bool(drifted) \
            or order.total_commission != computed.total_commission \
            or bool(order.has_pending_items) != computed.has_pending_items

        if changed:
            store.write_totals(order, computed)
        session.commit()
    except OrderDeskError as e:
        session.rollback()
        raise e
    except Exception:
        session.rollback()
        raise

    if changed:
        logger.info(f"[RECONCILE] Order {order.order_number} totals rewritten (drift: {', '.join(drifted) or 'none'})")
    return {
        'order_id': order.id,
        'order_number': order.order_number,
        **computed.to_dict(),
        'updated': changed,
        'drift_fields': drifted,
    }


def reconcile_orders(session: Session, fix: bool = False) -> List[Dict[str, Any]]:
    """
    Check every order for drift between cached and recomputed totals.
    With fix=True the recomputed values are written back in one transaction.
    """
    tolerance = _tolerance()
    report = []
    try:
        for order in session.query(Order).order_by(Order.id.asc()).all():
            computed = _stored_aggregate(order)
            drifted = drift_fields(computed, order, tolerance)
            if not drifted:
                continue
            order_totals_drift_total.labels(source='reconcile').inc()
            report.append({
                'order_id': order.id,
                'order_number': order.order_number,
                'drift_fields': drifted,
                'stored_total': money_str(order.total),
                'computed_total': money_str(computed.total),
            })
            if fix:
                order.apply_aggregate(computed)
                order.updated_at = datetime.now(timezone.utc)
        if fix and report:
            session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"[RECONCILE] {len(report)} orders drifted (fix={fix})")
    return report
