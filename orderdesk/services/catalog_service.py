"""
Catalog lookups used by the order endpoints: products, clients, discounts,
payment conditions.

Lookups raise NotFoundError; the fallback policy (e.g. "unknown discount
means no discount") belongs to the caller.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.orm import Session

from orderdesk.models import Product, Client, Discount, PaymentCondition
from orderdesk.services import pricing_service
from orderdesk.exceptions import BusinessLogicError, NotFoundError, ValidationError
from orderdesk.services.cache_service import get_cache

logger = logging.getLogger(__name__)


def parse_id(value: Any, field: str = 'id') -> int:
    """Convert an identifier coming from JSON or a query string to int."""
    if isinstance(value, bool) or value is None or value == '':
        raise ValidationError(f'{field} is required', field=field)
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a numeric identifier', field=field)
    if parsed <= 0:
        raise ValidationError(f'{field} must be a numeric identifier', field=field)
    return parsed


def normalize_code(code: Any) -> str:
    """Product codes are matched trimmed and upper-cased."""
    return str(code).strip().upper()


def get_product(session: Session, product_id: Any) -> Product:
    """Get an active product by id."""
    product = session.query(Product).filter(Product.id == parse_id(product_id, 'product_id')).first()
    if not product:
        raise NotFoundError(f'Product {product_id} not found')
    if not product.active:
        raise BusinessLogicError(f'Product "{product.display_name}" is not active')
    return product


def get_products(session: Session, product_ids: Iterable[Any]) -> Dict[int, Product]:
    """Batch-fetch active products by id. Any missing id raises NotFoundError."""
    ids = {parse_id(pid, 'product_id') for pid in product_ids}
    if not ids:
        return {}
    products = session.query(Product).filter(Product.id.in_(ids)).all()
    products_dict = {p.id: p for p in products}

    missing = sorted(ids - set(products_dict))
    if missing:
        raise NotFoundError(
            'One or more products were not found',
            payload={'missing_product_ids': missing}
        )
    for product in products:
        if not product.active:
            raise BusinessLogicError(f'Product "{product.display_name}" is not active')
    return products_dict


def find_products_by_codes(session: Session, codes: Iterable[str]) -> Dict[str, Product]:
    """Map normalized codes to active products; unknown codes are simply absent."""
    normalized = {normalize_code(c) for c in codes if c is not None}
    if not normalized:
        return {}
    products = session.query(Product).filter(
        Product.code.in_(normalized),
        Product.active.is_(True)
    ).all()
    return {normalize_code(p.code): p for p in products}


def get_discount(session: Session, discount_id: Any, active_only: bool = True) -> pricing_service.Discount:
    """Resolve a discount id into the pricing rule."""
    query = session.query(Discount).filter(Discount.id == parse_id(discount_id, 'discount_id'))
    if active_only:
        query = query.filter(Discount.active.is_(True))
    discount = query.first()
    if not discount:
        raise NotFoundError(f'Discount {discount_id} not found or inactive')
    return discount.to_pricing()


def get_discount_or_none(session: Session, discount_id: Any) -> Optional[pricing_service.Discount]:
    """
    Resolve a discount, treating missing, "none" or inactive discounts as no
    discount (zero discount, zero commission).
    """
    if discount_id in (None, '', 'none'):
        return None
    try:
        return get_discount(session, discount_id)
    except (NotFoundError, ValidationError) as e:
        logger.warning(f"[CATALOG] Discount {discount_id!r} ignored: {e.message}")
        return None


def get_client(session: Session, client_id: Any) -> Client:
    client = session.query(Client).filter(Client.id == parse_id(client_id, 'client_id')).first()
    if not client:
        raise NotFoundError(f'Client {client_id} not found')
    return client


def get_payment_condition(session: Session, payment_condition_id: Any) -> Optional[PaymentCondition]:
    """Payment condition is optional on an order; an unknown id is still an error."""
    if payment_condition_id in (None, ''):
        return None
    condition = session.query(PaymentCondition).filter(
        PaymentCondition.id == parse_id(payment_condition_id, 'payment_condition_id')
    ).first()
    if not condition:
        raise NotFoundError(f'Payment condition {payment_condition_id} not found')
    return condition


def list_discounts(session: Session, active_only: bool = False) -> List[Dict[str, Any]]:
    """List discounts ordered by name (cached)."""
    def loader():
        query = session.query(Discount)
        if active_only:
            query = query.filter(Discount.active.is_(True))
        return [d.to_dict() for d in query.order_by(Discount.name.asc()).all()]

    return get_cache().memoize(
        'discounts',
        'active' if active_only else 'all',
        loader,
        ttl=current_app.config.get('CACHE_DISCOUNTS_TTL')
    )


def list_payment_conditions(session: Session, active_only: bool = False) -> List[Dict[str, Any]]:
    """List payment conditions ordered by name (cached)."""
    def loader():
        query = session.query(PaymentCondition)
        if active_only:
            query = query.filter(PaymentCondition.active.is_(True))
        return [c.to_dict() for c in query.order_by(PaymentCondition.name.asc()).all()]

    return get_cache().memoize(
        'payment_conditions',
        'active' if active_only else 'all',
        loader,
        ttl=current_app.config.get('CACHE_PAYMENT_CONDITIONS_TTL')
    )


def quick_search_products(session: Session, term: str, limit: int = 10) -> List[Product]:
    """Search active products by code prefix or name fragment."""
    term = (term or '').strip()
    if not term:
        return []
    return session.query(Product).filter(
        Product.active.is_(True),
        or_(
            Product.code.ilike(f'{term}%'),
            Product.name.ilike(f'%{term}%')
        )
    ).order_by(Product.code.asc()).limit(limit).all()
