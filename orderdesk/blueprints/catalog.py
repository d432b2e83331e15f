"""Catalog blueprint - lookups used while building an order."""
from flask import Blueprint, request, jsonify

from orderdesk.database import get_session
from orderdesk.services import catalog_service

catalog_bp = Blueprint('catalog', __name__, url_prefix='/api')

QUICK_SEARCH_LIMIT = 10


def _active_only():
    return request.args.get('active', '').lower() in ('1', 'true', 'yes')


@catalog_bp.route('/discounts', methods=['GET'])
def list_discounts():
    discounts = catalog_service.list_discounts(get_session(), active_only=_active_only())
    return jsonify({'success': True, 'discounts': discounts})


@catalog_bp.route('/payment-conditions', methods=['GET'])
def list_payment_conditions():
    conditions = catalog_service.list_payment_conditions(get_session(), active_only=_active_only())
    return jsonify({'success': True, 'payment_conditions': conditions})


@catalog_bp.route('/products/quick-search', methods=['GET'])
def quick_search_products():
    """Active products by code prefix or name fragment (?q=)."""
    products = catalog_service.quick_search_products(
        get_session(),
        request.args.get('q', ''),
        limit=QUICK_SEARCH_LIMIT
    )
    return jsonify({'success': True, 'products': [p.to_dict() for p in products]})
