"""Orders blueprint - JSON API for orders, items and totals."""
from flask import Blueprint, request, jsonify, send_file, current_app

from orderdesk.database import get_session
from orderdesk.exceptions import ValidationError
from orderdesk.services import order_service
from orderdesk.services.order_pdf_service import render_order_pdf

orders_bp = Blueprint('orders', __name__, url_prefix='/api/orders')


def _json_body():
    """Request body as a dict; anything else is a 400."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


@orders_bp.route('', methods=['GET'])
def list_orders():
    """
    List orders with filters.

    Query params: search, status, client_id, date_from, date_to,
    has_pending, page, limit.
    """
    result = order_service.list_orders(get_session(), request.args.to_dict())
    return jsonify({
        'success': True,
        'orders': [order.to_dict() for order in result['orders']],
        'pagination': {
            'total_count': result['total_count'],
            'page': result['page'],
            'limit': result['limit'],
            'total_pages': result['total_pages'],
        }
    })


@orders_bp.route('', methods=['POST'])
def create_order():
    order = order_service.create_order(get_session(), _json_body())
    return jsonify({'success': True, 'order': order.to_dict(include_items=True)}), 201


@orders_bp.route('/<int:order_id>', methods=['GET'])
def get_order(order_id):
    order = order_service.get_order(get_session(), order_id)
    return jsonify({'success': True, 'order': order.to_dict(include_items=True)})


@orders_bp.route('/<int:order_id>', methods=['PUT'])
def update_order(order_id):
    order = order_service.update_order(get_session(), order_id, _json_body())
    return jsonify({'success': True, 'order': order.to_dict(include_items=True)})


@orders_bp.route('/<int:order_id>', methods=['DELETE'])
def delete_order(order_id):
    order_number = order_service.delete_order(get_session(), order_id)
    return jsonify({'success': True, 'message': f'Order {order_number} deleted'})


@orders_bp.route('/<int:order_id>/items', methods=['GET'])
def list_items(order_id):
    items = order_service.list_order_items(get_session(), order_id)
    return jsonify({'success': True, 'items': [item.to_dict() for item in items]})


@orders_bp.route('/<int:order_id>/items', methods=['POST'])
def add_item(order_id):
    session = get_session()
    item = order_service.add_order_item(session, order_id, _json_body())
    order = order_service.get_order(session, order_id)
    return jsonify({'success': True, 'item': item.to_dict(), 'order': order.to_dict()}), 201


@orders_bp.route('/bulk-add-items', methods=['POST'])
def bulk_add_items():
    """
    Add products by code to an order.

    Body: {order_id, items: [{code, quantity}], discount_id?, client_ref?}
    Unknown codes and invalid entries are reported, not fatal.
    """
    data = _json_body()
    result = order_service.bulk_add_items(
        get_session(),
        data.get('order_id'),
        data.get('items'),
        discount_id=data.get('discount_id'),
        client_ref=data.get('client_ref')
    )
    return jsonify(result)


@orders_bp.route('/<int:order_id>/totals', methods=['GET'])
def get_totals(order_id):
    """Recomputed totals vs stored totals (read-only)."""
    totals = order_service.get_order_totals(get_session(), order_id)
    return jsonify({'success': True, **totals})


@orders_bp.route('/<int:order_id>/totals', methods=['PUT'])
def recalculate_totals(order_id):
    totals = order_service.recalculate_order_totals(get_session(), order_id)
    return jsonify({'success': True, **totals})


@orders_bp.route('/<int:order_id>/pdf', methods=['GET'])
def download_pdf(order_id):
    order = order_service.get_order(get_session(), order_id)

    business_info = {
        'name': current_app.config.get('BUSINESS_NAME', ''),
        'address': current_app.config.get('BUSINESS_ADDRESS', ''),
        'phone': current_app.config.get('BUSINESS_PHONE', ''),
        'email': current_app.config.get('BUSINESS_EMAIL', ''),
    }

    pdf_buffer = render_order_pdf(order, business_info)
    current_app.logger.info(f"[ORDERS] PDF generated for order {order.order_number}")

    return send_file(
        pdf_buffer,
        mimetype='application/pdf',
        as_attachment=True,
        download_name=f'pedido_{order.order_number}.pdf'
    )
