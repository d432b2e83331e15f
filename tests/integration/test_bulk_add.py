"""
Integration tests for POST /api/orders/bulk-add-items.
"""

from decimal import Decimal


class TestBulkAddItems:
    """Tests for adding products to an order by code."""

    def test_partial_success(self, client, draft_order, product, cheap_product, discount):
        response = client.post('/api/orders/bulk-add-items', json={
            'order_id': draft_order['id'],
            'discount_id': discount.id,
            'client_ref': 'PO-123',
            'items': [
                {'code': ' p-001 ', 'quantity': 2},
                {'code': 'NOPE', 'quantity': 1},
                {'code': 'P-002', 'quantity': 0},
                {'code': 'P-002', 'quantity': 5},
                {'quantity': 1},
            ]
        })

        assert response.status_code == 200
        body = response.get_json()
        assert body['statistics'] == {'total': 5, 'found': 2, 'not_found': 1, 'failed': 2, 'inserted': 2}
        assert body['results']['not_found'] == ['NOPE']
        assert [f['index'] for f in body['results']['failed']] == [2, 4]
        assert body['discount_applied']['name'] == 'Promo 10'

        found = body['results']['found']
        assert found[0]['code'] == 'P-001'
        assert found[0]['unit_price'] == '90.00'
        assert found[1]['unit_price'] == '17.99'
        assert found[1]['pending_quantity'] == 5
        assert found[1]['client_ref'] == 'PO-123'

        # 300.00 already on the order + 180.00 + 89.95
        order = body['order']
        assert Decimal(order['subtotal']) == Decimal('569.95')
        assert Decimal(order['total']) == Decimal('569.95')
        assert order['has_pending_items'] is True

    def test_totals_consistent_after_bulk_add(self, client, draft_order, cheap_product, discount):
        client.post('/api/orders/bulk-add-items', json={
            'order_id': draft_order['id'],
            'discount_id': discount.id,
            'items': [{'code': 'P-002', 'quantity': 5}]
        })

        totals = client.get(f"/api/orders/{draft_order['id']}/totals").get_json()
        assert totals['needs_update'] is False

    def test_inactive_discount_falls_back_to_none(self, client, draft_order, product, inactive_discount):
        response = client.post('/api/orders/bulk-add-items', json={
            'order_id': draft_order['id'],
            'discount_id': inactive_discount.id,
            'items': [{'code': 'P-001', 'quantity': 1}]
        })

        body = response.get_json()
        assert body['discount_applied'] is None
        assert body['results']['found'][0]['unit_price'] == '100.00'

    def test_inactive_product_is_not_found(self, client, draft_order, inactive_product):
        response = client.post('/api/orders/bulk-add-items', json={
            'order_id': draft_order['id'],
            'items': [{'code': 'P-OLD', 'quantity': 1}]
        })

        body = response.get_json()
        assert body['results']['not_found'] == ['P-OLD']
        assert Decimal(body['order']['total']) == Decimal('300.00')

    def test_too_many_items(self, client, draft_order, product):
        items = [{'code': 'P-001', 'quantity': 1}] * 51
        response = client.post('/api/orders/bulk-add-items', json={'order_id': draft_order['id'], 'items': items})
        assert response.status_code == 400

    def test_empty_list(self, client, draft_order):
        response = client.post('/api/orders/bulk-add-items', json={'order_id': draft_order['id'], 'items': []})
        assert response.status_code == 400

    def test_missing_order(self, client, product):
        response = client.post('/api/orders/bulk-add-items', json={
            'order_id': 999,
            'items': [{'code': 'P-001', 'quantity': 1}]
        })
        assert response.status_code == 404

    def test_locked_order(self, client, draft_order, product):
        url = f"/api/orders/{draft_order['id']}"
        client.put(url, json={'status': 'cancelled'})

        response = client.post('/api/orders/bulk-add-items', json={
            'order_id': draft_order['id'],
            'items': [{'code': 'P-001', 'quantity': 1}]
        })
        assert response.status_code == 409
