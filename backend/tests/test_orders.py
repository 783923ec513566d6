"""
Order ledger tests.

Covers submission validation, server-side pricing (default), the client
pricing compatibility mode, the read gate on GET /api/orders and the
fail-once behaviour of order writes.
"""

from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError

from shopoms.models import Order, OrderItem
from shopoms.services import order_service
from shopoms.services.order_service import InvalidOrder, PriceMismatch

from conftest import make_product


def _payload(product_id, quantity=2, subtotal=5.0, tax=0.5, total=5.5, **extra):
    body = {
        'customer_name': 'Walk-in',
        'items': [{'product': product_id, 'quantity': quantity}],
        'subtotal': subtotal,
        'tax': tax,
        'total': total,
    }
    body.update(extra)
    return body


@pytest.fixture
def latte(db_session):
    return make_product(db_session, "Latte", 250, category="Coffee")


# =============================================================================
# VALIDATION
# =============================================================================


class TestOrderValidation:

    @pytest.mark.parametrize(
        "payload,message",
        [
            ({'items': [], 'subtotal': 1, 'tax': 0, 'total': 1}, "at least one item"),
            ({'subtotal': 1, 'tax': 0, 'total': 1}, "at least one item"),
            ({'items': 'latte', 'subtotal': 1, 'tax': 0, 'total': 1}, "at least one item"),
            ({'items': [{'product': 1, 'quantity': 1}], 'tax': 0, 'total': 1}, "must be numbers"),
            ({'items': [{'product': 1, 'quantity': 1}], 'subtotal': '1', 'tax': 0, 'total': 1}, "must be a number"),
            ({'items': [{'product': 1, 'quantity': 1}], 'subtotal': True, 'tax': 0, 'total': 1}, "must be a number"),
            ({'items': [{'product': 1, 'quantity': 0}], 'subtotal': 1, 'tax': 0, 'total': 1}, ">= 1"),
            ({'items': [{'product': 1, 'quantity': 1.5}], 'subtotal': 1, 'tax': 0, 'total': 1}, "integer"),
            ({'items': [{'product': 1}], 'subtotal': 1, 'tax': 0, 'total': 1}, "missing a quantity"),
            ({'items': [{'quantity': 1}], 'subtotal': 1, 'tax': 0, 'total': 1}, "missing a product"),
            ({'items': [{'product': 1, 'quantity': 1}], 'subtotal': 1, 'tax': 0.5, 'total': 1}, "equal total"),
        ],
    )
    def test_invalid_payloads_rejected(self, app, db_session, payload, message):
        with pytest.raises(InvalidOrder) as exc:
            order_service.submit_order(payload)
        assert message in str(exc.value)
        assert db_session.query(Order).count() == 0

    def test_empty_items_returns_400_and_persists_nothing(self, client, db_session):
        resp = client.post('/api/orders', json={'items': [], 'subtotal': 0, 'tax': 0, 'total': 0})
        assert resp.status_code == 400
        assert resp.json['success'] is False
        assert db_session.query(Order).count() == 0
        assert db_session.query(OrderItem).count() == 0

    @pytest.mark.parametrize(
        "item,message",
        [
            ({'product': 10**20, 'quantity': 1}, "cannot exceed"),
            ({'product': 1, 'quantity': 10**20}, "cannot exceed"),
            ({'product': 1, 'quantity': 2**31}, "cannot exceed"),
            ({'product': 1, 'quantity': '²'}, "integer"),
            ({'product': '١', 'quantity': 1}, "integer"),
        ],
    )
    def test_out_of_range_or_odd_integers_return_400(self, client, db_session, item, message):
        resp = client.post('/api/orders', json={'items': [item], 'subtotal': 1, 'tax': 0, 'total': 1})
        assert resp.status_code == 400
        assert message in resp.json['error']
        assert db_session.query(Order).count() == 0

    def test_largest_column_integer_accepted_as_digit_string(self, app, monkeypatch):
        monkeypatch.setitem(app.config, 'ORDER_PRICING_MODE', 'client')
        order = order_service.submit_order(
            _payload(1, quantity=str(2**31 - 1), subtotal=1, tax=0, total=1)
        )
        assert order.items[0].quantity == 2**31 - 1

    def test_non_json_body_returns_400(self, client):
        resp = client.post('/api/orders', data="nope", content_type="text/plain")
        assert resp.status_code == 400


# =============================================================================
# SERVER PRICING (default)
# =============================================================================


class TestServerPricing:

    def test_accepts_matching_totals(self, client, latte, db_session):
        resp = client.post('/api/orders', json=_payload(latte.id))
        assert resp.status_code == 201
        order = resp.json['order']
        assert resp.json['success'] is True
        assert order['status'] == "Open"
        assert order['subtotal'] == 5.0
        assert order['tax'] == 0.5
        assert order['total'] == 5.5
        assert order['customer_name'] == "Walk-in"
        assert order['created_at'].endswith("Z")
        assert order['items'] == [{'product_id': latte.id, 'quantity': 2, 'unit_price': 2.5}]

    def test_within_tolerance_stores_server_figures(self, app, latte, db_session):
        order = order_service.submit_order(_payload(latte.id, subtotal=5.01, tax=0.5, total=5.51))
        assert (order.subtotal_cents, order.tax_cents, order.total_cents) == (500, 50, 550)

    def test_rejects_understated_total(self, client, latte, db_session):
        resp = client.post('/api/orders', json=_payload(latte.id, subtotal=1.0, tax=0.1, total=1.1))
        assert resp.status_code == 400
        details = resp.json['details']
        assert details['total'] == {'submitted': 1.1, 'expected': 5.5}
        assert db_session.query(Order).count() == 0

    def test_price_mismatch_is_an_invalid_order(self, app, latte):
        with pytest.raises(PriceMismatch):
            order_service.submit_order(_payload(latte.id, tax=0.0, total=5.0))

    def test_uses_current_catalog_price(self, app, latte, db_session):
        latte.price_cents = 300
        db_session.commit()
        with pytest.raises(PriceMismatch):
            order_service.submit_order(_payload(latte.id))
        order = order_service.submit_order(_payload(latte.id, subtotal=6.0, tax=0.6, total=6.6))
        assert order.items[0].unit_price_cents == 300

    def test_unknown_product_rejected(self, client, db_session):
        resp = client.post('/api/orders', json=_payload(404))
        assert resp.status_code == 400
        assert resp.json['details'] == {'product_ids': [404]}

    def test_multiple_lines_keep_order(self, app, db_session):
        tea = make_product(db_session, "Tea", 200)
        cake = make_product(db_session, "Cake", 350)
        payload = {
            'items': [
                {'product': cake.id, 'quantity': 1},
                {'product_id': tea.id, 'quantity': 3},
                {'product': {'id': cake.id}, 'quantity': 2},
            ],
            'subtotal': 16.5,
            'tax': 1.65,
            'total': 18.15,
        }
        order = order_service.submit_order(payload)
        assert [(i.product_id, i.quantity) for i in order.items] == [(cake.id, 1), (tea.id, 3), (cake.id, 2)]
        assert order.total_cents == 1815

    def test_tax_rounds_half_up(self, app, db_session, monkeypatch):
        from decimal import Decimal
        monkeypatch.setitem(app.config, 'ORDER_TAX_RATE', Decimal("0.0825"))
        item = make_product(db_session, "Bagel", 199)
        # 1.99 * 0.0825 = 0.164175 -> 0.16
        order = order_service.submit_order(_payload(item.id, quantity=1, subtotal=1.99, tax=0.16, total=2.15))
        assert order.tax_cents == 16


# =============================================================================
# CLIENT PRICING (compatibility mode)
# =============================================================================


class TestClientPricing:

    @pytest.fixture(autouse=True)
    def client_mode(self, app, monkeypatch):
        monkeypatch.setitem(app.config, 'ORDER_PRICING_MODE', 'client')

    def test_client_totals_stored_as_given(self, app, latte):
        order = order_service.submit_order(_payload(latte.id, subtotal=1.0, tax=0.1, total=1.1))
        assert (order.subtotal_cents, order.tax_cents, order.total_cents) == (100, 10, 110)
        assert order.items[0].unit_price_cents is None

    def test_unknown_products_are_not_resolved(self, client):
        resp = client.post('/api/orders', json=_payload(999, subtotal=10, tax=1, total=11))
        assert resp.status_code == 201
        assert resp.json['order']['total'] == 11.0

    def test_balance_still_checked(self, app):
        with pytest.raises(InvalidOrder):
            order_service.submit_order(_payload(1, subtotal=10, tax=1, total=20))

    @pytest.mark.parametrize(
        "totals",
        [
            {'subtotal': -1, 'tax': 0, 'total': -1},
            {'subtotal': 10_000_000, 'tax': 0, 'total': 10_000_000},
        ],
    )
    def test_totals_outside_amount_range_rejected(self, client, db_session, totals):
        resp = client.post('/api/orders', json=_payload(1, **totals))
        assert resp.status_code == 400
        assert db_session.query(Order).count() == 0

    def test_largest_amount_accepted(self, app):
        order = order_service.submit_order(_payload(1, subtotal=9_999_999.99, tax=0, total=9_999_999.99))
        assert order.total_cents == 999_999_999

    def test_oversized_quantity_rejected_before_write(self, client, db_session):
        resp = client.post('/api/orders', json=_payload(1, quantity=10**20, subtotal=1, tax=0, total=1))
        assert resp.status_code == 400
        assert db_session.query(Order).count() == 0

    def test_customer_name_alias(self, app):
        payload = _payload(1, subtotal=1, tax=0, total=1)
        del payload['customer_name']
        payload['customerName'] = '  Dana '
        assert order_service.submit_order(payload).customer_name == "Dana"


# =============================================================================
# TIMESTAMPS & WRITE FAILURES
# =============================================================================


class TestOrderPersistence:

    def test_created_at_is_monotonic(self, app, latte):
        orders = [order_service.submit_order(_payload(latte.id)) for _ in range(5)]
        stamps = [o.created_at for o in orders]
        assert stamps == sorted(stamps)

    def test_created_at_never_goes_backwards(self, app, latte, monkeypatch):
        first = order_service.submit_order(_payload(latte.id))
        monkeypatch.setattr(order_service, "utcnow", lambda: datetime(2000, 1, 1))
        second = order_service.submit_order(_payload(latte.id))
        assert second.created_at >= first.created_at

    def test_store_failure_is_503_and_not_retried(self, client, latte, db_session, monkeypatch):
        calls = []

        def _fail():
            calls.append(1)
            raise OperationalError("INSERT INTO orders", {}, Exception("database is locked"))

        monkeypatch.setattr(order_service, "_next_created_at", _fail)

        resp = client.post('/api/orders', json=_payload(latte.id))
        assert resp.status_code == 503
        assert len(calls) == 1
        assert db_session.query(Order).count() == 0


# =============================================================================
# READ PATH
# =============================================================================


class TestListOrders:

    def test_requires_auth_by_default(self, client):
        assert client.get('/api/orders').status_code == 401

    def test_open_when_gate_disabled(self, app, client, monkeypatch):
        monkeypatch.setitem(app.config, 'READS_REQUIRE_AUTH', False)
        resp = client.get('/api/orders')
        assert resp.status_code == 200
        assert resp.json == []

    def test_role_outside_read_roles_is_403(self, app, client, cashier_headers, monkeypatch):
        monkeypatch.setitem(app.config, 'READ_ROLES', ('admin',))
        assert client.get('/api/orders', headers=cashier_headers).status_code == 403

    def test_resolves_product_details(self, client, cashier_headers, latte):
        client.post('/api/orders', json=_payload(latte.id))

        resp = client.get('/api/orders', headers=cashier_headers)
        assert resp.status_code == 200
        [order] = resp.json
        [item] = order['items']
        assert item['product']['name'] == "Latte"
        assert item['product']['category'] == "Coffee"
        assert item['quantity'] == 2

    def test_deleted_product_leaves_dangling_line(self, client, admin_headers, latte):
        client.post('/api/orders', json=_payload(latte.id))
        assert client.delete(f'/api/products/{latte.id}', headers=admin_headers).status_code == 200

        resp = client.get('/api/orders', headers=admin_headers)
        assert resp.status_code == 200
        [item] = resp.json[0]['items']
        assert item['product'] is None
        assert item['product_id'] == latte.id
        assert resp.json[0]['total'] == 5.5
