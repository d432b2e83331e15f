import pytest
from decimal import Decimal

from orderdesk import create_app
from orderdesk.database import create_tables, get_session
from orderdesk.models import Product, Client, Discount, PaymentCondition


@pytest.fixture(scope='function')
def app():
    """Create application instance for testing (fresh in-memory database)."""
    app = create_app('config.TestConfig')
    with app.app_context():
        create_tables(app)
        yield app


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def runner(app):
    """Create CLI runner."""
    return app.test_cli_runner()


@pytest.fixture(scope='function')
def session(app):
    """Database session of the test app."""
    session = get_session()
    yield session
    session.rollback()
    session.close()


def _persist(session, obj):
    session.add(obj)
    session.commit()
    # Load attributes so the object stays usable after the request session is removed
    session.refresh(obj)
    return obj


@pytest.fixture(scope='function')
def product(session):
    """Product priced 100.00 with 10 units in stock."""
    return _persist(session, Product(
        code='P-001',
        name='Filtro de óleo',
        application='Motor 1.0',
        price=Decimal('100.00'),
        stock=10,
        active=True
    ))


@pytest.fixture(scope='function')
def cheap_product(session):
    """Product priced 19.99 with no stock."""
    return _persist(session, Product(
        code='P-002',
        name='Vela de ignição',
        price=Decimal('19.99'),
        stock=0,
        active=True
    ))


@pytest.fixture(scope='function')
def inactive_product(session):
    return _persist(session, Product(code='P-OLD', name='Descontinuado', price=Decimal('5.00'), stock=3, active=False))


@pytest.fixture(scope='function')
def order_client(session):
    """Client the test orders are placed for."""
    return _persist(session, Client(code='C-001', name='Auto Peças Silva', city='Campinas'))


@pytest.fixture(scope='function')
def discount(session):
    """10% discount with 5% commission."""
    return _persist(session, Discount(
        name='Promo 10',
        discount_percentage=Decimal('10.00'),
        commission_percentage=Decimal('5.00'),
        active=True
    ))


@pytest.fixture(scope='function')
def inactive_discount(session):
    return _persist(session, Discount(
        name='Antigo 50',
        discount_percentage=Decimal('50.00'),
        commission_percentage=Decimal('0'),
        active=False
    ))


@pytest.fixture(scope='function')
def payment_condition(session):
    return _persist(session, PaymentCondition(name='30/60/90', installments=3, is_cash=False, active=True))


@pytest.fixture(scope='function')
def draft_order(client, order_client, product):
    """Draft order with 3 x P-001 (no discount), created through the API."""
    response = client.post('/api/orders', json={
        'client_id': order_client.id,
        'items': [{'product_id': product.id, 'quantity': 3}],
    })
    assert response.status_code == 201
    return response.get_json()['order']
