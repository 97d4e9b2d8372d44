import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from config import TestConfig
from models import db, User

PASSWORD = 'secret-pass'


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        landlord = User(username='landlord', password_hash=generate_password_hash(PASSWORD), role='landlord')
        db.session.add(landlord)
        db.session.flush()
        db.session.add_all([
            User(username='other', password_hash=generate_password_hash(PASSWORD), role='landlord'),
            User(username='accounts', password_hash=generate_password_hash(PASSWORD), role='accounts',
                 landlord_id=landlord.id),
            User(username='admin', password_hash=generate_password_hash(PASSWORD), role='admin'),
        ])
        db.session.commit()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


def _login(app, username):
    client = app.test_client()
    resp = client.post('/login', json={'username': username, 'password': PASSWORD})
    assert resp.status_code == 200, resp.get_json()
    return client


@pytest.fixture
def client(app):
    """Client logged in as a landlord."""
    return _login(app, 'landlord')


@pytest.fixture
def other_client(app):
    """A second landlord, used for ownership checks."""
    return _login(app, 'other')


@pytest.fixture
def accounts_client(app):
    """Accounts staff keeping the books for the 'landlord' user."""
    return _login(app, 'accounts')


@pytest.fixture
def admin_client(app):
    return _login(app, 'admin')


@pytest.fixture
def anon_client(app):
    return app.test_client()


@pytest.fixture
def make_property(client):
    def _make(**overrides):
        payload = {'address_line_1': '12 Riverside Drive', 'city': 'Nairobi', 'property_type': 'Domestic',
                   'bedrooms': 3, 'rental_value': 1000}
        payload.update(overrides)
        resp = client.post('/properties/add', json=payload)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()['property']['id']
    return _make


@pytest.fixture
def make_tenancy(client, make_property):
    def _make(property_id=None, **overrides):
        payload = {
            'property_id': property_id or make_property(),
            'tenant': {'first_name': 'Jane', 'last_name': 'Wanjiru', 'email': 'jane@example.com'},
            'start_date': '2025-01-01',
            'end_date': '2025-03-31',
            'rent_amount': 1000,
            'deposit_amount': 100,
            'rent_due_day': 1,
        }
        payload.update(overrides)
        resp = client.post('/tenancies/add', json=payload)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()['tenancy_id']
    return _make


@pytest.fixture
def obligations(client):
    """Fetches a tenancy's obligations in due-date order."""
    def _fetch(tenancy_id):
        resp = client.get(f'/revenue/?tenancy_id={tenancy_id}')
        assert resp.status_code == 200
        return resp.get_json()
    return _fetch
