"""
Pytest fixtures for Frosty backend tests.

Provides test database setup, admin/staff accounts, and test client.
"""

import pytest
from frosty import create_app
from frosty.extensions import db
from frosty.models import User, Customer, Job, ROLE_ADMIN, ROLE_STAFF
from frosty.services.auth_service import hash_password
from frosty.services.settings_service import CACHE_KEY
from frosty.time_utils import utcnow


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'MAIL_SUPPRESS_SEND': True,
        'MAIL_DEFAULT_SENDER': 'invoices@frosty.test',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        app.extensions.pop(CACHE_KEY, None)
        app.config['LINE_ITEM_POLICY'] = 'coerce'

        yield db.session

        # Cleanup after test
        db.session.rollback()


def make_user(db_session, username, role=ROLE_STAFF, approved=True, password=PASSWORD):
    user = User(
        username=username,
        email=f"{username}@frosty.test",
        full_name=username.title(),
        password_hash=hash_password(password),
        role=role,
        approved=approved,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session):
    return make_user(db_session, "admin", role=ROLE_ADMIN)


@pytest.fixture(scope='function')
def staff_user(db_session):
    return make_user(db_session, "staff")


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, "admin", PASSWORD))


@pytest.fixture(scope='function')
def staff_headers(client, staff_user):
    return auth_headers(get_auth_token(client, "staff", PASSWORD))


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(name="Alice Smith", email="alice@example.com", address="1 High Street")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def job(db_session, customer):
    job = Job(job_id="JOB-0001", customer_id=customer.id, title="Chassis clean", start_date=utcnow())
    db_session.add(job)
    db_session.commit()
    return job


def get_auth_token(client, username: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
