import pytest

from app import create_app
from app.extensions import db
from app.store import LedgerStore, USERS
from app.services.authorization_service import Actor
from app.services.user_service import register_worker
from config import TestConfig


@pytest.fixture
def app():
    """Fresh application with an empty in-memory database (plus the default admin)."""
    app = create_app(TestConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    """Application context for calling services directly."""
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(ctx):
    return LedgerStore()


@pytest.fixture
def admin(store):
    return store.get(USERS, TestConfig.DEFAULT_ADMIN['id'])


@pytest.fixture
def admin_actor(admin):
    return Actor.from_user(admin)


@pytest.fixture
def worker(store):
    return register_worker(
        full_name='Ada Obi',
        address='12 Market Road',
        phone_number='+2348012345678',
        guardian_phone_number='+2348098765432',
        pin='4321',
        confirm_pin='4321',
        store=store,
    )


@pytest.fixture
def worker_actor(worker):
    return Actor.from_user(worker)


@pytest.fixture
def other_worker(store):
    return register_worker(
        full_name='Bayo Musa',
        address='3 Station Lane',
        phone_number='+2348011112222',
        guardian_phone_number='+2348033334444',
        pin='1111',
        confirm_pin='1111',
        store=store,
    )
