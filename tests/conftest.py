import os
import tempfile

import pytest

from app import create_app
from config import TestingConfig
from models import db, User
from services.roster import OwnerScopedClientRepository


@pytest.fixture
def app():
    db_fd, db_path = tempfile.mkstemp(suffix='.db')

    class FileBackedTestingConfig(TestingConfig):
        SQLALCHEMY_DATABASE_URI = f'sqlite:///{db_path}'
        QUICKCHART_URL = 'http://chart.test/chart'
        MARKET_RATES_URL = 'http://rates.test/latest'

    app = create_app(FileBackedTestingConfig)

    with app.app_context():
        db.drop_all()
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()

    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture
def client(app):
    return app.test_client()


def _make_user(email, name):
    user = User(email=email, name=name)
    user.set_password('parola123')
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def owner(app):
    return _make_user('danisman@example.com', 'Elif Demir')


@pytest.fixture
def other_owner(app):
    return _make_user('baska@example.com', 'Mert Kaya')


@pytest.fixture
def repository(owner):
    return OwnerScopedClientRepository(owner.id)


@pytest.fixture
def auth_client(client, owner):
    """Test client with the owner already signed in."""
    with client.session_transaction() as sess:
        sess['_user_id'] = str(owner.id)
        sess['_fresh'] = True
    return client
