import sys
import pathlib
import os
import warnings

import pytest
import pytest_asyncio

# Settings are read at import time, so they must be in place before the
# backend package is imported below.
os.environ.setdefault('SECRET_KEY', 'test-secret-key-for-unit-tests')
os.environ.setdefault('DATABASE_URL', 'sqlite+aiosqlite:///./test_dodiddone.db')

try:
    from sqlalchemy.exc import SAWarning
    warnings.filterwarnings('ignore', category=SAWarning)
except ImportError:
    pass

# Reduce SQLAlchemy logger verbosity during tests
import logging as _logging
for _name in ('sqlalchemy', 'sqlalchemy.engine', 'sqlalchemy.pool', 'sqlmodel'):
    _logging.getLogger(_name).setLevel(_logging.ERROR)

# ensure project root is on PYTHONPATH for test runs
ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from httpx import AsyncClient, ASGITransport

from dodiddone_server.main import app
from dodiddone_server.db import reset_db, async_session
from dodiddone_server.models import User
from dodiddone_server.auth import hash_password
from dodiddone_server.utils import now_utc

from dodiddone.config import Config
from dodiddone.gateway import SessionGateway
from dodiddone.notifications import Notifier
from dodiddone.shell import ViewShell
from dodiddone.store import TaskStoreClient

from tests.fakes import FakeGateway, FakeTaskStore


async def create_user(email: str, password: str, name: str | None = None, confirmed: bool = True) -> User:
    async with async_session() as sess:
        u = User(email=email, name=name, password_hash=hash_password(password),
                 email_confirmed_at=now_utc() if confirmed else None)
        sess.add(u)
        await sess.commit()
        await sess.refresh(u)
        return u


@pytest.fixture
def make_user():
    return create_user


@pytest_asyncio.fixture
async def ensure_db():
    await reset_db()


@pytest_asyncio.fixture
async def http(ensure_db):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def _login_headers(http, email: str, password: str) -> dict:
    r = await http.post('/auth/token', json={'email': email, 'password': password})
    assert r.status_code == 200, r.text
    body = r.json()
    return {'user_id': body['user']['id'], 'headers': {'Authorization': f"Bearer {body['session']['access_token']}"}}


@pytest_asyncio.fixture
async def alice(http):
    await create_user('alice@example.com', 'alice-pw', name='Alice')
    return await _login_headers(http, 'alice@example.com', 'alice-pw')


@pytest_asyncio.fixture
async def bob(http):
    await create_user('bob@example.com', 'bob-pw-1')
    return await _login_headers(http, 'bob@example.com', 'bob-pw-1')


@pytest.fixture
def gateway(http):
    return SessionGateway(http)


@pytest.fixture
def store(http, gateway):
    return TaskStoreClient(http, gateway)


@pytest.fixture
def client_config(tmp_path):
    return Config(config_file=str(tmp_path / 'config.json'))


@pytest.fixture
def shell(gateway, store, client_config):
    return ViewShell(gateway, store, Notifier(), client_config)


@pytest.fixture
def notifier():
    return Notifier()


@pytest.fixture
def fake_store():
    return FakeTaskStore()


@pytest.fixture
def fake_gateway():
    from dodiddone.models import Session
    return FakeGateway(Session(user_id='u1', email='u1@example.com', name='U One'))
