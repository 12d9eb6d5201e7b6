import os
import sys
import pytest

# Ensure the backend root (containing the `remote_matches` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from remote_matches import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = ['http://localhost:5173']
    CHALLENGE_EXPIRY_SEC = 86400
    JOIN_WINDOW_SEC = 300
    EXPIRY_SWEEP_INTERVAL_SEC = 0


class FakeClock:
    """Deterministic clock; tests move time with ``advance``."""

    def __init__(self, start=1_700_000_000.0):
        self.current = start

    def now(self):
        return self.current

    def advance(self, seconds):
        self.current += seconds


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import remote_matches.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def clock(flask_app):
    fake = FakeClock()
    flask_app.extensions['match_service'].clock = fake
    return fake


@pytest.fixture()
def service(flask_app, clock):
    return flask_app.extensions['match_service']


@pytest.fixture()
def users(flask_app):
    """Four players: alice, bob, carol and dave, keyed by name to id."""
    from remote_matches.models import User
    created = {}
    for name in ('alice', 'bob', 'carol', 'dave'):
        user = User(username=name)
        db.session.add(user)
        db.session.flush()
        created[name] = user.id
    db.session.commit()
    return created


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')
