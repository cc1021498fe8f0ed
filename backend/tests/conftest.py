import os
import sys
import pytest

# Ensure the backend root (containing the `live_audience` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from live_audience import create_app, db


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    POLL_INTERVAL_SEC = 1
    TIMER_TICK_SEC = 1
    AUTO_ADVANCE_POLICY = 'exam'
    JOIN_BASE_URL = 'http://testserver'
    JOIN_PATH = '/join'
    CONTROLLER_DEBOUNCE_MS = 0
    TIMER_HEARTBEAT_SEC = 0
    HOST_RUNNER_ENABLED = False


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import live_audience.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def exam_session(flask_app):
    """Exam with two timed multiple-choice questions (correct A, then B)."""
    from live_audience.services.interaction import registry
    return registry.create_session(
        'Sales Kick-off Exam',
        'exam',
        required_fields=['name', 'organization'],
        questions=[
            {
                'text': 'First?',
                'options': [{'id': 'A', 'text': 'Alpha'}, {'id': 'B', 'text': 'Beta'}],
                'correct_option_id': 'A',
                'duration': 30,
            },
            {
                'text': 'Second?',
                'options': [{'id': 'A', 'text': 'Alpha'}, {'id': 'B', 'text': 'Beta'}],
                'correct_option_id': 'B',
                'duration': 30,
            },
        ],
    )


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture()
def clock():
    return FakeClock()
