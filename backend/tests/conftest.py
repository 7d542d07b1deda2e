import os
import sys
import pytest
from flask import g

# Ensure the backend root (containing the `fantasy` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from config import Config
from fantasy import create_app, db, socketio
from fantasy.models import Match, Team, User
from fantasy.services.scoring.notify import MatchNotifier


LINEUP = [
    'Rohit Sharma',
    'Virat Kohli',
    'Jasprit Bumrah',
    'Zak Crawley',
    'Suryakumar Yadav',
    'Ravindra Jadeja',
    'Quinton de Kock',
    'Trent Boult',
    'Sikandar Raza',
    'Sanju Samson',
    'Harshit Rana',
]


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4
    SCORE_API_URL = 'https://scores.test'
    SCORE_API_KEY = ''
    OCR_SPACE_API_KEY = ''
    SEASON_CACHED_FALLBACK = True


class RecordingNotifier(MatchNotifier):
    def __init__(self):
        self.events = []

    def publish(self, match_id, event, payload=None):
        self.events.append((match_id, event, payload or {}))

    def names(self):
        return [e[1] for e in self.events]


@pytest.fixture()
def flask_app(tmp_path):
    application = create_app(TestConfig)
    application.config['UPLOAD_FOLDER'] = str(tmp_path / 'uploads')

    # Requests reuse the fixture's app context, so g outlives a request;
    # drop the user Flask-Login cached there by a previous client
    @application.before_request
    def _forget_cached_user():
        g.pop('_login_user', None)

    with application.app_context():
        # Ensure models are imported so tables are created
        import fantasy.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def notifier():
    return RecordingNotifier()


def _login(client, email, password='password'):
    res = client.post('/login', json={'email': email, 'password': password})
    assert res.status_code == 200, res.get_json()
    return client


@pytest.fixture()
def admin_client(flask_app):
    user = User(email='admin@example.com', display_name='admin', role='admin')
    user.set_password('password')
    db.session.add(user)
    db.session.commit()
    return _login(flask_app.test_client(), 'admin@example.com')


@pytest.fixture()
def viewer_client(flask_app):
    user = User(email='viewer@example.com', display_name='Viewer One')
    user.set_password('password')
    db.session.add(user)
    db.session.commit()
    return _login(flask_app.test_client(), 'viewer@example.com')


@pytest.fixture()
def make_match(flask_app):
    def _make(name='LKN vs PW', start_time=None, stats=None, players=None):
        match = Match(name=name, start_time=start_time, stats=stats or [], players=players or [])
        db.session.add(match)
        db.session.commit()
        return match
    return _make


@pytest.fixture()
def make_team(flask_app):
    def _make(match, viewer_name, players=None, captain=None, vice=None, created_at=None,
              user_id=None, total_points=0, name=''):
        players = list(players or LINEUP)
        team = Team(
            match_id=match.id,
            viewer_name=viewer_name,
            players=players,
            captain=captain if captain is not None else players[0],
            vice=vice if vice is not None else players[1],
            user_id=user_id,
            total_points=total_points,
            name=name or f"{viewer_name}'s XI",
        )
        if created_at is not None:
            team.created_at = created_at
        db.session.add(team)
        db.session.commit()
        return team
    return _make
