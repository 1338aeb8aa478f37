import os
import sys
from types import SimpleNamespace

import pytest

# Ensure the backend root (containing the `lockdown` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from lockdown import create_app, db, socketio
from lockdown.services.timing.clock import ManualClock


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SKIP_ENABLED = True
    MAX_SKIPS_PER_TEAM = 3
    SKIP_PENALTY_SEC = 300
    HINT_PENALTY_SEC = 30
    MAX_HINTS_PER_QUESTION = 2
    QUESTION_TIME_LIMIT_SEC = 1800
    TOTAL_GAME_TIME_LIMIT_SEC = 7200
    TEAM_LOCK_TIMEOUT_SEC = 1.0


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import lockdown.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def clock(flask_app):
    """Replace the system clock; tests move time with ``clock.advance``."""
    manual = ManualClock()
    flask_app.extensions['lockdown_clock'] = manual
    return manual


@pytest.fixture()
def competition(flask_app, clock):
    """Level 1 has three puzzles worth 40/30/30, level 2 one worth 50.

    Puzzle 1 of level 1 carries two hints: the first falls back to the
    configured penalty, the second costs 60s x 1.5 and unlocks after 120s.
    """
    from lockdown.models import Admin, Hint, Puzzle, Team

    level1 = [
        Puzzle(level=1, puzzle_number=1, title='Briefcase', points=40, is_active=True),
        Puzzle(level=1, puzzle_number=2, title='Cipher', points=30, is_active=True),
        Puzzle(level=1, puzzle_number=3, title='Maze', points=30, is_active=True),
    ]
    level2 = [Puzzle(level=2, puzzle_number=1, title='Vault', points=50, is_active=True)]
    teams = [Team(team_name='Red Herrings'), Team(team_name='Night Owls')]
    gamemaster = Admin(name='gamemaster')
    db.session.add_all(level1 + level2 + teams + [gamemaster])
    db.session.flush()

    hint1 = Hint(puzzle_id=level1[0].id, hint_number=1, hint_text='Count the scratches.',
                 penalty_multiplier=1.0, unlock_after_seconds=0, is_active=True)
    hint2 = Hint(puzzle_id=level1[0].id, hint_number=2, hint_text='It is a year.',
                 time_penalty_seconds=60, penalty_multiplier=1.5, unlock_after_seconds=120, is_active=True)
    db.session.add_all([hint1, hint2])
    db.session.commit()

    return SimpleNamespace(
        team=teams[0].id,
        other_team=teams[1].id,
        admin=gamemaster.id,
        level1=[p.id for p in level1],
        level2=[p.id for p in level2],
        hints=[hint1.id, hint2.id],
    )


@pytest.fixture()
def engine(competition):
    from lockdown.services.engine import build_engine
    return build_engine()


@pytest.fixture()
def team_headers(competition):
    return {'X-Team-Id': str(competition.team)}


@pytest.fixture()
def admin_headers(competition):
    return {'X-Admin-Id': str(competition.admin)}


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
