import threading

from lockdown.services.engine import build_engine
from lockdown.services.timing.result import ErrorKind
from lockdown.services.timing.store import TeamLockRegistry


def test_lock_registry_keys_by_team():
    registry = TeamLockRegistry()
    assert registry.lock_for(1) is registry.lock_for(1)
    assert registry.lock_for(1) is not registry.lock_for(2)


def test_busy_team_reports_conflict_and_other_teams_proceed(flask_app, competition):
    flask_app.config['TEAM_LOCK_TIMEOUT_SEC'] = 0.05
    engine = build_engine()
    lock = flask_app.extensions['lockdown_team_locks'].lock_for(competition.team)
    acquired, release = threading.Event(), threading.Event()

    def hold():
        with lock:
            acquired.set()
            release.wait(2)

    holder = threading.Thread(target=hold)
    holder.start()
    acquired.wait(1)
    try:
        blocked = engine.timer.start(competition.team, competition.level1[0])
        other = engine.timer.start(competition.other_team, competition.level1[0])
    finally:
        release.set()
        holder.join()

    assert blocked.kind == ErrorKind.PERSISTENCE_CONFLICT
    assert other.ok
    assert engine.timer.start(competition.team, competition.level1[0]).ok
