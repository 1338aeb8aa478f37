from lockdown.models import COMPLETED, NOT_STARTED, QuestionProgress, TeamSession
from lockdown.services.audit import admin_actor, team_actor
from lockdown.services.timing.result import ErrorKind


def test_sync_reports_in_flight_time_without_writing(engine, clock, competition):
    team, q1 = competition.team, competition.level1[0]
    engine.timer.start(team, q1)
    clock.advance(30)

    first = engine.aggregator.sync(team, q1)
    second = engine.aggregator.sync(team, q1)
    assert first['question']['time_spent_seconds'] == 30
    assert first['question']['is_running'] is True
    assert first['session']['active_time_seconds'] == 30
    assert first == second

    row = QuestionProgress.query.filter_by(team_id=team, puzzle_id=q1).first()
    assert row.time_spent_seconds == 0
    assert row.started_at is not None


def test_sync_defaults_to_current_question(engine, competition):
    team, q2 = competition.team, competition.level1[1]
    engine.timer.start(team, q2)
    snapshot = engine.aggregator.sync(team)
    assert snapshot['question']['puzzle_id'] == q2
    assert snapshot['session']['current_question_id'] == q2


def test_sync_for_a_fresh_team(engine, competition):
    snapshot = engine.aggregator.sync(competition.other_team)
    assert snapshot['question'] is None
    assert snapshot['session']['status'] == NOT_STARTED
    assert snapshot['session']['effective_time_seconds'] == 0
    assert TeamSession.query.filter_by(team_id=competition.other_team).first() is None


def test_effective_time_is_active_time_plus_penalties(engine, clock, competition):
    team, (q1, q2, _) = competition.team, competition.level1
    engine.timer.start(team, q1)
    clock.advance(40)
    engine.hints.use_hint(team, competition.hints[0])
    engine.timer.skip(team, q1)
    clock.advance(20)
    engine.timer.pause(team, q2)

    session = TeamSession.query.filter_by(team_id=team).first()
    assert session.active_time_seconds == 60
    assert session.skip_penalty_seconds == 300
    assert session.hint_penalty_seconds == 30
    assert session.total_penalty_seconds == 330
    assert session.to_dict()['effective_time_seconds'] == 390


def test_end_session_folds_running_question(engine, clock, competition):
    team, q1 = competition.team, competition.level1[0]
    engine.timer.start(team, q1)
    clock.advance(20)
    ended = engine.aggregator.end_session(team, team_actor(team))
    assert ended.ok
    assert ended.value['total_time_seconds'] == 20
    assert ended.value['effective_time_seconds'] == 20

    row = QuestionProgress.query.filter_by(team_id=team, puzzle_id=q1).first()
    assert row.status == NOT_STARTED
    assert row.time_spent_seconds == 20
    session = TeamSession.query.filter_by(team_id=team).first()
    assert session.status == COMPLETED
    assert session.session_end is not None
    assert session.current_question_id is None


def test_end_session_twice(engine, competition):
    team = competition.team
    assert engine.aggregator.end_session(team, admin_actor(competition.admin)).ok
    again = engine.aggregator.end_session(team, team_actor(team))
    assert again.kind == ErrorKind.SESSION_ENDED


def test_end_session_unknown_team(engine, competition):
    assert engine.aggregator.end_session(4242, team_actor(4242)).kind == ErrorKind.NOT_FOUND
