from lockdown.models import HintUsage, QuestionProgress, TeamSession
from lockdown.services.engine import build_engine
from lockdown.services.timing.result import ErrorCategory, ErrorKind


def test_hint_requires_running_question(engine, competition):
    result = engine.hints.use_hint(competition.team, competition.hints[0])
    assert result.kind == ErrorKind.NOT_IN_PROGRESS


def test_hints_are_used_in_order_once_each(engine, competition):
    team, q1 = competition.team, competition.level1[0]
    first, second = competition.hints
    engine.timer.start(team, q1)

    out_of_order = engine.hints.use_hint(team, second)
    assert out_of_order.kind == ErrorKind.HINT_OUT_OF_ORDER
    assert out_of_order.kind.category == ErrorCategory.SEQUENCE_VIOLATION

    used = engine.hints.use_hint(team, first)
    assert used.ok
    assert used.value['penalty_seconds'] == 30
    assert used.value['hint']['hint_text'] == 'Count the scratches.'

    duplicate = engine.hints.use_hint(team, first)
    assert duplicate.kind == ErrorKind.HINT_ALREADY_USED

    # 60s x 1.5
    assert engine.hints.use_hint(team, second).value['penalty_seconds'] == 90

    row = QuestionProgress.query.filter_by(team_id=team, puzzle_id=q1).first()
    assert row.hints_used == 2
    assert row.time_penalty_seconds == 120
    session = TeamSession.query.filter_by(team_id=team).first()
    assert session.hint_penalty_seconds == 120
    assert HintUsage.query.filter_by(team_id=team).count() == 2


def test_hint_limit(flask_app, competition):
    flask_app.config['MAX_HINTS_PER_QUESTION'] = 1
    engine = build_engine()
    team = competition.team
    engine.timer.start(team, competition.level1[0])
    assert engine.hints.use_hint(team, competition.hints[0]).ok
    assert engine.hints.use_hint(team, competition.hints[1]).kind == ErrorKind.HINT_LIMIT_EXCEEDED


def test_unknown_hint(engine, competition):
    assert engine.hints.use_hint(competition.team, 777).kind == ErrorKind.NOT_FOUND


def test_available_hints_unlock_with_elapsed_time(engine, clock, competition):
    team, q1 = competition.team, competition.level1[0]
    engine.timer.start(team, q1)
    engine.hints.use_hint(team, competition.hints[0])

    listing = engine.hints.available_hints(team, q1).value
    first, second = listing['hints']
    assert first['is_used'] is True
    assert first['hint_text'] == 'Count the scratches.'
    assert second['is_used'] is False
    assert second['can_unlock'] is False
    assert second['hint_text'] is None

    clock.advance(120)
    second = engine.hints.available_hints(team, q1).value['hints'][1]
    assert second['can_unlock'] is True
    assert second['penalty_seconds'] == 90


def test_available_hints_for_unknown_question(engine, competition):
    assert engine.hints.available_hints(competition.team, 31337).kind == ErrorKind.NOT_FOUND
