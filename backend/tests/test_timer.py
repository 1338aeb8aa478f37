from lockdown.models import (
    ACTIVE, COMPLETED, IN_PROGRESS, NOT_STARTED, PAUSED, SKIPPED, QuestionProgress, TeamSession,
)
from lockdown.services.audit import team_actor
from lockdown.services.engine import build_engine
from lockdown.services.timing.result import ErrorCategory, ErrorKind


def _progress(team_id, puzzle_id):
    return QuestionProgress.query.filter_by(team_id=team_id, puzzle_id=puzzle_id).first()


def _running(team_id):
    return QuestionProgress.query.filter_by(team_id=team_id, status=IN_PROGRESS).all()


def test_pause_at_42_then_complete_at_50(engine, clock, competition):
    team, q1 = competition.team, competition.level1[0]
    assert engine.timer.start(team, q1).ok
    clock.advance(42)
    paused = engine.timer.pause(team, q1)
    assert paused.ok
    assert paused.value['time_spent_seconds'] == 42

    assert engine.timer.resume(team, q1).ok
    clock.advance(8)
    done = engine.timer.complete(team, q1, True)
    assert done.ok
    assert done.value['time_spent_seconds'] == 50
    assert done.value['status'] == COMPLETED
    row = _progress(team, q1)
    assert row.status == COMPLETED
    assert row.correct is True
    assert row.started_at is None


def test_starting_another_question_demotes_the_running_one(engine, clock, competition):
    team, (q1, q2, _) = competition.team, competition.level1
    engine.timer.start(team, q1)
    clock.advance(10)
    assert engine.timer.start(team, q2).ok

    running = _running(team)
    assert [row.puzzle_id for row in running] == [q2]
    first = _progress(team, q1)
    assert first.status == NOT_STARTED
    assert first.time_spent_seconds == 10
    session = TeamSession.query.filter_by(team_id=team).first()
    assert session.current_question_id == q2


def test_resume_and_navigate_keep_a_single_active_question(engine, clock, competition):
    team, (q1, q2, q3) = competition.team, competition.level1
    engine.timer.start(team, q1)
    engine.timer.pause(team, q1)
    engine.timer.start(team, q2)
    clock.advance(5)
    assert engine.timer.resume(team, q1).ok
    assert [row.puzzle_id for row in _running(team)] == [q1]
    assert engine.timer.navigate(team, q3).ok
    assert [row.puzzle_id for row in _running(team)] == [q3]
    assert _progress(team, q2).time_spent_seconds == 5


def test_second_pause_fails_and_time_is_unchanged(engine, clock, competition):
    team, q1 = competition.team, competition.level1[0]
    engine.timer.start(team, q1)
    clock.advance(5)
    assert engine.timer.pause(team, q1).ok
    clock.advance(30)
    again = engine.timer.pause(team, q1)
    assert not again.ok
    assert again.kind == ErrorKind.NOT_IN_PROGRESS
    assert _progress(team, q1).time_spent_seconds == 5


def test_start_preconditions(engine, competition):
    team, q1 = competition.team, competition.level1[0]
    engine.timer.start(team, q1)
    assert engine.timer.start(team, q1).kind == ErrorKind.ALREADY_IN_PROGRESS
    assert engine.timer.resume(team, q1).kind == ErrorKind.ALREADY_ACTIVE
    engine.timer.complete(team, q1, False)
    assert engine.timer.start(team, q1).kind == ErrorKind.ALREADY_COMPLETED
    assert engine.timer.complete(team, q1, True).kind == ErrorKind.ALREADY_COMPLETED
    assert engine.timer.navigate(team, q1).kind == ErrorKind.ALREADY_COMPLETED


def test_unknown_question_is_not_found(engine, competition):
    result = engine.timer.start(competition.team, 9999)
    assert result.kind == ErrorKind.NOT_FOUND
    assert result.kind.category == ErrorCategory.NOT_FOUND


def test_time_spent_never_decreases(engine, clock, competition):
    team, (q1, q2, _) = competition.team, competition.level1
    seen = []
    steps = [
        lambda: engine.timer.start(team, q1),
        lambda: engine.timer.pause(team, q1),
        lambda: engine.timer.resume(team, q1),
        lambda: engine.timer.start(team, q2),
        lambda: engine.timer.navigate(team, q1),
        lambda: engine.timer.skip(team, q1),
        lambda: engine.timer.unskip(team, q1),
        lambda: engine.timer.complete(team, q1, True),
    ]
    for step in steps:
        clock.advance(7)
        step()
        row = _progress(team, q1)
        seen.append(row.time_spent_seconds if row else 0)
    assert seen == sorted(seen)
    # frozen once completed
    clock.advance(100)
    engine.timer.pause(team, q1)
    assert _progress(team, q1).time_spent_seconds == seen[-1]


def test_skip_charges_penalty_and_activates_next_question(engine, clock, competition):
    team, (q1, q2, _) = competition.team, competition.level1
    engine.timer.start(team, q1)
    clock.advance(12)
    skipped = engine.timer.skip(team, q1)
    assert skipped.ok
    assert skipped.value['skip_penalty_seconds'] == 300
    assert skipped.value['next_question']['puzzle_id'] == q2

    row = _progress(team, q1)
    assert row.status == SKIPPED
    assert row.skip_count == 1
    assert row.time_spent_seconds == 12
    assert row.time_penalty_seconds == 300
    assert [r.puzzle_id for r in _running(team)] == [q2]


def test_skip_penalties_add_up(engine, competition):
    team, (q1, q2, _) = competition.team, competition.level1
    engine.timer.start(team, q1)
    engine.timer.skip(team, q1)
    second = engine.timer.skip(team, q2)
    assert second.value['total_penalty_seconds'] == 600
    session = TeamSession.query.filter_by(team_id=team).first()
    assert session.skip_penalty_seconds == 600
    assert session.total_penalty_seconds == 600
    assert session.questions_skipped == 2


def test_skip_of_last_question_wraps_to_first_open_one(engine, competition):
    team, (q1, q2, q3) = competition.team, competition.level1
    engine.timer.start(team, q2)
    engine.timer.complete(team, q2, True)
    engine.timer.start(team, q3)
    result = engine.timer.skip(team, q3)
    assert result.value['next_question']['puzzle_id'] == q1


def test_skip_with_nothing_left_returns_no_next_question(engine, competition):
    team, (q1, q2, q3) = competition.team, competition.level1
    for question in (q1, q2):
        engine.timer.start(team, question)
        engine.timer.complete(team, question, True)
    result = engine.timer.skip(team, q3)
    assert result.ok
    assert result.value['next_question'] is None


def test_skip_limit_is_enforced_and_rolls_back(flask_app, competition):
    flask_app.config['MAX_SKIPS_PER_TEAM'] = 2
    engine = build_engine()
    team, (q1, q2, q3) = competition.team, competition.level1
    assert engine.timer.skip(team, q1).ok
    assert engine.timer.skip(team, q2).ok
    engine.timer.complete(team, q3, True)

    level2 = competition.level2[0]
    blocked = engine.timer.skip(team, level2)
    assert blocked.kind == ErrorKind.SKIP_LIMIT_EXCEEDED
    assert blocked.kind.category == ErrorCategory.SKIP_LIMIT_EXCEEDED
    assert _progress(team, level2) is None


def test_skip_rules(flask_app, competition):
    team, q1 = competition.team, competition.level1[0]
    engine = build_engine()
    engine.timer.complete(team, q1, True)
    assert engine.timer.skip(team, q1).kind == ErrorKind.CANNOT_SKIP_COMPLETED

    flask_app.config['SKIP_ENABLED'] = False
    disabled = build_engine()
    assert disabled.timer.skip(team, competition.level1[1]).kind == ErrorKind.SKIP_DISABLED


def test_unskip_keeps_penalty(engine, competition):
    team, (q1, q2, _) = competition.team, competition.level1
    assert engine.timer.unskip(team, q1).kind == ErrorKind.NOT_SKIPPED
    engine.timer.start(team, q1)
    engine.timer.skip(team, q1)
    assert engine.timer.unskip(team, q1).ok

    row = _progress(team, q1)
    assert row.status == IN_PROGRESS
    assert row.skip_count == 1
    assert row.skip_penalty_seconds == 300
    assert _progress(team, q2).status == NOT_STARTED
    assert TeamSession.query.filter_by(team_id=team).first().total_penalty_seconds == 300


def test_navigate_to_running_question_is_a_no_op(engine, clock, competition):
    team, q1 = competition.team, competition.level1[0]
    engine.timer.start(team, q1)
    clock.advance(20)
    result = engine.timer.navigate(team, q1)
    assert result.ok
    assert result.value['puzzle_title'] == 'Briefcase'
    assert result.value['progress']['time_spent_seconds'] == 20
    assert _progress(team, q1).time_spent_seconds == 0


def test_teams_do_not_share_state(engine, competition):
    q1 = competition.level1[0]
    engine.timer.start(competition.team, q1)
    assert engine.timer.start(competition.other_team, q1).ok
    assert len(_running(competition.team)) == 1
    assert len(_running(competition.other_team)) == 1


def test_mutations_after_session_end_are_rejected(engine, competition):
    team, q1 = competition.team, competition.level1[0]
    engine.timer.start(team, q1)
    assert engine.aggregator.end_session(team, actor=team_actor(team)).ok
    assert engine.timer.resume(team, q1).kind == ErrorKind.SESSION_ENDED


def test_skipping_another_question_keeps_the_running_time(engine, clock, competition):
    team, (q1, q2, _) = competition.team, competition.level1
    engine.timer.start(team, q2)
    clock.advance(100)
    skipped = engine.timer.skip(team, q1)
    assert skipped.value['next_question']['puzzle_id'] == q2
    clock.advance(10)
    engine.timer.pause(team, q2)
    assert _progress(team, q2).time_spent_seconds == 110


def test_session_pauses_when_nothing_is_running(engine, clock, competition):
    team, (q1, q2, q3) = competition.team, competition.level1
    engine.timer.start(team, q1)
    clock.advance(5)
    engine.timer.complete(team, q1, True)
    session = TeamSession.query.filter_by(team_id=team).first()
    assert session.status == PAUSED
    assert session.current_question_id is None

    engine.timer.start(team, q2)
    engine.timer.complete(team, q2, True)
    engine.timer.start(team, q3)
    assert session.status == ACTIVE
    assert engine.timer.skip(team, q3).value['next_question'] is None
    session = TeamSession.query.filter_by(team_id=team).first()
    assert session.status == PAUSED
    assert session.current_question_id is None
