import pytest

from lockdown import db
from lockdown.models import IN_PROGRESS, AuditEvent, AuditLogImmutable, QuestionProgress
from lockdown.services.audit import admin_actor, record_event, team_events


def test_timer_operations_are_audited(engine, clock, competition):
    team, q1 = competition.team, competition.level1[0]
    engine.timer.start(team, q1)
    clock.advance(15)
    engine.timer.pause(team, q1)

    events = team_events(team)
    assert [event.event_type for event in events][:2] == ['question_pause', 'question_start']
    pause = events[0]
    assert pause.actor_type == 'team'
    assert pause.actor_id == team
    assert pause.time_before == 0
    assert pause.time_after == 15
    assert pause.to_dict()['time_delta'] == 15


def test_failed_audit_write_keeps_the_state_change(engine, competition):
    team, q1 = competition.team, competition.level1[0]
    AuditEvent.__table__.drop(db.engine)

    result = engine.timer.start(team, q1)
    assert result.ok
    row = QuestionProgress.query.filter_by(team_id=team, puzzle_id=q1).first()
    assert row.status == IN_PROGRESS


def test_record_event_reports_failure_instead_of_raising(flask_app, competition):
    AuditEvent.__table__.drop(db.engine)
    assert record_event('CUTOFF_UPDATED', actor=admin_actor(competition.admin), level_id=1) is False


def test_audit_events_cannot_be_changed_or_deleted(flask_app, competition):
    assert record_event('session_end', team_id=competition.team)
    event = AuditEvent.query.filter_by(team_id=competition.team).one()

    event.event_type = 'rewritten'
    with pytest.raises(AuditLogImmutable):
        db.session.commit()
    db.session.rollback()

    db.session.delete(event)
    with pytest.raises(AuditLogImmutable):
        db.session.commit()
    db.session.rollback()
    assert AuditEvent.query.filter_by(team_id=competition.team, event_type='session_end').count() == 1
