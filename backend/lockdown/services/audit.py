"""Append-only audit trail used for dispute resolution.

Events are written after the primary transaction has committed, in their own
commit. A failed audit write is logged and dropped; it never undoes the team
state change it describes.
"""
from dataclasses import dataclass
from typing import Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from lockdown import db
from lockdown.models import AuditEvent


@dataclass(frozen=True)
class Actor:
    kind: str  # team, admin, system
    id: Optional[int] = None


SYSTEM = Actor('system')


def team_actor(team_id):
    return Actor('team', team_id)


def admin_actor(admin_id):
    return Actor('admin', admin_id)


def record_event(event_type, *, actor=SYSTEM, team_id=None, question_id=None, level_id=None,
                 time_before=None, time_after=None, metadata=None, created_at=None):
    event = AuditEvent(
        team_id=team_id,
        question_id=question_id,
        level_id=level_id,
        event_type=event_type,
        time_before=time_before,
        time_after=time_after,
        details=metadata or {},
        actor_type=actor.kind,
        actor_id=actor.id,
    )
    if created_at is not None:
        event.created_at = created_at
    try:
        db.session.add(event)
        db.session.commit()
        return True
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"[audit-failed] team={team_id} event={event_type} error={exc}")
        return False


def defer_event(uow, event_type, **fields):
    """Queue an audit event to be appended once ``uow`` commits."""
    uow.after_commit(lambda: record_event(event_type, **fields))


def team_events(team_id, limit=200):
    return (
        AuditEvent.query.filter_by(team_id=team_id)
        .order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc())
        .limit(limit)
        .all()
    )
