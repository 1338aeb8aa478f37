from dataclasses import asdict, dataclass
from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from lockdown import db
from lockdown.models import QualificationCutoff
from ..audit import admin_actor, record_event
from ..timing.result import Err, ErrorKind, Ok

# field -> parser
_CUTOFF_FIELDS = {
    'min_score': int,
    'min_accuracy': float,
    'max_time_seconds': int,
    'max_hints_allowed': int,
    'min_questions_correct': int,
    'auto_qualify': bool,
    'is_active': bool,
}


@dataclass(frozen=True)
class CutoffSnapshot:
    """Immutable copy of a cutoff row taken before an evaluation starts."""
    level_id: int
    min_score: int
    min_accuracy: float
    max_time_seconds: int
    max_hints_allowed: int
    min_questions_correct: int
    auto_qualify: bool
    version: int

    @classmethod
    def from_row(cls, row):
        return cls(
            level_id=row.level_id,
            min_score=row.min_score,
            min_accuracy=float(row.min_accuracy),
            max_time_seconds=row.max_time_seconds,
            max_hints_allowed=row.max_hints_allowed,
            min_questions_correct=row.min_questions_correct,
            auto_qualify=bool(row.auto_qualify),
            version=row.version,
        )

    def to_dict(self):
        return asdict(self)


def load_cutoff_snapshot(level_id) -> Optional[CutoffSnapshot]:
    row = QualificationCutoff.query.filter_by(level_id=level_id, is_active=True).first()
    return CutoffSnapshot.from_row(row) if row else None


def list_cutoffs(level_id=None):
    query = QualificationCutoff.query
    if level_id is not None:
        query = query.filter_by(level_id=level_id)
    return query.order_by(QualificationCutoff.level_id).all()


def _parse(field, value):
    parser = _CUTOFF_FIELDS[field]
    if parser is bool:
        if isinstance(value, bool):
            return value
        raise ValueError(f"{field} must be a boolean")
    if isinstance(value, bool):
        raise ValueError(f"{field} must be a number")
    parsed = parser(value)
    if parsed < 0:
        raise ValueError(f"{field} must be >= 0")
    if field == 'min_accuracy' and parsed > 100:
        raise ValueError('min_accuracy must be <= 100')
    return parsed


def upsert_cutoff(level_id, data, admin_id, now):
    """Create or update the cutoff of a level; ``expected_version`` guards lost updates."""
    data = dict(data or {})
    expected_version = data.pop('expected_version', None)
    if expected_version is not None:
        try:
            expected_version = int(expected_version)
        except (TypeError, ValueError):
            return Err(ErrorKind.INVALID_REQUEST, 'expected_version must be an integer')
    unknown = sorted(set(data) - set(_CUTOFF_FIELDS))
    if unknown:
        return Err(ErrorKind.INVALID_REQUEST, f"Unknown cutoff field(s): {', '.join(unknown)}")
    try:
        changes = {field: _parse(field, value) for field, value in data.items() if value is not None}
    except (TypeError, ValueError) as exc:
        return Err(ErrorKind.INVALID_REQUEST, str(exc))

    row = QualificationCutoff.query.filter_by(level_id=level_id).first()
    if row is None:
        row = QualificationCutoff(level_id=level_id)
        db.session.add(row)
    elif expected_version is not None and expected_version != row.version:
        return Err(
            ErrorKind.PERSISTENCE_CONFLICT,
            f"Cutoff for level {level_id} changed (version {row.version}), reload and retry",
        )
    for field, value in changes.items():
        setattr(row, field, value)
    row.updated_by = admin_id
    row.updated_at = now
    try:
        db.session.commit()
    except (IntegrityError, OperationalError, StaleDataError) as exc:
        db.session.rollback()
        current_app.logger.warning(f"[cutoff-conflict] level={level_id} error={exc.__class__.__name__}")
        return Err(ErrorKind.PERSISTENCE_CONFLICT, f"Cutoff for level {level_id} was updated concurrently")

    current_app.logger.info(f"[cutoff-update] level={level_id} admin={admin_id} version={row.version}")
    cutoff = row.to_dict()
    record_event(
        'CUTOFF_UPDATED', actor=admin_actor(admin_id), level_id=level_id,
        metadata={'changes': changes, 'version': cutoff['version']}, created_at=now,
    )
    return Ok(cutoff)
