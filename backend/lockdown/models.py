from lockdown import db
from flask_login import UserMixin
from sqlalchemy import event
from datetime import datetime, timezone


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


# Question progress states
NOT_STARTED = 'NOT_STARTED'
IN_PROGRESS = 'IN_PROGRESS'
COMPLETED = 'COMPLETED'
SKIPPED = 'SKIPPED'

# Team session states (NOT_STARTED and COMPLETED shared with the above)
ACTIVE = 'ACTIVE'
PAUSED = 'PAUSED'

# Qualification verdicts
PENDING = 'PENDING'
QUALIFIED = 'QUALIFIED'
DISQUALIFIED = 'DISQUALIFIED'


class Team(UserMixin, db.Model):
    __tablename__ = 'team'
    id = db.Column(db.Integer, primary_key=True)
    team_name = db.Column(db.String(64), unique=True, nullable=False, index=True)
    role = 'team'

    def get_id(self):
        return f"team:{self.id}"

    def to_dict(self):
        return {
            'id': self.id,
            'team_name': self.team_name,
        }


class Admin(UserMixin, db.Model):
    __tablename__ = 'admin'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), unique=True, nullable=False)
    role = 'admin'

    def get_id(self):
        return f"admin:{self.id}"


class Puzzle(db.Model):
    __tablename__ = 'puzzle'
    id = db.Column(db.Integer, primary_key=True)
    level = db.Column(db.Integer, nullable=False, index=True)
    puzzle_number = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(128), nullable=False)
    points = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    hints = db.relationship('Hint', backref='puzzle', lazy='dynamic', order_by='Hint.hint_number')

    __table_args__ = (db.UniqueConstraint('level', 'puzzle_number', name='uq_puzzle_level_number'),)

    def to_dict(self):
        return {
            'id': self.id,
            'level': self.level,
            'puzzle_number': self.puzzle_number,
            'title': self.title,
            'points': self.points,
        }


class Hint(db.Model):
    __tablename__ = 'hint'
    id = db.Column(db.Integer, primary_key=True)
    puzzle_id = db.Column(db.Integer, db.ForeignKey('puzzle.id'), nullable=False, index=True)
    hint_number = db.Column(db.Integer, nullable=False)
    hint_text = db.Column(db.Text, nullable=False)
    # None falls back to the configured hint penalty
    time_penalty_seconds = db.Column(db.Integer, nullable=True)
    penalty_multiplier = db.Column(db.Float, nullable=False, default=1.0)
    unlock_after_seconds = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)


class TeamSession(db.Model):
    __tablename__ = 'team_session'
    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey('team.id'), unique=True, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=NOT_STARTED)
    session_start = db.Column(db.DateTime(timezone=True), nullable=True)
    session_end = db.Column(db.DateTime(timezone=True), nullable=True)
    questions_completed = db.Column(db.Integer, nullable=False, default=0)
    questions_skipped = db.Column(db.Integer, nullable=False, default=0)
    active_time_seconds = db.Column(db.Integer, nullable=False, default=0)
    skip_penalty_seconds = db.Column(db.Integer, nullable=False, default=0)
    hint_penalty_seconds = db.Column(db.Integer, nullable=False, default=0)
    total_penalty_seconds = db.Column(db.Integer, nullable=False, default=0)
    # The single question allowed to be IN_PROGRESS for this team
    current_question_id = db.Column(db.Integer, db.ForeignKey('puzzle.id'), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self):
        return {
            'team_id': self.team_id,
            'status': self.status,
            'session_start': _iso(self.session_start),
            'session_end': _iso(self.session_end),
            'questions_completed': self.questions_completed,
            'questions_skipped': self.questions_skipped,
            'active_time_seconds': self.active_time_seconds,
            'skip_penalty_seconds': self.skip_penalty_seconds,
            'hint_penalty_seconds': self.hint_penalty_seconds,
            'total_penalty_seconds': self.total_penalty_seconds,
            'effective_time_seconds': self.active_time_seconds + self.total_penalty_seconds,
            'current_question_id': self.current_question_id,
        }


class QuestionProgress(db.Model):
    __tablename__ = 'question_progress'
    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey('team.id'), nullable=False, index=True)
    puzzle_id = db.Column(db.Integer, db.ForeignKey('puzzle.id'), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=NOT_STARTED, index=True)
    time_spent_seconds = db.Column(db.Integer, nullable=False, default=0)
    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    first_started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_paused_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    skip_count = db.Column(db.Integer, nullable=False, default=0)
    skip_penalty_seconds = db.Column(db.Integer, nullable=False, default=0)
    time_penalty_seconds = db.Column(db.Integer, nullable=False, default=0)
    hints_used = db.Column(db.Integer, nullable=False, default=0)
    last_hint_number = db.Column(db.Integer, nullable=False, default=0)
    correct = db.Column(db.Boolean, nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    puzzle = db.relationship('Puzzle')

    __table_args__ = (db.UniqueConstraint('team_id', 'puzzle_id', name='uq_progress_team_puzzle'),)

    def to_dict(self):
        return {
            'puzzle_id': self.puzzle_id,
            'status': self.status,
            'time_spent_seconds': self.time_spent_seconds,
            'started_at': _iso(self.started_at),
            'completed_at': _iso(self.completed_at),
            'skip_count': self.skip_count,
            'time_penalty_seconds': self.time_penalty_seconds,
            'hints_used': self.hints_used,
            'correct': self.correct,
        }


class HintUsage(db.Model):
    __tablename__ = 'hint_usage'
    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey('team.id'), nullable=False, index=True)
    hint_id = db.Column(db.Integer, db.ForeignKey('hint.id'), nullable=False)
    puzzle_id = db.Column(db.Integer, db.ForeignKey('puzzle.id'), nullable=False)
    penalty_seconds = db.Column(db.Integer, nullable=False, default=0)
    used_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (db.UniqueConstraint('team_id', 'hint_id', name='uq_hint_usage_team_hint'),)


class LevelStatus(db.Model):
    __tablename__ = 'level_status'
    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey('team.id'), nullable=False, index=True)
    level_id = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=NOT_STARTED)
    qualification_status = db.Column(db.String(16), nullable=False, default=PENDING)
    score = db.Column(db.Integer, nullable=False, default=0)
    questions_answered = db.Column(db.Integer, nullable=False, default=0)
    questions_correct = db.Column(db.Integer, nullable=False, default=0)
    accuracy = db.Column(db.Float, nullable=False, default=0.0)
    time_taken_seconds = db.Column(db.Integer, nullable=False, default=0)
    hints_used = db.Column(db.Integer, nullable=False, default=0)
    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    qualification_decided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    qualification_reason = db.Column(db.Text, nullable=True)
    was_manually_overridden = db.Column(db.Boolean, nullable=False, default=False)
    override_by = db.Column(db.Integer, db.ForeignKey('admin.id'), nullable=True)
    override_reason = db.Column(db.String(255), nullable=True)
    override_at = db.Column(db.DateTime(timezone=True), nullable=True)

    __table_args__ = (db.UniqueConstraint('team_id', 'level_id', name='uq_level_status_team_level'),)

    def metrics(self):
        return {
            'score': self.score,
            'questions_answered': self.questions_answered,
            'questions_correct': self.questions_correct,
            'accuracy': self.accuracy,
            'time_taken_seconds': self.time_taken_seconds,
            'hints_used': self.hints_used,
        }

    def to_dict(self):
        payload = {
            'team_id': self.team_id,
            'level_id': self.level_id,
            'status': self.status,
            'qualification_status': self.qualification_status,
            'started_at': _iso(self.started_at),
            'completed_at': _iso(self.completed_at),
            'qualification_decided_at': _iso(self.qualification_decided_at),
            'qualification_reason': self.qualification_reason,
            'was_manually_overridden': self.was_manually_overridden,
            'override_by': self.override_by,
            'override_reason': self.override_reason,
            'override_at': _iso(self.override_at),
        }
        payload.update(self.metrics())
        return payload


class QualificationCutoff(db.Model):
    __tablename__ = 'qualification_cutoff'
    id = db.Column(db.Integer, primary_key=True)
    level_id = db.Column(db.Integer, unique=True, nullable=False)
    min_score = db.Column(db.Integer, nullable=False, default=0)
    min_accuracy = db.Column(db.Float, nullable=False, default=0.0)
    max_time_seconds = db.Column(db.Integer, nullable=False, default=7200)
    max_hints_allowed = db.Column(db.Integer, nullable=False, default=10)
    min_questions_correct = db.Column(db.Integer, nullable=False, default=5)
    auto_qualify = db.Column(db.Boolean, nullable=False, default=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    version = db.Column(db.Integer, nullable=False)
    updated_by = db.Column(db.Integer, db.ForeignKey('admin.id'), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    __mapper_args__ = {'version_id_col': version}

    def to_dict(self):
        return {
            'level_id': self.level_id,
            'min_score': self.min_score,
            'min_accuracy': self.min_accuracy,
            'max_time_seconds': self.max_time_seconds,
            'max_hints_allowed': self.max_hints_allowed,
            'min_questions_correct': self.min_questions_correct,
            'auto_qualify': self.auto_qualify,
            'is_active': self.is_active,
            'version': self.version,
            'updated_by': self.updated_by,
            'updated_at': _iso(self.updated_at),
        }


class QualificationMessage(db.Model):
    __tablename__ = 'qualification_message'
    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey('team.id'), nullable=False, index=True)
    level_id = db.Column(db.Integer, nullable=False)
    message_type = db.Column(db.String(32), nullable=False)  # QUALIFICATION, DISQUALIFICATION
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    is_dismissed = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)
    dismissed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'level_id': self.level_id,
            'message_type': self.message_type,
            'title': self.title,
            'message': self.message,
            'is_read': self.is_read,
            'created_at': _iso(self.created_at),
        }


class GameSetting(db.Model):
    """Single admin-editable row (id=1); null columns fall back to app config."""
    __tablename__ = 'game_setting'
    id = db.Column(db.Integer, primary_key=True)
    skip_enabled = db.Column(db.Boolean, nullable=True)
    max_skips_per_team = db.Column(db.Integer, nullable=True)
    skip_penalty_seconds = db.Column(db.Integer, nullable=True)
    hint_penalty_seconds = db.Column(db.Integer, nullable=True)
    max_hints_per_question = db.Column(db.Integer, nullable=True)
    question_time_limit_seconds = db.Column(db.Integer, nullable=True)
    total_game_time_limit_seconds = db.Column(db.Integer, nullable=True)
    updated_by = db.Column(db.Integer, db.ForeignKey('admin.id'), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)


class AuditEvent(db.Model):
    __tablename__ = 'audit_event'
    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey('team.id'), nullable=True, index=True)
    question_id = db.Column(db.Integer, db.ForeignKey('puzzle.id'), nullable=True)
    level_id = db.Column(db.Integer, nullable=True)
    event_type = db.Column(db.String(64), nullable=False, index=True)
    time_before = db.Column(db.Integer, nullable=True)
    time_after = db.Column(db.Integer, nullable=True)
    # `metadata` is reserved on declarative classes
    details = db.Column('metadata', db.JSON, nullable=True)
    actor_type = db.Column(db.String(16), nullable=False)  # team, admin, system
    actor_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'team_id': self.team_id,
            'question_id': self.question_id,
            'level_id': self.level_id,
            'event_type': self.event_type,
            'time_before': self.time_before,
            'time_after': self.time_after,
            'time_delta': (self.time_after or 0) - (self.time_before or 0),
            'metadata': self.details or {},
            'actor_type': self.actor_type,
            'actor_id': self.actor_id,
            'created_at': _iso(self.created_at),
        }


class AuditLogImmutable(Exception):
    pass


@event.listens_for(AuditEvent, 'before_update')
def _reject_audit_update(mapper, connection, target):
    raise AuditLogImmutable(f"audit event {target.id} cannot be modified")


@event.listens_for(AuditEvent, 'before_delete')
def _reject_audit_delete(mapper, connection, target):
    raise AuditLogImmutable(f"audit event {target.id} cannot be deleted")
