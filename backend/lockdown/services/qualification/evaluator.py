"""Level qualification.

When a team finishes a level its question rows are reduced to level metrics and
checked against a snapshot of the level's cutoff. The same rows and the same
cutoff always give the same verdict. A level without a cutoff lets the team
through.
"""
from dataclasses import asdict, dataclass
from typing import Optional, Tuple

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from lockdown.models import (
    COMPLETED, DISQUALIFIED, IN_PROGRESS, NOT_STARTED, PENDING, QUALIFIED,
    LevelStatus, Puzzle, Team,
)
from ..audit import SYSTEM, admin_actor, defer_event
from ..notifications import notify_team
from ..timing.clock import as_utc
from ..timing.result import Err, ErrorKind, Ok
from ..timing.store import run_transaction
from .cutoffs import CutoffSnapshot, load_cutoff_snapshot
from .messages import create_qualification_message

NO_CUTOFF_REASON = 'No cutoffs configured - auto-qualified'
MANUAL_REASON = 'Manual qualification required'
ALL_MET_REASON = 'All criteria met'

OVERRIDE_STATUSES = (QUALIFIED, DISQUALIFIED)


@dataclass(frozen=True)
class LevelMetrics:
    score: int = 0
    questions_answered: int = 0
    questions_correct: int = 0
    accuracy: float = 0.0
    time_taken_seconds: int = 0
    hints_used: int = 0

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class Verdict:
    status: str
    reason: str
    failures: Tuple[str, ...] = ()
    cutoff_version: Optional[int] = None

    @property
    def decided(self):
        return self.status != PENDING


def metrics_from_rows(rows, points_by_puzzle) -> LevelMetrics:
    """Reduce a level's question rows to its final metrics."""
    answered = len(rows)
    correct = sum(1 for row in rows if row.correct)
    score = sum(points_by_puzzle.get(row.puzzle_id, 0) for row in rows if row.status == COMPLETED)
    accuracy = round(correct / answered * 100, 2) if answered else 0.0

    started = [as_utc(row.first_started_at) for row in rows if row.first_started_at]
    finished = [as_utc(row.completed_at) for row in rows if row.completed_at]
    time_taken = 0
    if started and finished:
        time_taken = max(0, int((max(finished) - min(started)).total_seconds()))

    return LevelMetrics(
        score=score,
        questions_answered=answered,
        questions_correct=correct,
        accuracy=accuracy,
        time_taken_seconds=time_taken,
        hints_used=sum(row.hints_used or 0 for row in rows),
    )


def _clock_text(seconds):
    minutes, seconds = divmod(int(seconds), 60)
    return f"{minutes}:{seconds:02d}"


def evaluate_cutoff(metrics: LevelMetrics, cutoff: Optional[CutoffSnapshot]) -> Verdict:
    if cutoff is None:
        return Verdict(QUALIFIED, NO_CUTOFF_REASON)
    if not cutoff.auto_qualify:
        return Verdict(PENDING, MANUAL_REASON, cutoff_version=cutoff.version)

    failures = []
    if metrics.score < cutoff.min_score:
        failures.append(f"Score ({metrics.score}) below minimum ({cutoff.min_score})")
    if metrics.accuracy < cutoff.min_accuracy:
        failures.append(f"Accuracy ({metrics.accuracy}%) below minimum ({cutoff.min_accuracy}%)")
    if metrics.time_taken_seconds > cutoff.max_time_seconds:
        failures.append(
            f"Time ({_clock_text(metrics.time_taken_seconds)}) exceeded limit ({_clock_text(cutoff.max_time_seconds)})"
        )
    if metrics.hints_used > cutoff.max_hints_allowed:
        failures.append(f"Hints used ({metrics.hints_used}) exceeded limit ({cutoff.max_hints_allowed})")
    if metrics.questions_correct < cutoff.min_questions_correct:
        failures.append(
            f"Correct answers ({metrics.questions_correct}) below minimum ({cutoff.min_questions_correct})"
        )

    if failures:
        return Verdict(DISQUALIFIED, '; '.join(failures), tuple(failures), cutoff.version)
    return Verdict(QUALIFIED, ALL_MET_REASON, cutoff_version=cutoff.version)


def _level_status(uow, level_id, create=True):
    row = LevelStatus.query.filter_by(team_id=uow.team_id, level_id=level_id).first()
    if row is None and create:
        row = LevelStatus(
            team_id=uow.team_id,
            level_id=level_id,
            status=NOT_STARTED,
            qualification_status=PENDING,
            was_manually_overridden=False,
        )
        uow.add(row)
    return row


def _apply_metrics(status_row, metrics):
    for field, value in metrics.to_dict().items():
        setattr(status_row, field, value)


class LevelQualifier:

    def __init__(self, store, clock):
        self.store = store
        self.clock = clock

    # -- helpers used from inside a timer transaction --

    def mark_level_started(self, uow, level_id, now):
        row = _level_status(uow, level_id)
        if row.status == NOT_STARTED:
            row.status = IN_PROGRESS
            row.started_at = now

    def compute_metrics(self, uow, level_id) -> LevelMetrics:
        try:
            puzzles = uow.level_puzzles(level_id)
            rows = uow.progress_rows([p.id for p in puzzles])
            return metrics_from_rows(rows, {p.id: p.points or 0 for p in puzzles})
        except SQLAlchemyError as exc:
            current_app.logger.error(f"[metrics-failed] team={uow.team_id} level={level_id} error={exc}")
            return LevelMetrics()

    def evaluate_level(self, uow, level_id, actor=SYSTEM, now=None):
        """Close the level for ``uow.team_id`` and decide its qualification."""
        now = now or self.clock.now()
        if not uow.level_puzzles(level_id):
            return Err(ErrorKind.NOT_FOUND, f"Level {level_id} has no questions")
        status_row = _level_status(uow, level_id)
        if status_row.status == COMPLETED:
            return Err(ErrorKind.ALREADY_COMPLETED, f"Level {level_id} already completed")

        metrics = self.compute_metrics(uow, level_id)
        _apply_metrics(status_row, metrics)
        status_row.status = COMPLETED
        status_row.completed_at = now
        if status_row.started_at is None:
            status_row.started_at = now

        try:
            cutoff = load_cutoff_snapshot(level_id)
        except SQLAlchemyError as exc:
            current_app.logger.error(f"[cutoff-lookup-failed] level={level_id} error={exc}")
            cutoff = None
        verdict = evaluate_cutoff(metrics, cutoff)
        previous = status_row.qualification_status
        defer_event(
            uow, 'LEVEL_COMPLETED', actor=actor, team_id=uow.team_id, level_id=level_id,
            time_after=metrics.time_taken_seconds,
            metadata={
                'metrics': metrics.to_dict(),
                'previous_status': previous,
                'new_status': verdict.status,
            },
            created_at=now,
        )
        status_row.qualification_status = verdict.status
        status_row.qualification_reason = verdict.reason
        current_app.logger.info(
            f"[qualification] team={uow.team_id} level={level_id} verdict={verdict.status} reason={verdict.reason}"
        )

        if verdict.decided:
            status_row.qualification_decided_at = now
            create_qualification_message(
                uow.team_id, level_id, verdict.status == QUALIFIED, metrics.to_dict(),
                verdict.failures, manual=False, now=now,
            )
            defer_event(
                uow, f"AUTO_{verdict.status}", team_id=uow.team_id, level_id=level_id,
                metadata={
                    'previous_status': previous,
                    'new_status': verdict.status,
                    'reason': verdict.reason,
                    'failures': list(verdict.failures),
                    'metrics': metrics.to_dict(),
                    'cutoff_version': verdict.cutoff_version,
                },
                created_at=now,
            )
            team_id = uow.team_id
            payload = {'level_id': level_id, 'qualification_status': verdict.status, 'reason': verdict.reason}
            uow.after_commit(lambda: notify_team(team_id, 'qualification_decided', payload))

        return Ok({
            'level_id': level_id,
            'status': status_row.status,
            'qualification_status': verdict.status,
            'reason': verdict.reason,
            'failures': list(verdict.failures),
            'metrics': metrics.to_dict(),
        })

    # -- standalone operations --

    def complete_level(self, team_id, level_id, actor=SYSTEM):
        return run_transaction(self.store, team_id, lambda uow: self.evaluate_level(uow, level_id, actor))

    def admin_override(self, team_id, level_id, new_status, admin_id, reason=None):
        if new_status not in OVERRIDE_STATUSES:
            return Err(ErrorKind.INVALID_REQUEST, f"status must be one of {', '.join(OVERRIDE_STATUSES)}")
        return run_transaction(
            self.store, team_id,
            lambda uow: self._override(uow, level_id, new_status, admin_id, reason),
        )

    def _override(self, uow, level_id, new_status, admin_id, reason):
        now = self.clock.now()
        if uow.team() is None:
            return Err(ErrorKind.NOT_FOUND, f"Team {uow.team_id} not found")
        status_row = _level_status(uow, level_id)
        if status_row.status != COMPLETED:
            # overrides need metrics on record
            metrics = self.compute_metrics(uow, level_id)
            _apply_metrics(status_row, metrics)
            status_row.status = COMPLETED
            status_row.completed_at = now
            if status_row.started_at is None:
                status_row.started_at = now

        previous = status_row.qualification_status
        status_row.qualification_status = new_status
        status_row.qualification_decided_at = now
        status_row.qualification_reason = reason or f"Manually set to {new_status} by admin"
        status_row.was_manually_overridden = True
        status_row.override_by = admin_id
        status_row.override_reason = reason
        status_row.override_at = now
        create_qualification_message(
            uow.team_id, level_id, new_status == QUALIFIED, status_row.metrics(), manual=True, now=now,
        )
        defer_event(
            uow, f"ADMIN_{new_status}", actor=admin_actor(admin_id), team_id=uow.team_id,
            level_id=level_id,
            metadata={
                'previous_status': previous,
                'new_status': new_status,
                'reason': reason,
                'metrics': status_row.metrics(),
            },
            created_at=now,
        )
        team_id = uow.team_id
        payload = {'level_id': level_id, 'qualification_status': new_status, 'reason': reason, 'manual': True}
        uow.after_commit(lambda: notify_team(team_id, 'qualification_decided', payload))
        current_app.logger.info(
            f"[qualification-override] team={uow.team_id} level={level_id} {previous} -> {new_status} admin={admin_id}"
        )
        return Ok({'previous_status': previous, 'level': status_row.to_dict()})

    # -- read side --

    def can_access_level(self, team_id, level_id):
        if level_id <= 1:
            return True
        previous = LevelStatus.query.filter_by(team_id=team_id, level_id=level_id - 1).first()
        return previous is not None and previous.qualification_status == QUALIFIED

    def level_summary(self, team_id):
        rows = {row.level_id: row for row in LevelStatus.query.filter_by(team_id=team_id).all()}
        levels = sorted({level for (level,) in Puzzle.query.with_entities(Puzzle.level).distinct().all()} | set(rows))
        summary = []
        for level in levels:
            row = rows.get(level)
            entry = row.to_dict() if row else {
                'team_id': team_id,
                'level_id': level,
                'status': NOT_STARTED,
                'qualification_status': PENDING,
            }
            entry['can_access'] = self.can_access_level(team_id, level)
            summary.append(entry)
        return summary

    def teams_overview(self, level_id=None):
        query = LevelStatus.query
        if level_id is not None:
            query = query.filter_by(level_id=level_id)
        names = {team.id: team.team_name for team in Team.query.all()}
        overview = []
        for row in query.order_by(LevelStatus.level_id, LevelStatus.score.desc()).all():
            entry = row.to_dict()
            entry['team_name'] = names.get(row.team_id)
            overview.append(entry)
        return overview
