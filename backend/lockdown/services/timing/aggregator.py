"""Session aggregator and penalty ledger.

Cached totals on ``TeamSession`` are always recomputed from the question rows
and the hint usage ledger, never incremented in place, so they cannot drift.
Snapshots add the in-flight time of the running question on top.
"""
from flask import current_app

from lockdown.models import COMPLETED, IN_PROGRESS, NOT_STARTED
from .clock import elapsed_seconds
from .result import Err, ErrorKind, Ok
from .store import run_transaction
from ..audit import defer_event


def fold_elapsed(progress, now):
    """Move the running interval of ``progress`` into ``time_spent_seconds``.

    Returns the seconds added (0 when the question was not running).
    """
    if progress.status != IN_PROGRESS or progress.started_at is None:
        return 0
    elapsed = elapsed_seconds(progress.started_at, now)
    progress.time_spent_seconds = (progress.time_spent_seconds or 0) + elapsed
    progress.started_at = None
    progress.updated_at = now
    return elapsed


def recompute(uow, session, now=None):
    rows = uow.progress_rows()
    session.active_time_seconds = sum(row.time_spent_seconds or 0 for row in rows)
    session.skip_penalty_seconds = sum(row.skip_penalty_seconds or 0 for row in rows)
    session.hint_penalty_seconds = uow.hint_penalty_total()
    session.total_penalty_seconds = session.skip_penalty_seconds + session.hint_penalty_seconds
    session.questions_completed = sum(1 for row in rows if row.status == COMPLETED)
    session.questions_skipped = sum(row.skip_count or 0 for row in rows)
    if now is not None:
        session.updated_at = now
    return session


def question_state(progress, puzzle_id, now):
    if progress is None:
        return {
            'puzzle_id': puzzle_id,
            'status': NOT_STARTED,
            'time_spent_seconds': 0,
            'is_running': False,
            'started_at': None,
            'skip_count': 0,
            'time_penalty_seconds': 0,
            'hints_used': 0,
        }
    running = progress.status == IN_PROGRESS and progress.started_at is not None
    in_flight = elapsed_seconds(progress.started_at, now) if running else 0
    state = progress.to_dict()
    state.update({
        'time_spent_seconds': (progress.time_spent_seconds or 0) + in_flight,
        'is_running': running,
    })
    return state


def session_snapshot(uow, now):
    session = uow.session(create=False)
    rows = uow.progress_rows()
    in_flight = sum(
        elapsed_seconds(row.started_at, now)
        for row in rows
        if row.status == IN_PROGRESS and row.started_at is not None
    )
    active = sum(row.time_spent_seconds or 0 for row in rows) + in_flight
    skip_penalty = sum(row.skip_penalty_seconds or 0 for row in rows)
    hint_penalty = uow.hint_penalty_total()
    snapshot = {
        'team_id': uow.team_id,
        'status': session.status if session else NOT_STARTED,
        'session_start': session.session_start.isoformat() if session and session.session_start else None,
        'session_end': session.session_end.isoformat() if session and session.session_end else None,
        'current_question_id': session.current_question_id if session else None,
        'questions_completed': sum(1 for row in rows if row.status == COMPLETED),
        'questions_skipped': sum(row.skip_count or 0 for row in rows),
        'active_time_seconds': active,
        'in_flight_seconds': in_flight,
        'skip_penalty_seconds': skip_penalty,
        'hint_penalty_seconds': hint_penalty,
        'total_penalty_seconds': skip_penalty + hint_penalty,
        'effective_time_seconds': active + skip_penalty + hint_penalty,
        'questions': [question_state(row, row.puzzle_id, now) for row in rows],
    }
    return snapshot


class SessionAggregator:

    def __init__(self, store, clock):
        self.store = store
        self.clock = clock

    def sync(self, team_id, question_id=None):
        """Authoritative timer view for a reconnecting client. Read-only."""
        now = self.clock.now()
        with self.store.read(team_id) as uow:
            session = uow.session(create=False)
            if question_id is None and session is not None:
                question_id = session.current_question_id
            question = None
            if question_id is not None:
                question = question_state(uow.progress(question_id), question_id, now)
            return {
                'question': question,
                'session': session_snapshot(uow, now),
                'server_time': now.isoformat(),
            }

    def end_session(self, team_id, actor):
        return run_transaction(self.store, team_id, lambda uow: self._end_session(uow, actor))

    def _end_session(self, uow, actor):
        now = self.clock.now()
        if uow.team() is None:
            return Err(ErrorKind.NOT_FOUND, f"Team {uow.team_id} not found")
        session = uow.session()
        if session.status == COMPLETED:
            return Err(ErrorKind.SESSION_ENDED, 'Session already ended')
        before = session.active_time_seconds or 0
        folded = 0
        for progress in uow.in_progress_rows():
            folded += fold_elapsed(progress, now)
            progress.status = NOT_STARTED
            progress.last_paused_at = now
        session.current_question_id = None
        session.status = COMPLETED
        if session.session_start is None:
            session.session_start = now
        session.session_end = now
        recompute(uow, session, now)
        total = session.active_time_seconds
        effective = total + session.total_penalty_seconds
        defer_event(
            uow, 'session_end', actor=actor, team_id=uow.team_id,
            time_before=before, time_after=total,
            metadata={'folded_seconds': folded, 'effective_time_seconds': effective},
            created_at=now,
        )
        current_app.logger.info(f"[session-end] team={uow.team_id} total={total}s effective={effective}s")
        return Ok({
            'total_time_seconds': total,
            'effective_time_seconds': effective,
            'total_penalty_seconds': session.total_penalty_seconds,
            'session': session.to_dict(),
        })
