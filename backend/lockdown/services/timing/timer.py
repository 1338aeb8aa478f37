"""Question timer state machine.

Each operation runs in one team transaction. Elapsed time is read from the
server clock at the transition, never from the client, and a team has at most
one question IN_PROGRESS at any moment: every activation goes through
``_activate`` which demotes whatever else is running first.
"""
from flask import current_app

from lockdown.models import ACTIVE, COMPLETED, IN_PROGRESS, NOT_STARTED, PAUSED, SKIPPED
from ..audit import defer_event, team_actor
from ..notifications import notify_team
from .aggregator import fold_elapsed, question_state, recompute
from .clock import elapsed_seconds
from .result import Err, ErrorKind, Ok
from .store import run_transaction


def level_is_finished(uow, level) -> bool:
    """True once every active question of the level is COMPLETED or SKIPPED."""
    puzzles = uow.level_puzzles(level)
    if not puzzles:
        return False
    rows = {row.puzzle_id: row for row in uow.progress_rows([p.id for p in puzzles])}
    return all(p.id in rows and rows[p.id].status in (COMPLETED, SKIPPED) for p in puzzles)


def next_open_question(uow, puzzle):
    """Lowest-numbered open question after ``puzzle`` in its level, wrapping around.

    Open means neither COMPLETED nor SKIPPED. Returns None when nothing is left.
    """
    puzzles = uow.level_puzzles(puzzle.level)
    rows = {row.puzzle_id: row for row in uow.progress_rows([p.id for p in puzzles])}
    candidates = [
        p for p in puzzles
        if p.id != puzzle.id and (p.id not in rows or rows[p.id].status not in (COMPLETED, SKIPPED))
    ]
    later = [p for p in candidates if p.puzzle_number > puzzle.puzzle_number]
    if later:
        return later[0]
    return candidates[0] if candidates else None


class QuestionTimer:

    def __init__(self, store, clock, settings, qualifier=None):
        self.store = store
        self.clock = clock
        self.settings = settings
        self.qualifier = qualifier

    def _run(self, team_id, question_id, operation):
        def guarded(uow):
            if uow.team() is None:
                return Err(ErrorKind.NOT_FOUND, f"Team {team_id} not found")
            puzzle = uow.puzzle(question_id)
            if puzzle is None:
                return Err(ErrorKind.NOT_FOUND, f"Question {question_id} not found")
            session = uow.session()
            if session.status == COMPLETED:
                return Err(ErrorKind.SESSION_ENDED, 'Session already ended')
            return operation(uow, session, puzzle, self.clock.now())
        return run_transaction(self.store, team_id, guarded)

    def _demote_others(self, uow, keep_id, now):
        for row in uow.in_progress_rows():
            if row.puzzle_id == keep_id:
                continue
            before = row.time_spent_seconds or 0
            fold_elapsed(row, now)
            row.status = NOT_STARTED
            row.last_paused_at = now
            current_app.logger.info(f"[timer-auto-pause] team={uow.team_id} question={row.puzzle_id}")
            defer_event(
                uow, 'question_auto_pause', actor=team_actor(uow.team_id), team_id=uow.team_id,
                question_id=row.puzzle_id, time_before=before, time_after=row.time_spent_seconds,
                metadata={'activated_question_id': keep_id}, created_at=now,
            )

    def _activate(self, uow, session, puzzle, progress, now):
        self._demote_others(uow, puzzle.id, now)
        fold_elapsed(progress, now)
        progress.status = IN_PROGRESS
        progress.started_at = now
        if progress.first_started_at is None:
            progress.first_started_at = now
        progress.updated_at = now
        session.current_question_id = puzzle.id
        session.status = ACTIVE
        if session.session_start is None:
            session.session_start = now
        if self.qualifier is not None:
            self.qualifier.mark_level_started(uow, puzzle.level, now)

    def _finish(self, uow, session, progress, now, event_type, time_before, metadata=None):
        recompute(uow, session, now)
        defer_event(
            uow, event_type, actor=team_actor(uow.team_id), team_id=uow.team_id,
            question_id=progress.puzzle_id, time_before=time_before,
            time_after=progress.time_spent_seconds, metadata=metadata or {}, created_at=now,
        )
        team_id = uow.team_id
        payload = {
            'event': event_type,
            'question_id': progress.puzzle_id,
            'status': progress.status,
            'session': session.to_dict(),
        }
        uow.after_commit(lambda: notify_team(team_id, 'timer_update', payload))

    def start(self, team_id, question_id):
        return self._run(team_id, question_id, self._start)

    def _start(self, uow, session, puzzle, now):
        progress = uow.progress(puzzle.id, create=True)
        if progress.status == COMPLETED:
            return Err(ErrorKind.ALREADY_COMPLETED, f"Question {puzzle.id} already completed")
        if progress.status == IN_PROGRESS:
            return Err(ErrorKind.ALREADY_IN_PROGRESS, f"Question {puzzle.id} already in progress")
        before = progress.time_spent_seconds
        self._activate(uow, session, puzzle, progress, now)
        current_app.logger.info(f"[timer-start] team={uow.team_id} question={puzzle.id}")
        self._finish(uow, session, progress, now, 'question_start', before)
        return Ok({'status': progress.status, 'progress': question_state(progress, puzzle.id, now)})

    def pause(self, team_id, question_id):
        return self._run(team_id, question_id, self._pause)

    def _pause(self, uow, session, puzzle, now):
        progress = uow.progress(puzzle.id)
        if progress is None or progress.status != IN_PROGRESS or progress.started_at is None:
            return Err(ErrorKind.NOT_IN_PROGRESS, f"Question {puzzle.id} is not in progress")
        before = progress.time_spent_seconds
        elapsed = fold_elapsed(progress, now)
        progress.status = NOT_STARTED
        progress.last_paused_at = now
        if session.current_question_id == puzzle.id:
            session.current_question_id = None
            session.status = PAUSED
        current_app.logger.info(
            f"[timer-pause] team={uow.team_id} question={puzzle.id} elapsed={elapsed}s total={progress.time_spent_seconds}s"
        )
        self._finish(uow, session, progress, now, 'question_pause', before, {'elapsed_seconds': elapsed})
        return Ok({
            'time_spent_seconds': progress.time_spent_seconds,
            'elapsed_this_session': elapsed,
            'progress': question_state(progress, puzzle.id, now),
        })

    def resume(self, team_id, question_id):
        return self._run(team_id, question_id, self._resume)

    def _resume(self, uow, session, puzzle, now):
        progress = uow.progress(puzzle.id, create=True)
        if progress.status == COMPLETED:
            return Err(ErrorKind.ALREADY_COMPLETED, f"Question {puzzle.id} already completed")
        if progress.status == IN_PROGRESS:
            return Err(ErrorKind.ALREADY_ACTIVE, f"Question {puzzle.id} is already active")
        pause_duration = elapsed_seconds(progress.last_paused_at, now)
        before = progress.time_spent_seconds
        self._activate(uow, session, puzzle, progress, now)
        current_app.logger.info(f"[timer-resume] team={uow.team_id} question={puzzle.id} paused={pause_duration}s")
        self._finish(uow, session, progress, now, 'question_resume', before, {'pause_duration_seconds': pause_duration})
        return Ok({
            'status': progress.status,
            'time_spent_seconds': progress.time_spent_seconds,
            'pause_duration': pause_duration,
            'progress': question_state(progress, puzzle.id, now),
        })

    def complete(self, team_id, question_id, correct):
        return self._run(team_id, question_id, lambda *args: self._complete(*args, correct=bool(correct)))

    def _complete(self, uow, session, puzzle, now, correct):
        progress = uow.progress(puzzle.id, create=True)
        if progress.status == COMPLETED:
            return Err(ErrorKind.ALREADY_COMPLETED, f"Question {puzzle.id} already completed")
        before = progress.time_spent_seconds
        fold_elapsed(progress, now)
        progress.status = COMPLETED
        progress.correct = correct
        progress.started_at = None
        progress.completed_at = now
        progress.updated_at = now
        if session.session_start is None:
            session.session_start = now
        if session.current_question_id in (puzzle.id, None):
            session.current_question_id = None
            session.status = PAUSED
        current_app.logger.info(
            f"[timer-complete] team={uow.team_id} question={puzzle.id} correct={correct} total={progress.time_spent_seconds}s"
        )
        self._finish(uow, session, progress, now, 'question_complete', before, {'correct': correct})

        level = None
        if self.qualifier is not None and level_is_finished(uow, puzzle.level):
            outcome = self.qualifier.evaluate_level(uow, puzzle.level, now=now)
            if outcome.ok:
                level = outcome.value
        return Ok({
            'status': progress.status,
            'time_spent_seconds': progress.time_spent_seconds,
            'correct': correct,
            'progress': question_state(progress, puzzle.id, now),
            'level_completed': level,
        })

    def skip(self, team_id, question_id):
        return self._run(team_id, question_id, self._skip)

    def _skip(self, uow, session, puzzle, now):
        settings = self.settings
        if not settings.skip_enabled:
            return Err(ErrorKind.SKIP_DISABLED, 'Skipping is disabled')
        progress = uow.progress(puzzle.id, create=True)
        if progress.status == COMPLETED:
            return Err(ErrorKind.CANNOT_SKIP_COMPLETED, f"Question {puzzle.id} is already completed")
        used = sum(row.skip_count or 0 for row in uow.progress_rows())
        if used >= settings.max_skips_per_team:
            return Err(ErrorKind.SKIP_LIMIT_EXCEEDED, f"Maximum skips ({settings.max_skips_per_team}) reached")

        before = progress.time_spent_seconds
        fold_elapsed(progress, now)
        penalty = settings.skip_penalty_seconds
        progress.status = SKIPPED
        progress.started_at = None
        progress.skip_count = (progress.skip_count or 0) + 1
        progress.skip_penalty_seconds = (progress.skip_penalty_seconds or 0) + penalty
        progress.time_penalty_seconds = (progress.time_penalty_seconds or 0) + penalty
        progress.updated_at = now
        if session.session_start is None:
            session.session_start = now
        if session.current_question_id in (puzzle.id, None):
            session.current_question_id = None
            session.status = PAUSED

        next_question = None
        upcoming = next_open_question(uow, puzzle)
        if upcoming is not None:
            upcoming_progress = uow.progress(upcoming.id, create=True)
            self._activate(uow, session, upcoming, upcoming_progress, now)
            next_question = {
                'puzzle_id': upcoming.id,
                'puzzle_number': upcoming.puzzle_number,
                'title': upcoming.title,
                'progress': question_state(upcoming_progress, upcoming.id, now),
            }

        current_app.logger.info(
            f"[timer-skip] team={uow.team_id} question={puzzle.id} penalty={penalty}s "
            f"skips={used + 1}/{settings.max_skips_per_team} next={upcoming.id if upcoming else None}"
        )
        self._finish(uow, session, progress, now, 'question_skip', before, {
            'penalty_seconds': penalty,
            'skip_count': progress.skip_count,
            'next_question_id': upcoming.id if upcoming else None,
        })
        return Ok({
            'skip_count': progress.skip_count,
            'skip_penalty_seconds': penalty,
            'skips_used': used + 1,
            'skips_remaining': max(0, settings.max_skips_per_team - used - 1),
            'total_penalty_seconds': session.total_penalty_seconds,
            'next_question': next_question,
        })

    def unskip(self, team_id, question_id):
        return self._run(team_id, question_id, self._unskip)

    def _unskip(self, uow, session, puzzle, now):
        progress = uow.progress(puzzle.id)
        if progress is None or progress.status != SKIPPED:
            return Err(ErrorKind.NOT_SKIPPED, f"Question {puzzle.id} is not skipped")
        before = progress.time_spent_seconds
        self._activate(uow, session, puzzle, progress, now)
        current_app.logger.info(f"[timer-unskip] team={uow.team_id} question={puzzle.id}")
        self._finish(uow, session, progress, now, 'question_unskip', before)
        return Ok({'status': progress.status, 'progress': question_state(progress, puzzle.id, now)})

    def navigate(self, team_id, question_id):
        return self._run(team_id, question_id, self._navigate)

    def _navigate(self, uow, session, puzzle, now):
        progress = uow.progress(puzzle.id, create=True)
        if progress.status == COMPLETED:
            return Err(ErrorKind.ALREADY_COMPLETED, f"Question {puzzle.id} already completed")
        if progress.status != IN_PROGRESS:
            before = progress.time_spent_seconds
            previous_status = progress.status
            self._activate(uow, session, puzzle, progress, now)
            current_app.logger.info(f"[timer-goto] team={uow.team_id} question={puzzle.id} from={previous_status}")
            self._finish(uow, session, progress, now, 'question_navigate', before, {'previous_status': previous_status})
        return Ok({
            'puzzle_id': puzzle.id,
            'puzzle_title': puzzle.title,
            'status': progress.status,
            'progress': question_state(progress, puzzle.id, now),
        })
