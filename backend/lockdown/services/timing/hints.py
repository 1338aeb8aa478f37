from flask import current_app

from lockdown.models import COMPLETED, IN_PROGRESS, HintUsage
from ..audit import defer_event, team_actor
from ..notifications import notify_team
from .aggregator import question_state, recompute
from .result import Err, ErrorKind, Ok
from .store import run_transaction


def hint_penalty(hint, settings) -> int:
    base = hint.time_penalty_seconds
    if base is None:
        base = settings.hint_penalty_seconds
    return int(round(base * (hint.penalty_multiplier or 1.0)))


class HintLedger:
    """Hints are consumed in order, once each, and charge their penalty to the team."""

    def __init__(self, store, clock, settings):
        self.store = store
        self.clock = clock
        self.settings = settings

    def use_hint(self, team_id, hint_id):
        return run_transaction(self.store, team_id, lambda uow: self._use_hint(uow, hint_id))

    def _use_hint(self, uow, hint_id):
        now = self.clock.now()
        if uow.team() is None:
            return Err(ErrorKind.NOT_FOUND, f"Team {uow.team_id} not found")
        hint = uow.hint(hint_id)
        if hint is None or uow.puzzle(hint.puzzle_id) is None:
            return Err(ErrorKind.NOT_FOUND, f"Hint {hint_id} not found")
        session = uow.session()
        if session.status == COMPLETED:
            return Err(ErrorKind.SESSION_ENDED, 'Session already ended')
        progress = uow.progress(hint.puzzle_id)
        if progress is None or progress.status != IN_PROGRESS:
            return Err(ErrorKind.NOT_IN_PROGRESS, 'Start the question before using its hints')
        if hint.id in uow.used_hint_ids(hint.puzzle_id):
            return Err(ErrorKind.HINT_ALREADY_USED, f"Hint {hint.hint_number} already used")
        expected = (progress.last_hint_number or 0) + 1
        if hint.hint_number != expected:
            return Err(ErrorKind.HINT_OUT_OF_ORDER, f"Use hint {expected} first")
        limit = self.settings.max_hints_per_question
        if (progress.hints_used or 0) >= limit:
            return Err(ErrorKind.HINT_LIMIT_EXCEEDED, f"Maximum hints ({limit}) used for this question")

        penalty = hint_penalty(hint, self.settings)
        penalty_before = session.total_penalty_seconds or 0
        uow.add(HintUsage(
            team_id=uow.team_id,
            hint_id=hint.id,
            puzzle_id=hint.puzzle_id,
            penalty_seconds=penalty,
            used_at=now,
        ))
        progress.hints_used = (progress.hints_used or 0) + 1
        progress.last_hint_number = hint.hint_number
        progress.time_penalty_seconds = (progress.time_penalty_seconds or 0) + penalty
        progress.updated_at = now
        recompute(uow, session, now)

        current_app.logger.info(
            f"[hint-use] team={uow.team_id} question={hint.puzzle_id} hint={hint.hint_number} penalty={penalty}s"
        )
        defer_event(
            uow, 'hint_use', actor=team_actor(uow.team_id), team_id=uow.team_id,
            question_id=hint.puzzle_id, time_before=penalty_before,
            time_after=session.total_penalty_seconds,
            metadata={'hint_id': hint.id, 'hint_number': hint.hint_number, 'penalty_seconds': penalty},
            created_at=now,
        )
        team_id = uow.team_id
        payload = {
            'question_id': hint.puzzle_id,
            'hint_id': hint.id,
            'hint_number': hint.hint_number,
            'penalty_seconds': penalty,
            'total_penalty_seconds': session.total_penalty_seconds,
        }
        uow.after_commit(lambda: notify_team(team_id, 'hint_penalty', payload))
        return Ok({
            'hint': {'id': hint.id, 'hint_number': hint.hint_number, 'hint_text': hint.hint_text},
            'penalty_seconds': penalty,
            'hints_used': progress.hints_used,
            'total_penalty_seconds': session.total_penalty_seconds,
        })

    def available_hints(self, team_id, question_id):
        now = self.clock.now()
        with self.store.read(team_id) as uow:
            puzzle = uow.puzzle(question_id)
            if puzzle is None:
                return Err(ErrorKind.NOT_FOUND, f"Question {question_id} not found")
            progress = uow.progress(question_id)
            elapsed = question_state(progress, question_id, now)['time_spent_seconds']
            used_ids = uow.used_hint_ids(question_id)
            hints_used = progress.hints_used if progress else 0
            next_number = (progress.last_hint_number if progress else 0) + 1
            running = progress is not None and progress.status == IN_PROGRESS
            limit = self.settings.max_hints_per_question

            hints = []
            for hint in puzzle.hints.filter_by(is_active=True).all():
                is_used = hint.id in used_ids
                hints.append({
                    'id': hint.id,
                    'hint_number': hint.hint_number,
                    'penalty_seconds': hint_penalty(hint, self.settings),
                    'unlock_after_seconds': hint.unlock_after_seconds,
                    'is_used': is_used,
                    'can_unlock': (
                        not is_used and running
                        and hint.hint_number == next_number
                        and hints_used < limit
                        and elapsed >= (hint.unlock_after_seconds or 0)
                    ),
                    'hint_text': hint.hint_text if is_used else None,
                })
            return Ok({
                'question_id': question_id,
                'time_spent_seconds': elapsed,
                'hints_used': hints_used,
                'max_hints': limit,
                'hints': hints,
            })
