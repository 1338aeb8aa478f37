"""Team progress store.

All mutations of a team's session and question rows go through
``TeamProgressStore.transaction(team_id)``, which serializes requests of the
same team and commits or rolls back the whole unit of work. Requests of
different teams never share a lock.
"""
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional
import threading

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from lockdown.models import (
    Hint, HintUsage, NOT_STARTED, IN_PROGRESS, Puzzle, QuestionProgress, Team, TeamSession,
)
from .result import Err, ErrorKind, Result


class StoreConflict(Exception):
    """The transaction lost a race or could not get the team lock; safe to retry."""


class TeamLockRegistry:
    """One re-entrant lock per team id, created on first use."""

    def __init__(self):
        self._locks = {}
        self._guard = threading.Lock()

    def lock_for(self, team_id: int) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(team_id)
            if lock is None:
                lock = self._locks[team_id] = threading.RLock()
            return lock


class TeamUnitOfWork(ABC):
    """Reads and writes of one team's aggregate inside a single transaction."""

    def __init__(self, team_id: int):
        self.team_id = team_id
        self.discarded = False
        self._after_commit: List[Callable[[], None]] = []

    def discard(self) -> None:
        self.discarded = True

    def after_commit(self, callback: Callable[[], None]) -> None:
        self._after_commit.append(callback)

    def run_after_commit(self) -> None:
        for callback in self._after_commit:
            try:
                callback()
            except Exception:
                current_app.logger.exception(f"[after-commit] team={self.team_id} callback failed")
        self._after_commit = []

    @abstractmethod
    def team(self) -> Optional[Team]: ...

    @abstractmethod
    def session(self, create: bool = True) -> Optional[TeamSession]: ...

    @abstractmethod
    def progress(self, puzzle_id: int, create: bool = False) -> Optional[QuestionProgress]: ...

    @abstractmethod
    def progress_rows(self, puzzle_ids=None) -> List[QuestionProgress]: ...

    @abstractmethod
    def in_progress_rows(self) -> List[QuestionProgress]: ...

    @abstractmethod
    def puzzle(self, puzzle_id: int) -> Optional[Puzzle]: ...

    @abstractmethod
    def level_puzzles(self, level: int) -> List[Puzzle]: ...

    @abstractmethod
    def hint(self, hint_id: int) -> Optional[Hint]: ...

    @abstractmethod
    def used_hint_ids(self, puzzle_id: int = None) -> set: ...

    @abstractmethod
    def hint_penalty_total(self) -> int: ...

    @abstractmethod
    def add(self, record) -> None: ...


class TeamProgressStore(ABC):

    @abstractmethod
    def transaction(self, team_id: int) -> Iterator[TeamUnitOfWork]:
        """Serialized read-modify-write of one team's rows."""

    @abstractmethod
    def read(self, team_id: int) -> Iterator[TeamUnitOfWork]:
        """Read-only view; anything touched is rolled back."""


class SqlTeamUnitOfWork(TeamUnitOfWork):

    def __init__(self, team_id, session, lock_rows=True):
        super().__init__(team_id)
        self._db = session
        self._lock_rows = lock_rows

    def team(self):
        return self._db.get(Team, self.team_id)

    def session(self, create=True):
        query = self._db.query(TeamSession).filter_by(team_id=self.team_id)
        if self._lock_rows:
            query = query.with_for_update()
        row = query.first()
        if row is None and create:
            row = TeamSession(
                team_id=self.team_id,
                status=NOT_STARTED,
                questions_completed=0,
                questions_skipped=0,
                active_time_seconds=0,
                skip_penalty_seconds=0,
                hint_penalty_seconds=0,
                total_penalty_seconds=0,
            )
            self._db.add(row)
            self._db.flush()
        return row

    def progress(self, puzzle_id, create=False):
        row = self._db.query(QuestionProgress).filter_by(team_id=self.team_id, puzzle_id=puzzle_id).first()
        if row is None and create:
            row = QuestionProgress(
                team_id=self.team_id,
                puzzle_id=puzzle_id,
                status=NOT_STARTED,
                time_spent_seconds=0,
                skip_count=0,
                skip_penalty_seconds=0,
                time_penalty_seconds=0,
                hints_used=0,
                last_hint_number=0,
            )
            self._db.add(row)
            self._db.flush()
        return row

    def progress_rows(self, puzzle_ids=None):
        query = self._db.query(QuestionProgress).filter_by(team_id=self.team_id)
        if puzzle_ids is not None:
            if not puzzle_ids:
                return []
            query = query.filter(QuestionProgress.puzzle_id.in_(list(puzzle_ids)))
        return query.order_by(QuestionProgress.puzzle_id).all()

    def in_progress_rows(self):
        return (
            self._db.query(QuestionProgress)
            .filter_by(team_id=self.team_id, status=IN_PROGRESS)
            .all()
        )

    def puzzle(self, puzzle_id):
        return self._db.query(Puzzle).filter_by(id=puzzle_id, is_active=True).first()

    def level_puzzles(self, level):
        return (
            self._db.query(Puzzle)
            .filter_by(level=level, is_active=True)
            .order_by(Puzzle.puzzle_number)
            .all()
        )

    def hint(self, hint_id):
        return self._db.query(Hint).filter_by(id=hint_id, is_active=True).first()

    def used_hint_ids(self, puzzle_id=None):
        query = self._db.query(HintUsage.hint_id).filter_by(team_id=self.team_id)
        if puzzle_id is not None:
            query = query.filter_by(puzzle_id=puzzle_id)
        return {hint_id for (hint_id,) in query.all()}

    def hint_penalty_total(self):
        rows = self._db.query(HintUsage.penalty_seconds).filter_by(team_id=self.team_id).all()
        return sum(penalty or 0 for (penalty,) in rows)

    def add(self, record):
        self._db.add(record)


class SqlTeamProgressStore(TeamProgressStore):
    """Store backed by the Flask-SQLAlchemy session of the current app."""

    def __init__(self, db, locks: TeamLockRegistry, lock_timeout: float = 5.0):
        self._db = db
        self._locks = locks
        self._lock_timeout = lock_timeout

    @contextmanager
    def transaction(self, team_id):
        lock = self._locks.lock_for(team_id)
        if not lock.acquire(timeout=self._lock_timeout):
            raise StoreConflict(f"team {team_id} is busy, retry")
        session = self._db.session
        uow = SqlTeamUnitOfWork(team_id, session)
        try:
            session.expire_all()
            try:
                yield uow
            except BaseException:
                session.rollback()
                raise
            if uow.discarded:
                session.rollback()
                return
            try:
                session.commit()
            except (IntegrityError, OperationalError, StaleDataError) as exc:
                session.rollback()
                raise StoreConflict(f"team {team_id} update conflicted: {exc.__class__.__name__}") from exc
        finally:
            lock.release()
        uow.run_after_commit()

    @contextmanager
    def read(self, team_id):
        session = self._db.session
        uow = SqlTeamUnitOfWork(team_id, session, lock_rows=False)
        try:
            yield uow
        finally:
            session.rollback()


def run_transaction(store: TeamProgressStore, team_id: int, operation: Callable[[TeamUnitOfWork], Result]) -> Result:
    """Run ``operation(uow)`` in one team transaction; an ``Err`` rolls it back."""
    try:
        with store.transaction(team_id) as uow:
            result = operation(uow)
            if not result.ok:
                uow.discard()
            return result
    except StoreConflict as exc:
        current_app.logger.warning(f"[store-conflict] team={team_id} {exc}")
        return Err(ErrorKind.PERSISTENCE_CONFLICT, str(exc))
