from dataclasses import dataclass

from flask import current_app

from lockdown import db
from .qualification.evaluator import LevelQualifier
from .timing.aggregator import SessionAggregator
from .timing.hints import HintLedger
from .timing.settings import GameSettings, load_game_settings
from .timing.store import SqlTeamProgressStore, TeamProgressStore
from .timing.timer import QuestionTimer


@dataclass
class Engine:
    clock: object
    settings: GameSettings
    store: TeamProgressStore
    timer: QuestionTimer
    aggregator: SessionAggregator
    hints: HintLedger
    qualifier: LevelQualifier


def build_engine(app=None) -> Engine:
    """Wire the engine for one request; settings are read fresh each time."""
    app = app or current_app
    clock = app.extensions['lockdown_clock']
    store = SqlTeamProgressStore(
        db,
        app.extensions['lockdown_team_locks'],
        lock_timeout=float(app.config.get('TEAM_LOCK_TIMEOUT_SEC', 5.0)),
    )
    settings = load_game_settings()
    qualifier = LevelQualifier(store, clock)
    return Engine(
        clock=clock,
        settings=settings,
        store=store,
        timer=QuestionTimer(store, clock, settings, qualifier),
        aggregator=SessionAggregator(store, clock),
        hints=HintLedger(store, clock, settings),
        qualifier=qualifier,
    )
