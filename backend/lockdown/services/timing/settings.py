from dataclasses import asdict, dataclass, replace

from flask import current_app

from lockdown import db
from lockdown.models import GameSetting
from .result import Err, ErrorKind, Ok, Result

SETTINGS_ROW_ID = 1

# game_settings column -> app config key holding its default
_CONFIG_DEFAULTS = {
    'skip_enabled': 'SKIP_ENABLED',
    'max_skips_per_team': 'MAX_SKIPS_PER_TEAM',
    'skip_penalty_seconds': 'SKIP_PENALTY_SEC',
    'hint_penalty_seconds': 'HINT_PENALTY_SEC',
    'max_hints_per_question': 'MAX_HINTS_PER_QUESTION',
    'question_time_limit_seconds': 'QUESTION_TIME_LIMIT_SEC',
    'total_game_time_limit_seconds': 'TOTAL_GAME_TIME_LIMIT_SEC',
}


@dataclass(frozen=True)
class GameSettings:
    skip_enabled: bool = True
    max_skips_per_team: int = 3
    skip_penalty_seconds: int = 300
    hint_penalty_seconds: int = 30
    max_hints_per_question: int = 2
    question_time_limit_seconds: int = 1800
    total_game_time_limit_seconds: int = 7200

    def to_dict(self):
        return asdict(self)


def settings_from_config(config) -> GameSettings:
    base = GameSettings()
    overrides = {
        field: config[key]
        for field, key in _CONFIG_DEFAULTS.items()
        if config.get(key) is not None
    }
    return replace(base, **overrides)


def load_game_settings() -> GameSettings:
    """Config defaults overlaid with whatever the admin row sets."""
    settings = settings_from_config(current_app.config)
    row = db.session.get(GameSetting, SETTINGS_ROW_ID)
    if row is None:
        return settings
    overrides = {
        field: getattr(row, field)
        for field in _CONFIG_DEFAULTS
        if getattr(row, field) is not None
    }
    return replace(settings, **overrides)


def _coerce(field, value):
    if field == 'skip_enabled':
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, str)) and str(value).lower() in ('1', 'true', 'yes', '0', 'false', 'no'):
            return str(value).lower() in ('1', 'true', 'yes')
        raise ValueError(f"{field} must be a boolean")
    if isinstance(value, bool):
        raise ValueError(f"{field} must be an integer")
    number = int(value)
    if number < 0:
        raise ValueError(f"{field} must be >= 0")
    return number


def update_game_settings(changes: dict, admin_id: int, now) -> Result:
    unknown = sorted(set(changes) - set(_CONFIG_DEFAULTS))
    if unknown:
        return Err(ErrorKind.INVALID_REQUEST, f"Unknown setting key(s): {', '.join(unknown)}")
    try:
        cleaned = {field: _coerce(field, value) for field, value in changes.items()}
    except (TypeError, ValueError) as exc:
        return Err(ErrorKind.INVALID_REQUEST, str(exc))

    row = db.session.get(GameSetting, SETTINGS_ROW_ID)
    if row is None:
        row = GameSetting(id=SETTINGS_ROW_ID)
        db.session.add(row)
    for field, value in cleaned.items():
        setattr(row, field, value)
    row.updated_by = admin_id
    row.updated_at = now
    db.session.commit()
    current_app.logger.info(f"[settings-update] admin={admin_id} changes={cleaned}")
    return Ok(load_game_settings())
