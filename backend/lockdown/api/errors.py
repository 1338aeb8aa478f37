from flask import current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from lockdown.services.timing.result import Err, ErrorCategory, ErrorKind

STATUS_CODES = {
    ErrorCategory.INVALID_STATE_TRANSITION: 400,
    ErrorCategory.SEQUENCE_VIOLATION: 400,
    ErrorCategory.INVALID_REQUEST: 400,
    ErrorCategory.SKIP_LIMIT_EXCEEDED: 403,
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.PERSISTENCE_CONFLICT: 409,
    ErrorCategory.CONFIGURATION_MISSING: 500,
}


def timer_snapshot(engine, team_id, question_id=None):
    """Authoritative timer state so clients can resync after any call."""
    try:
        return engine.aggregator.sync(team_id, question_id)
    except SQLAlchemyError as exc:
        current_app.logger.error(f"[sync-failed] team={team_id} error={exc}")
        return None


def error_response(err, timer=None):
    body = err.to_dict()
    body['timer'] = timer
    return jsonify(body), STATUS_CODES[err.kind.category]


def bad_request(message):
    return error_response(Err(ErrorKind.INVALID_REQUEST, message))


def respond(result, engine=None, team_id=None, question_id=None, status=200):
    with_timer = engine is not None and team_id is not None
    timer = timer_snapshot(engine, team_id, question_id) if with_timer else None
    if not result.ok:
        return error_response(result, timer)
    value = result.value
    body = dict(value) if isinstance(value, dict) else {'result': value}
    if with_timer:
        body['timer'] = timer
    return jsonify(body), status
