from flask import Blueprint, request
from flask_login import current_user

from lockdown.auth import admin_required
from lockdown.models import Team
from lockdown.services.audit import admin_actor, team_events
from lockdown.services.engine import build_engine
from lockdown.services.qualification import list_cutoffs, upsert_cutoff
from lockdown.services.timing.result import Err, ErrorKind, Ok
from lockdown.services.timing.settings import update_game_settings
from .errors import bad_request, respond

admin = Blueprint('admin', __name__)


@admin.before_request
@admin_required
def require_admin():
    return None


@admin.route('/cutoffs')
def get_cutoffs():
    return respond(Ok({'cutoffs': [row.to_dict() for row in list_cutoffs()]}))


@admin.route('/cutoffs/<int:level_id>', methods=['GET'])
def get_cutoff(level_id):
    rows = list_cutoffs(level_id)
    if not rows:
        return respond(Err(ErrorKind.NOT_FOUND, f"No cutoff configured for level {level_id}"))
    return respond(Ok({'cutoff': rows[0].to_dict()}))


@admin.route('/cutoffs/<int:level_id>', methods=['PUT'])
def put_cutoff(level_id):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return bad_request('JSON object body is required')
    engine = build_engine()
    result = upsert_cutoff(level_id, data, current_user.id, engine.clock.now())
    if result.ok:
        return respond(Ok({'cutoff': result.value}))
    return respond(result)


@admin.route('/levels/<int:level_id>/override', methods=['POST'])
def override_qualification(level_id):
    data = request.get_json(silent=True) or {}
    team_id = data.get('team_id')
    if not isinstance(team_id, int) or isinstance(team_id, bool):
        return bad_request('team_id (integer) is required')
    engine = build_engine()
    result = engine.qualifier.admin_override(
        team_id, level_id, data.get('status'), current_user.id, data.get('reason'),
    )
    return respond(result)


@admin.route('/settings', methods=['GET'])
def get_settings():
    engine = build_engine()
    return respond(Ok({'settings': engine.settings.to_dict()}))


@admin.route('/settings', methods=['PUT'])
def put_settings():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return bad_request('JSON object body is required')
    engine = build_engine()
    result = update_game_settings(data, current_user.id, engine.clock.now())
    if result.ok:
        return respond(Ok({'settings': result.value.to_dict()}))
    return respond(result)


@admin.route('/teams/<int:team_id>/end-session', methods=['POST'])
def force_end_session(team_id):
    engine = build_engine()
    result = engine.aggregator.end_session(team_id, admin_actor(current_user.id))
    return respond(result)


@admin.route('/teams/timings')
def team_timings():
    engine = build_engine()
    timings = []
    for team in Team.query.order_by(Team.id).all():
        session = engine.aggregator.sync(team.id)['session']
        session.pop('questions', None)
        session['team_name'] = team.team_name
        timings.append(session)
    timings.sort(key=lambda row: (-row['questions_completed'], row['effective_time_seconds']))
    return respond(Ok({'teams': timings}))


@admin.route('/qualification/teams')
def qualification_overview():
    level_id = request.args.get('level', type=int)
    engine = build_engine()
    return respond(Ok({'teams': engine.qualifier.teams_overview(level_id)}))


@admin.route('/audit/<int:team_id>')
def audit_log(team_id):
    limit = request.args.get('limit', default=200, type=int)
    events = team_events(team_id, limit=max(1, min(limit, 1000)))
    return respond(Ok({'team_id': team_id, 'events': [event.to_dict() for event in events]}))
