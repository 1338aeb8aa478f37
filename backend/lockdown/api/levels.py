from flask import Blueprint, request
from flask_login import current_user

from lockdown.auth import team_required
from lockdown.services.audit import team_actor
from lockdown.services.engine import build_engine
from lockdown.services.qualification import dismiss_message, list_messages, mark_message_read
from lockdown.services.timing.result import Ok
from .errors import respond

levels = Blueprint('levels', __name__)


@levels.route('/status')
@team_required
def level_status():
    engine = build_engine()
    return respond(Ok({'levels': engine.qualifier.level_summary(current_user.id)}))


@levels.route('/<int:level_id>/finish', methods=['POST'])
@team_required
def finish_level(level_id):
    engine = build_engine()
    team_id = current_user.id
    result = engine.qualifier.complete_level(team_id, level_id, team_actor(team_id))
    return respond(result, engine, team_id)


@levels.route('/<int:level_id>/access')
@team_required
def level_access(level_id):
    engine = build_engine()
    can_access = engine.qualifier.can_access_level(current_user.id, level_id)
    return respond(Ok({'level_id': level_id, 'can_access': can_access}))


@levels.route('/messages')
@team_required
def messages():
    unread_only = request.args.get('unread', '').lower() in ('1', 'true', 'yes')
    rows = list_messages(current_user.id, unread_only=unread_only)
    return respond(Ok({'messages': [row.to_dict() for row in rows]}))


@levels.route('/messages/<int:message_id>/read', methods=['POST'])
@team_required
def read_message(message_id):
    engine = build_engine()
    return respond(mark_message_read(current_user.id, message_id, engine.clock.now()))


@levels.route('/messages/<int:message_id>/dismiss', methods=['POST'])
@team_required
def dismiss(message_id):
    engine = build_engine()
    return respond(dismiss_message(current_user.id, message_id, engine.clock.now()))
