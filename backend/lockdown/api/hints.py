from flask import Blueprint
from flask_login import current_user

from lockdown.auth import team_required
from lockdown.services.engine import build_engine
from .errors import respond

hints = Blueprint('hints', __name__)


@hints.route('/question/<int:question_id>')
@team_required
def available_hints(question_id):
    engine = build_engine()
    return respond(engine.hints.available_hints(current_user.id, question_id))


@hints.route('/<int:hint_id>/use', methods=['POST'])
@team_required
def use_hint(hint_id):
    engine = build_engine()
    team_id = current_user.id
    return respond(engine.hints.use_hint(team_id, hint_id), engine, team_id)
