from flask import Blueprint, request
from flask_login import current_user

from lockdown.auth import team_required
from lockdown.services.audit import team_actor
from lockdown.services.engine import build_engine
from lockdown.services.timing.result import Ok
from .errors import bad_request, respond

timer = Blueprint('timer', __name__)


def _question_action(action, question_id, *args):
    engine = build_engine()
    team_id = current_user.id
    result = getattr(engine.timer, action)(team_id, question_id, *args)
    return respond(result, engine, team_id, question_id)


@timer.route('/question/<int:question_id>/start', methods=['POST'])
@team_required
def start_question(question_id):
    return _question_action('start', question_id)


@timer.route('/question/<int:question_id>/pause', methods=['POST'])
@team_required
def pause_question(question_id):
    return _question_action('pause', question_id)


@timer.route('/question/<int:question_id>/resume', methods=['POST'])
@team_required
def resume_question(question_id):
    return _question_action('resume', question_id)


@timer.route('/question/<int:question_id>/complete', methods=['POST'])
@team_required
def complete_question(question_id):
    data = request.get_json(silent=True) or {}
    correct = data.get('correct')
    if not isinstance(correct, bool):
        return bad_request('correct (boolean) is required')
    return _question_action('complete', question_id, correct)


@timer.route('/question/<int:question_id>/skip', methods=['POST'])
@team_required
def skip_question(question_id):
    return _question_action('skip', question_id)


@timer.route('/question/<int:question_id>/unskip', methods=['POST'])
@team_required
def unskip_question(question_id):
    return _question_action('unskip', question_id)


@timer.route('/question/<int:question_id>/goto', methods=['POST'])
@team_required
def goto_question(question_id):
    return _question_action('navigate', question_id)


@timer.route('/session/end', methods=['POST'])
@team_required
def end_session():
    engine = build_engine()
    team_id = current_user.id
    result = engine.aggregator.end_session(team_id, team_actor(team_id))
    return respond(result, engine, team_id)


@timer.route('/sync')
@team_required
def sync_timer():
    raw = request.args.get('question_id')
    question_id = None
    if raw:
        try:
            question_id = int(raw)
        except ValueError:
            return bad_request('question_id must be an integer')
    engine = build_engine()
    return respond(Ok(engine.aggregator.sync(current_user.id, question_id)))


@timer.route('/session')
@team_required
def session_snapshot():
    engine = build_engine()
    snapshot = engine.aggregator.sync(current_user.id)
    return respond(Ok({'session': snapshot['session'], 'server_time': snapshot['server_time']}))
