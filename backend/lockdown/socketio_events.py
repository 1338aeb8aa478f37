from flask import request
from flask_socketio import emit, join_room, leave_room

from lockdown import db, socketio
from lockdown.models import Team
from lockdown.services.notifications import team_room


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def _team_from(data):
    team_id = (data or {}).get('team_id')
    try:
        team_id = int(team_id)
    except (TypeError, ValueError):
        emit('error', {'message': 'team_id is required'})
        return None
    team = db.session.get(Team, team_id)
    if team is None:
        emit('error', {'message': f'team {team_id} not found'})
    return team


def handle_join_team(data):
    team = _team_from(data)
    if team is None:
        return
    # the gateway header, when present, pins the socket to its own team
    header = request.headers.get('X-Team-Id')
    if header and header != str(team.id):
        emit('error', {'message': 'cannot join another team'})
        return
    room = team_room(team.id)
    join_room(room)
    emit('joined', {'room': room})


def handle_leave_team(data):
    team = _team_from(data)
    if team is None:
        return
    room = team_room(team.id)
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    socketio.on_event('connect', handle_connect, namespace='/ws')
    socketio.on_event('join_team', handle_join_team, namespace='/ws')
    socketio.on_event('leave_team', handle_leave_team, namespace='/ws')
    socketio.on_event('ping', handle_ping, namespace='/ws')

    if testing:
        socketio.on_event('connect', handle_connect, namespace='/')
        socketio.on_event('join_team', handle_join_team, namespace='/')
        socketio.on_event('leave_team', handle_leave_team, namespace='/')
        socketio.on_event('ping', handle_ping, namespace='/')
