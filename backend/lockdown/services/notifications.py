from flask import current_app

from lockdown import socketio


def team_room(team_id):
    return f"team:{team_id}"


def notify_team(team_id, event, payload):
    """Best-effort push to every connected client of a team."""
    try:
        socketio.emit(event, payload, to=team_room(team_id), namespace='/ws')
    except Exception as exc:
        current_app.logger.warning(f"[notify-failed] team={team_id} event={event} error={exc}")
