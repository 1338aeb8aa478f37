from lockdown import db
from lockdown.models import QualificationMessage
from ..timing.result import Err, ErrorKind, Ok


def _performance(metrics):
    minutes = int(metrics.get('time_taken_seconds') or 0) // 60
    return (
        "Your Performance:\n"
        f"- Score: {metrics.get('score') or 0} points\n"
        f"- Accuracy: {metrics.get('accuracy') or 0}%\n"
        f"- Time: {minutes} minutes\n"
        f"- Hints Used: {metrics.get('hints_used') or 0}"
    )


def build_qualification_message(level_id, qualified, metrics, failures=(), manual=False):
    """Returns (message_type, title, body) for a qualification decision."""
    if qualified:
        title = f"Congratulations! Level {level_id} Qualified!"
        if manual:
            body = (f"Great news! An administrator has qualified your team for Level {level_id}. "
                    f"You can now proceed to Level {level_id + 1}.")
        else:
            body = (f"Excellent work! Your team has successfully qualified Level {level_id} "
                    f"and earned access to Level {level_id + 1}!\n\n"
                    f"{_performance(metrics)}\n\n"
                    f"Level {level_id + 1} is now unlocked for your team!")
        return 'QUALIFICATION', title, body

    title = f"Level {level_id} Not Qualified"
    if manual:
        body = (f"Unfortunately, an administrator has determined your team did not qualify "
                f"for Level {level_id}. Thank you for participating.")
    else:
        improvements = '\n'.join(f"- {failure}" for failure in failures) or '- Contact admin for details'
        body = (f"Unfortunately, your team did not meet the qualification criteria for Level {level_id}.\n\n"
                f"{_performance(metrics)}\n\n"
                f"Areas for Improvement:\n{improvements}\n\n"
                f"Thank you for participating in Level {level_id}!")
    return 'DISQUALIFICATION', title, body


def create_qualification_message(team_id, level_id, qualified, metrics, failures=(), manual=False, now=None):
    message_type, title, body = build_qualification_message(level_id, qualified, metrics, failures, manual)
    message = QualificationMessage(
        team_id=team_id,
        level_id=level_id,
        message_type=message_type,
        title=title,
        message=body,
        is_read=False,
        is_dismissed=False,
    )
    if now is not None:
        message.created_at = now
    db.session.add(message)
    return message


def list_messages(team_id, unread_only=False):
    query = QualificationMessage.query.filter_by(team_id=team_id, is_dismissed=False)
    if unread_only:
        query = query.filter_by(is_read=False)
    return query.order_by(QualificationMessage.created_at.desc(), QualificationMessage.id.desc()).all()


def _own_message(team_id, message_id):
    return QualificationMessage.query.filter_by(id=message_id, team_id=team_id).first()


def mark_message_read(team_id, message_id, now):
    message = _own_message(team_id, message_id)
    if message is None:
        return Err(ErrorKind.NOT_FOUND, f"Message {message_id} not found")
    if not message.is_read:
        message.is_read = True
        message.read_at = now
        db.session.commit()
    return Ok(message.to_dict())


def dismiss_message(team_id, message_id, now):
    message = _own_message(team_id, message_id)
    if message is None:
        return Err(ErrorKind.NOT_FOUND, f"Message {message_id} not found")
    if not message.is_dismissed:
        message.is_dismissed = True
        message.dismissed_at = now
        db.session.commit()
    return Ok({'id': message.id, 'dismissed': True})
