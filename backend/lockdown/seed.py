from lockdown import db
from lockdown.models import Admin, Hint, Puzzle, QualificationCutoff, Team

DEMO_LEVELS = {
    1: [
        ('Locked Briefcase', 40, ['Count the scratches on the lid.', 'The code is a year.']),
        ('Cipher Wall', 30, ['Every third letter matters.', 'Shift by the room number.']),
        ('Blueprint Maze', 30, ['Start from the exit.']),
    ],
    2: [
        ('Vault Timer', 50, ['The clock is five minutes fast.', 'Read the hands as digits.']),
        ('Signal Tower', 50, ['Morse, but inverted.']),
    ],
}


def seed_demo_competition():
    """Two levels of puzzles with hints, a level 1 cutoff, three teams and an admin."""
    for level, puzzles in DEMO_LEVELS.items():
        for number, (title, points, hint_texts) in enumerate(puzzles, start=1):
            puzzle = Puzzle(level=level, puzzle_number=number, title=title, points=points, is_active=True)
            db.session.add(puzzle)
            db.session.flush()
            for hint_number, text in enumerate(hint_texts, start=1):
                db.session.add(Hint(
                    puzzle_id=puzzle.id,
                    hint_number=hint_number,
                    hint_text=text,
                    penalty_multiplier=float(hint_number),
                    unlock_after_seconds=120 * hint_number,
                    is_active=True,
                ))

    db.session.add(QualificationCutoff(
        level_id=1,
        min_score=70,
        min_accuracy=60.0,
        max_time_seconds=3600,
        max_hints_allowed=3,
        min_questions_correct=2,
        auto_qualify=True,
        is_active=True,
    ))
    for name in ('Red Herrings', 'Lock Pickers', 'Night Owls'):
        db.session.add(Team(team_name=name))
    db.session.add(Admin(name='gamemaster'))
    db.session.commit()
