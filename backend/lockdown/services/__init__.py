"""Engine services: question timing, penalties, qualification and audit.

Routes and socket handlers import from here; nothing in this package knows
about HTTP.
"""
