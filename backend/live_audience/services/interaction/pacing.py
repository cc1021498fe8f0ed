from typing import Optional

from flask import current_app

from live_audience import store
from live_audience.models import InteractionQuestion, InteractionSession
from . import registry
from .errors import ValidationError


def current_question(session: InteractionSession) -> Optional[InteractionQuestion]:
    if session.status != 'in-progress':
        return None
    return session.current_question


def next_question(session_id, expected_index: Optional[int] = None) -> InteractionSession:
    """Advance the host pointer, completing the session past the last question.

    ``expected_index`` is passed by timer-driven advances: if the pointer has
    already moved the call is a no-op, so a stale timer never skips a question.
    """
    session = registry.get_session(session_id)
    if session.status == 'completed':
        return session
    if session.status != 'in-progress':
        raise ValidationError('Session is not in progress')

    idx = int(session.current_question_index or 0)
    if expected_index is not None:
        try:
            expected_index = int(expected_index)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid expected index: {expected_index!r}")
    if expected_index is not None and expected_index != idx:
        current_app.logger.info(
            f"[advance-skip] session={session.id} expected={expected_index} actual={idx}"
        )
        return session

    if idx >= len(session.questions) - 1:
        return registry.complete(session.id)

    store.update(InteractionSession, session.id, {'current_question_index': idx + 1})
    current_app.logger.info(f"[next] session={session.id} question {idx} -> {idx + 1}")
    return session


def previous_question(session_id) -> InteractionSession:
    """Step back one question; recorded responses are left untouched."""
    session = registry.get_session(session_id)
    if session.status != 'in-progress':
        raise ValidationError('Session is not in progress')

    idx = int(session.current_question_index or 0)
    if idx == 0:
        return session
    store.update(InteractionSession, session.id, {'current_question_index': idx - 1})
    current_app.logger.info(f"[previous] session={session.id} question {idx} -> {idx - 1}")
    return session
