from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlencode

from flask import current_app

from live_audience import store
from live_audience.models import InteractionSession, Participant, PARTICIPANT_FIELD_NAMES
from .errors import MissingFieldsError, ValidationError
from .registry import get_active_session, get_session


def resolve_join_session(session_id=None) -> Optional[InteractionSession]:
    """Pick the session a joining device belongs to.

    An explicit id from the join link wins whatever that session's status is,
    so a link scanned before activation (or while another session is active)
    still lands on its own session. Without an id the active session is used;
    ``None`` means there is nothing to join.
    """
    if session_id not in (None, ''):
        return get_session(session_id)
    return get_active_session()


def missing_fields(session: InteractionSession, submitted: Mapping[str, Any]) -> List[str]:
    missing = []
    for field in session.required_fields:
        value = submitted.get(field)
        if value is None or not str(value).strip():
            missing.append(field)
    return missing


def join(session_id, submitted_fields: Mapping[str, Any]) -> Participant:
    session = get_session(session_id)
    if session.status == 'completed':
        raise ValidationError('This session has already finished')

    submitted_fields = submitted_fields or {}
    missing = missing_fields(session, submitted_fields)
    if missing:
        raise MissingFieldsError(missing)

    values: Dict[str, Any] = {}
    for field in PARTICIPANT_FIELD_NAMES:
        value = submitted_fields.get(field)
        if value is not None and str(value).strip():
            values[field] = str(value).strip()

    participant = store.insert(Participant(session_id=session.id, **values))
    current_app.logger.info(f"[join] session={session.id} participant={participant.id} status={session.status}")
    return participant


def build_join_link(base_url: str, path: str = '/join', session_id=None) -> str:
    url = base_url.rstrip('/') + '/' + (path or '').lstrip('/')
    if session_id is not None:
        url = f"{url}?{urlencode({'sessionId': session_id})}"
    return url
