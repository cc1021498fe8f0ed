from datetime import datetime, timezone
from string import ascii_uppercase
from typing import Iterable, List, Optional

from flask import current_app

from live_audience import store
from live_audience.models import (
    InteractionQuestion,
    InteractionResponse,
    InteractionSession,
    Participant,
    PARTICIPANT_FIELD_NAMES,
    QUESTION_TYPES,
    QuestionOption,
    SESSION_TYPES,
)
from .errors import NotFound, ValidationError


def get_session(session_id) -> InteractionSession:
    session = store.get_record(InteractionSession, session_id)
    if session is None:
        raise NotFound(f'Session {session_id} not found')
    return session


def list_sessions(session_type: Optional[str] = None, status: Optional[str] = None) -> List[InteractionSession]:
    filters = {}
    if session_type:
        filters['session_type'] = session_type
    if status:
        filters['status'] = status
    return store.list_records(InteractionSession, **filters)


def get_active_session() -> Optional[InteractionSession]:
    active = store.list_records(InteractionSession, status='active')
    return active[0] if active else None


def _validate_required_fields(fields: Optional[Iterable[str]]) -> List[str]:
    fields = [f for f in (fields or []) if f]
    unknown = [f for f in fields if f not in PARTICIPANT_FIELD_NAMES]
    if unknown:
        raise ValidationError(f"Unknown participant field(s): {', '.join(unknown)}")
    return fields


def _ensure_editable(session: InteractionSession) -> None:
    if session.has_started:
        raise ValidationError('Questions cannot change once the session has started')


def _normalize_options(raw_options) -> List[dict]:
    """Accept [{'id': 'A', 'text': ...}] or bare strings (ids assigned A, B, C...)."""
    options = []
    for i, opt in enumerate(raw_options or []):
        if isinstance(opt, dict):
            opt_id = opt.get('id')
            text = opt.get('text')
        else:
            opt_id, text = None, opt
        if opt_id in (None, ''):
            opt_id = ascii_uppercase[i] if i < len(ascii_uppercase) else str(i + 1)
        if not text or not str(text).strip():
            raise ValidationError('Option text is required')
        options.append({'id': str(opt_id), 'text': str(text).strip()})
    return options


def _build_question(session: InteractionSession, text, question_type='multiple-choice', options=None,
                    correct_option_id=None, duration=None) -> InteractionQuestion:
    if not text or not str(text).strip():
        raise ValidationError('Question text is required')
    if question_type not in QUESTION_TYPES:
        raise ValidationError(f'Unknown question type: {question_type}')
    if duration is not None:
        try:
            duration = int(duration)
        except (TypeError, ValueError):
            raise ValidationError('Duration must be a whole number of seconds')
        if duration <= 0:
            raise ValidationError('Duration must be positive')

    normalized = _normalize_options(options) if question_type == 'multiple-choice' else []
    if question_type == 'multiple-choice':
        if not normalized:
            raise ValidationError('Multiple-choice questions need at least one option')
        ids = [o['id'] for o in normalized]
        if len(set(ids)) != len(ids):
            raise ValidationError('Option ids must be unique within a question')
        if correct_option_id is not None and str(correct_option_id) not in ids:
            raise ValidationError(f'Correct option {correct_option_id} is not one of the options')

    question = InteractionQuestion(
        text=str(text).strip(),
        question_type=question_type,
        correct_option_id=str(correct_option_id) if correct_option_id is not None else None,
        duration=duration,
        position=len(session.questions),
    )
    question.options = [
        QuestionOption(id=o['id'], text=o['text'], position=i) for i, o in enumerate(normalized)
    ]
    session.questions.append(question)
    return question


def create_session(name, session_type='poll', required_fields=None, questions=None) -> InteractionSession:
    if not name or not str(name).strip():
        raise ValidationError('Session name is required')
    if session_type not in SESSION_TYPES:
        raise ValidationError(f'Unknown session type: {session_type}')
    fields = _validate_required_fields(required_fields)

    session = InteractionSession(name=str(name).strip(), session_type=session_type, status='draft')
    session.required_fields = fields
    for q in questions or []:
        _build_question(
            session,
            q.get('text'),
            q.get('type', 'multiple-choice'),
            options=q.get('options'),
            correct_option_id=q.get('correct_option_id'),
            duration=q.get('duration'),
        )
    store.insert(session)
    current_app.logger.info(f"[session-create] session={session.id} type={session.session_type} questions={len(session.questions)}")
    return session


def add_question(session_id, text, question_type='multiple-choice', options=None,
                 correct_option_id=None, duration=None) -> InteractionQuestion:
    session = get_session(session_id)
    _ensure_editable(session)
    question = _build_question(session, text, question_type, options, correct_option_id, duration)
    store.commit()
    return question


def update_session(session_id, name=None, required_fields=None) -> InteractionSession:
    session = get_session(session_id)
    _ensure_editable(session)
    if name is not None:
        if not str(name).strip():
            raise ValidationError('Session name is required')
        session.name = str(name).strip()
    if required_fields is not None:
        session.required_fields = _validate_required_fields(required_fields)
    store.commit()
    return session


def delete_session(session_id) -> None:
    session = get_session(session_id)
    if session.status == 'in-progress':
        raise ValidationError('Cannot delete a session that is in progress')
    InteractionResponse.query.filter_by(session_id=session.id).delete()
    Participant.query.filter_by(session_id=session.id).delete()
    store.delete(session)
    current_app.logger.info(f"[session-delete] session={session_id}")


def activate(session_id) -> InteractionSession:
    """Make ``session_id`` the only active session.

    Every other active session is set inactive in the same commit, so a
    poller reads either the old active session or the new one, never both.
    """
    session = get_session(session_id)
    if session.status in ('in-progress', 'completed'):
        raise ValidationError(f'Cannot activate a session that is {session.status}')

    previously_active = [
        s.id for s in store.list_records(InteractionSession, status='active') if s.id != session.id
    ]
    store.update_where(
        InteractionSession,
        {'status': 'inactive'},
        InteractionSession.status == 'active',
        InteractionSession.id != session.id,
    )
    session.status = 'active'
    store.commit()
    current_app.logger.info(f"[activate] session={session.id} deactivated={previously_active}")
    return session


def deactivate(session_id) -> InteractionSession:
    session = get_session(session_id)
    if session.status == 'inactive':
        return session
    if session.status not in ('active', 'in-progress'):
        raise ValidationError(f'Cannot deactivate a session that is {session.status}')
    session.status = 'inactive'
    session.current_question_index = None
    store.commit()
    current_app.logger.info(f"[deactivate] session={session.id}")
    return session


def start(session_id) -> InteractionSession:
    session = get_session(session_id)
    if session.status == 'in-progress':
        # Idempotent start: already started
        return session
    if session.status != 'active':
        raise ValidationError('Session must be active before it can start')
    if not session.questions:
        raise ValidationError('Session has no questions')

    session.status = 'in-progress'
    session.current_question_index = 0
    if session.started_at is None:
        session.started_at = datetime.now(timezone.utc)
    store.commit()
    current_app.logger.info(f"[start] session={session.id} questions={len(session.questions)}")
    return session


def complete(session_id) -> InteractionSession:
    session = get_session(session_id)
    if session.status == 'completed':
        return session
    if session.status != 'in-progress':
        raise ValidationError('Only an in-progress session can be completed')
    session.status = 'completed'
    session.current_question_index = None
    store.commit()
    current_app.logger.info(f"[finish] session={session.id} completed")
    return session
