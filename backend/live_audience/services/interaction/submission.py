from flask import current_app
from sqlalchemy.exc import IntegrityError

from live_audience import store
from live_audience.models import InteractionQuestion, InteractionResponse, Participant
from . import registry
from .errors import DuplicateSubmissionError, NotFound, ValidationError

# Recorded when a countdown expires with nothing selected
NO_ANSWER = ''


def _already_answered(participant_id, question_id) -> bool:
    return bool(store.list_records(InteractionResponse, participant_id=participant_id, question_id=question_id))


def submit(session_id, question_id, participant_id, answer) -> InteractionResponse:
    """Record one participant's answer to one question.

    Responses are append-only: a second call for the same (participant,
    question) pair raises DuplicateSubmissionError and the first answer stays.
    """
    session = registry.get_session(session_id)
    if session.status != 'in-progress':
        raise ValidationError('Session is not accepting answers at this time')

    question = store.get_record(InteractionQuestion, question_id)
    if question is None or question.session_id != session.id:
        raise NotFound(f'Question {question_id} not found in session {session.id}')
    participant = store.get_record(Participant, participant_id)
    if participant is None or participant.session_id != session.id:
        raise NotFound(f'Participant {participant_id} not found in session {session.id}')

    answer = NO_ANSWER if answer is None else str(answer)
    if question.question_type == 'multiple-choice' and answer != NO_ANSWER and answer not in question.option_ids:
        raise ValidationError(f"Invalid option '{answer}' for question {question.id}")

    if _already_answered(participant.id, question.id):
        raise DuplicateSubmissionError(f'Participant {participant.id} already answered question {question.id}')

    response = InteractionResponse(
        session_id=session.id,
        question_id=question.id,
        participant_id=participant.id,
        answer=answer,
    )
    try:
        store.insert(response)
    except IntegrityError:
        # Lost a race against the unique (participant, question) constraint
        store.rollback()
        raise DuplicateSubmissionError(f'Participant {participant.id} already answered question {question.id}')
    current_app.logger.info(
        f"[submit] session={session.id} question={question.id} participant={participant.id} empty={answer == NO_ANSWER}"
    )
    return response
