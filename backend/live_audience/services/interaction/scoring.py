"""Live aggregation and final scoring.

The pure helpers work on the serialized dicts produced by the models'
``to_dict`` methods so the HTTP routes and the device views (which only see
polled snapshots) share one implementation. The store-backed wrappers at the
bottom load a session and delegate to them.
"""

from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional

from live_audience import store
from live_audience.models import InteractionResponse, Participant
from . import registry
from .errors import NotFound, ValidationError
from .submission import NO_ANSWER


def _percentage(count: int, total: int) -> float:
    if not total:
        return 0.0
    return round(count * 100.0 / total, 1)


def tally(question: Dict[str, Any], responses: Iterable[Dict[str, Any]],
          participants: Iterable[Dict[str, Any]] = ()) -> Dict[str, Any]:
    """Group the responses received so far for one question by answer.

    Percentages are of all responses for the question (timeouts included).
    Multiple-choice questions list every option, answered or not; text
    questions get one bucket per distinct answer.
    """
    names = {p['id']: p['name'] for p in participants}
    answers = [r for r in responses if r['question_id'] == question['id']]
    total = len(answers)

    buckets: 'OrderedDict[str, Dict[str, Any]]' = OrderedDict()
    if question.get('type') == 'multiple-choice':
        for opt in question.get('options') or []:
            buckets[opt['id']] = {'option_id': opt['id'], 'text': opt['text'], 'count': 0, 'participants': []}
    no_answer = {'count': 0, 'participants': []}

    for r in answers:
        if r['answer'] == NO_ANSWER:
            bucket = no_answer
        else:
            bucket = buckets.setdefault(
                r['answer'], {'option_id': r['answer'], 'text': r['answer'], 'count': 0, 'participants': []}
            )
        bucket['count'] += 1
        name = names.get(r['participant_id'])
        if name:
            bucket['participants'].append(name)

    for bucket in list(buckets.values()) + [no_answer]:
        bucket['percentage'] = _percentage(bucket['count'], total)

    return {
        'question_id': question['id'],
        'question_text': question.get('text'),
        'total_responses': total,
        'options': list(buckets.values()),
        'no_answer': no_answer,
    }


def score_for(participant_id, questions: Iterable[Dict[str, Any]], responses: Iterable[Dict[str, Any]]) -> int:
    answers = {r['question_id']: r['answer'] for r in responses if r['participant_id'] == participant_id}
    return sum(
        1 for q in questions
        if q.get('correct_option_id') is not None and answers.get(q['id']) == q['correct_option_id']
    )


def rank(questions: List[Dict[str, Any]], participants: List[Dict[str, Any]],
         responses: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Score every participant and order by score, highest first.

    Unanswered and incorrect questions both score zero. Equal scores keep the
    order participants are given in (join order); no further tie-break.
    """
    results = [
        {
            'participant': p,
            'score': score_for(p['id'], questions, responses),
            'total_questions': len(questions),
        }
        for p in participants
    ]
    results.sort(key=lambda r: r['score'], reverse=True)
    for position, row in enumerate(results, start=1):
        row['rank'] = position
    return results


def progress(participants: List[Dict[str, Any]], responses: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    counts: Dict[Any, int] = {}
    for r in responses:
        counts[r['participant_id']] = counts.get(r['participant_id'], 0) + 1
    rows = [dict(p, answered_count=counts.get(p['id'], 0)) for p in participants]
    rows.sort(key=lambda row: row['answered_count'], reverse=True)
    return rows


def answer_sheet(questions: List[Dict[str, Any]], participant: Dict[str, Any],
                 responses: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    answers = {r['question_id']: r['answer'] for r in responses if r['participant_id'] == participant['id']}
    sheet = []
    for q in questions:
        option_text = {o['id']: o['text'] for o in q.get('options') or []}
        answer = answers.get(q['id'])
        correct = q.get('correct_option_id')
        sheet.append({
            'question_id': q['id'],
            'question_text': q['text'],
            'answered': answer is not None,
            'answer': answer,
            'answer_text': option_text.get(answer) or answer or '',
            'is_correct': correct is not None and answer == correct,
            'correct_answer_text': option_text.get(correct) if correct is not None else None,
        })
    return sheet


# ---- Store-backed wrappers -------------------------------------------------------

def _load(session_id):
    session = registry.get_session(session_id)
    questions = [q.to_dict(include_answer=True) for q in session.questions]
    participants = [p.to_dict() for p in store.list_records(Participant, session_id=session.id)]
    responses = [r.to_dict() for r in store.list_records(InteractionResponse, session_id=session.id)]
    return session, questions, participants, responses


def live_distribution(session_id, question_id: Optional[int] = None) -> Dict[str, Any]:
    session, questions, participants, responses = _load(session_id)
    if question_id is None:
        current = session.current_question if session.status == 'in-progress' else None
        if current is None:
            raise ValidationError('Session has no current question')
        question_id = current.id
    question = next((q for q in questions if q['id'] == int(question_id)), None)
    if question is None:
        raise NotFound(f'Question {question_id} not found in session {session.id}')
    return tally(question, responses, participants)


def final_results(session_id) -> Dict[str, Any]:
    session, questions, participants, responses = _load(session_id)
    if session.session_type != 'exam':
        raise ValidationError('Scores are only computed for exam sessions')
    return {
        'session_id': session.id,
        'status': session.status,
        'total_questions': len(questions),
        'leaderboard': rank(questions, participants, responses),
    }


def participant_progress(session_id) -> List[Dict[str, Any]]:
    _, _, participants, responses = _load(session_id)
    return progress(participants, responses)


def participant_report(session_id, participant_id) -> Dict[str, Any]:
    session, questions, participants, responses = _load(session_id)
    participant = next((p for p in participants if p['id'] == int(participant_id)), None)
    if participant is None:
        raise NotFound(f'Participant {participant_id} not found in session {session.id}')
    return {
        'session': session.to_dict(include_questions=False),
        'participant': participant,
        'score': score_for(participant['id'], questions, responses),
        'total_questions': len(questions),
        'answers': answer_sheet(questions, participant, responses),
    }
