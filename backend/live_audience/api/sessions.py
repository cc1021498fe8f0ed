from flask import Blueprint, jsonify, request, current_app
import time
from live_audience.models import PARTICIPANT_FIELDS
from live_audience.services.interaction import joining, pacing, registry, runner, scoring, submission, sync
from live_audience.services.interaction.errors import InteractionError, ValidationError


sessions = Blueprint('sessions', __name__)

_last_controller_action: dict[str, float] = {}


@sessions.errorhandler(InteractionError)
def handle_interaction_error(exc: InteractionError):
    current_app.logger.info(f"[rejected] {request.method} {request.path} status={exc.status_code} error={exc.message}")
    return jsonify(exc.to_dict()), exc.status_code


def _debounced(action: str, session_id: int) -> bool:
    try:
        debounce_ms = int(current_app.config.get('CONTROLLER_DEBOUNCE_MS', 0))
    except (TypeError, ValueError):
        debounce_ms = 0
    if debounce_ms <= 0:
        return False
    key = f"{action}:{session_id}"
    now = time.time() * 1000.0
    last = _last_controller_action.get(key, 0)
    if now - last < debounce_ms:
        return True
    _last_controller_action[key] = now
    return False


def _optional_int(data, key):
    value = data.get(key)
    if value is None or value == '':
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"'{key}' must be an integer")


def _session_payload(session, include_answers=True):
    return session.to_dict(include_answers=include_answers)


@sessions.route('/create', methods=['POST'])
def create_session():
    data = request.get_json(silent=True) or {}
    session = registry.create_session(
        data.get('name'),
        data.get('type') or 'poll',
        required_fields=data.get('required_participant_fields'),
        questions=data.get('questions'),
    )
    return jsonify(_session_payload(session)), 201


@sessions.route('/', methods=['GET'])
def list_sessions():
    found = registry.list_sessions(
        session_type=request.args.get('type'),
        status=request.args.get('status'),
    )
    return jsonify([s.to_dict(include_questions=False) for s in found])


@sessions.route('/participant-fields', methods=['GET'])
def participant_fields():
    return jsonify([
        {'id': name, 'label': label, 'required': name == 'name'} for name, label in PARTICIPANT_FIELDS
    ])


@sessions.route('/active', methods=['GET'])
def get_active_session():
    session = registry.get_active_session()
    if session is None:
        return jsonify({'session': None, 'state': 'nothing_to_join'})
    return jsonify({'session': session.to_dict(), 'state': 'active'})


@sessions.route('/<int:session_id>', methods=['GET'])
def get_session(session_id):
    return jsonify(_session_payload(registry.get_session(session_id)))


@sessions.route('/<int:session_id>', methods=['PATCH'])
def update_session(session_id):
    data = request.get_json(silent=True) or {}
    session = registry.update_session(
        session_id,
        name=data.get('name'),
        required_fields=data.get('required_participant_fields'),
    )
    return jsonify(_session_payload(session))


@sessions.route('/<int:session_id>', methods=['DELETE'])
def delete_session(session_id):
    registry.delete_session(session_id)
    return jsonify({'message': 'Session deleted'})


@sessions.route('/<int:session_id>/questions', methods=['POST'])
def add_question(session_id):
    data = request.get_json(silent=True) or {}
    question = registry.add_question(
        session_id,
        data.get('text'),
        data.get('type') or 'multiple-choice',
        options=data.get('options'),
        correct_option_id=data.get('correct_option_id'),
        duration=data.get('duration'),
    )
    return jsonify(question.to_dict(include_answer=True)), 201


@sessions.route('/<int:session_id>/activate', methods=['POST'])
def activate_session(session_id):
    return jsonify(_session_payload(registry.activate(session_id)))


@sessions.route('/<int:session_id>/deactivate', methods=['POST'])
def deactivate_session(session_id):
    session = registry.deactivate(session_id)
    runner.stop_host_runner(session.id)
    return jsonify(_session_payload(session))


@sessions.route('/<int:session_id>/start', methods=['POST'])
def start_session(session_id):
    if _debounced('start', session_id):
        return jsonify({'message': 'debounced'}), 202
    session = registry.start(session_id)
    if runner.wants_runner(current_app.config, session.session_type):
        runner.ensure_host_runner(current_app._get_current_object(), session.id)
    return jsonify(_session_payload(session))


@sessions.route('/<int:session_id>/complete', methods=['POST'])
def complete_session(session_id):
    session = registry.complete(session_id)
    runner.stop_host_runner(session.id)
    return jsonify(_session_payload(session))


@sessions.route('/<int:session_id>/next', methods=['POST'])
def next_question(session_id):
    data = request.get_json(silent=True) or {}
    if _debounced('next', session_id):
        return jsonify({'message': 'debounced'}), 202
    session = pacing.next_question(session_id, expected_index=_optional_int(data, 'expected_index'))
    return jsonify(_session_payload(session))


@sessions.route('/<int:session_id>/previous', methods=['POST'])
def previous_question(session_id):
    if _debounced('previous', session_id):
        return jsonify({'message': 'debounced'}), 202
    return jsonify(_session_payload(pacing.previous_question(session_id)))


@sessions.route('/<int:session_id>/state', methods=['GET'])
def get_session_state(session_id):
    # Polled by every device; hosts ask for correct answers explicitly
    include_answers = True if request.args.get('role') == 'host' else None
    payload = sync.take_snapshot(session_id, include_answers=include_answers)
    cfg = current_app.config
    payload['poll_interval'] = float(cfg.get('POLL_INTERVAL_SEC', 1))
    payload['auto_advance_policy'] = cfg.get('AUTO_ADVANCE_POLICY', 'exam')
    return jsonify(payload)


@sessions.route('/<int:session_id>/join-link', methods=['GET'])
def get_join_link(session_id):
    session = registry.get_session(session_id)
    cfg = current_app.config
    url = joining.build_join_link(cfg.get('JOIN_BASE_URL', ''), cfg.get('JOIN_PATH', '/join'), session.id)
    return jsonify({'session_id': session.id, 'url': url})


@sessions.route('/join', methods=['POST'])
def join_session():
    data = request.get_json(silent=True) or {}
    session = joining.resolve_join_session(data.get('session_id'))
    if session is None:
        return jsonify({'joined': False, 'state': 'nothing_to_join'})
    participant = joining.join(session.id, data.get('fields') or {})
    return jsonify({
        'joined': True,
        'participant': participant.to_dict(),
        'session': session.to_dict(include_questions=False),
    }), 201


@sessions.route('/<int:session_id>/responses', methods=['POST'])
def submit_response(session_id):
    data = request.get_json(silent=True) or {}
    response = submission.submit(
        session_id,
        _optional_int(data, 'question_id'),
        _optional_int(data, 'participant_id'),
        data.get('answer'),
    )
    return jsonify(response.to_dict()), 201


@sessions.route('/<int:session_id>/live', methods=['GET'])
def live_results(session_id):
    question_id = request.args.get('question_id', type=int)
    return jsonify(scoring.live_distribution(session_id, question_id))


@sessions.route('/<int:session_id>/results', methods=['GET'])
def final_results(session_id):
    return jsonify(scoring.final_results(session_id))


@sessions.route('/<int:session_id>/progress', methods=['GET'])
def participant_progress(session_id):
    return jsonify(scoring.participant_progress(session_id))


@sessions.route('/<int:session_id>/participants/<int:participant_id>/report', methods=['GET'])
def participant_report(session_id, participant_id):
    return jsonify(scoring.participant_report(session_id, participant_id))
