from typing import Any, Dict, Optional

from . import joining, pacing, registry, submission, sync


class LocalGateway:
    """Store access for device controllers running in the server process.

    Every call opens its own application context and returns plain dicts,
    the same shapes the HTTP routes serve, so device code never holds ORM
    objects across polling ticks.
    """

    def __init__(self, app):
        self.app = app

    def _call(self, fn, *args, **kwargs):
        with self.app.app_context():
            return fn(*args, **kwargs)

    def resolve(self, session_id=None) -> Optional[Dict[str, Any]]:
        def _resolve():
            session = joining.resolve_join_session(session_id)
            return session.to_dict(include_questions=False) if session else None
        return self._call(_resolve)

    def snapshot(self, session_id, include_answers: Optional[bool] = None) -> Dict[str, Any]:
        return self._call(sync.take_snapshot, session_id, include_answers)

    def join(self, session_id, fields) -> Dict[str, Any]:
        return self._call(lambda: joining.join(session_id, fields).to_dict())

    def submit(self, session_id, question_id, participant_id, answer) -> Dict[str, Any]:
        return self._call(lambda: submission.submit(session_id, question_id, participant_id, answer).to_dict())

    def activate(self, session_id) -> Dict[str, Any]:
        return self._call(lambda: registry.activate(session_id).to_dict(include_questions=False))

    def start(self, session_id) -> Dict[str, Any]:
        return self._call(lambda: registry.start(session_id).to_dict(include_questions=False))

    def complete(self, session_id) -> Dict[str, Any]:
        return self._call(lambda: registry.complete(session_id).to_dict(include_questions=False))

    def next_question(self, session_id, expected_index: Optional[int] = None) -> Dict[str, Any]:
        return self._call(lambda: pacing.next_question(session_id, expected_index).to_dict(include_questions=False))

    def previous_question(self, session_id) -> Dict[str, Any]:
        return self._call(lambda: pacing.previous_question(session_id).to_dict(include_questions=False))
