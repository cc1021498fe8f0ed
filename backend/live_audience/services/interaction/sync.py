"""Polling-based synchronization.

Devices never receive pushes. Each one re-reads the session slice of the
store on a fixed interval (``take_snapshot``) and rebuilds its whole view from
that snapshot. A device may therefore see a question change up to one interval
late; that bound is accepted.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from live_audience import store
from live_audience.models import InteractionResponse, Participant
from . import registry
from .errors import InteractionError

log = logging.getLogger(__name__)


def take_snapshot(session_id, include_answers: Optional[bool] = None) -> Dict[str, Any]:
    """Serialize everything a device needs for one tick.

    Correct answers are withheld until the session completes unless the caller
    (the host) asks for them.
    """
    session = registry.get_session(session_id)
    if include_answers is None:
        include_answers = session.status == 'completed'
    return {
        'session': session.to_dict(include_answers=include_answers),
        'participants': [p.to_dict() for p in store.list_records(Participant, session_id=session.id)],
        'responses': [r.to_dict() for r in store.list_records(InteractionResponse, session_id=session.id)],
    }


@dataclass
class Snapshot:
    session: Dict[str, Any]
    participants: List[Dict[str, Any]] = field(default_factory=list)
    responses: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'Snapshot':
        return cls(
            session=payload['session'],
            participants=list(payload.get('participants') or []),
            responses=list(payload.get('responses') or []),
        )

    @property
    def session_id(self):
        return self.session['id']

    @property
    def status(self) -> str:
        return self.session['status']

    @property
    def session_type(self) -> str:
        return self.session['type']

    @property
    def questions(self) -> List[Dict[str, Any]]:
        return self.session.get('questions') or []

    @property
    def current_index(self) -> Optional[int]:
        return self.session.get('current_question_index')

    def current_question(self) -> Optional[Dict[str, Any]]:
        idx = self.current_index
        if self.status != 'in-progress' or idx is None or not (0 <= idx < len(self.questions)):
            return None
        return self.questions[idx]

    def responses_for(self, participant_id) -> List[Dict[str, Any]]:
        return [r for r in self.responses if r['participant_id'] == participant_id]

    def has_answered(self, participant_id, question_id) -> bool:
        return any(
            r['participant_id'] == participant_id and r['question_id'] == question_id
            for r in self.responses
        )


class PollingLoop:
    """Calls ``tick`` every ``interval`` seconds until stopped.

    Runs as a Socket.IO background task by default so it follows whatever
    async mode the server uses. A failed tick is logged and the loop keeps
    going; stopping it sends nothing to the store.
    """

    def __init__(self, tick: Callable[[], None], interval: float,
                 spawn: Optional[Callable] = None, sleep: Optional[Callable[[float], None]] = None,
                 heartbeat: float = 0, label: str = ''):
        self.tick = tick
        self.interval = float(interval)
        self.heartbeat = float(heartbeat or 0)
        self.label = label
        self._spawn = spawn
        self._sleep = sleep
        self._generation = 0
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            return
        if self._spawn is None or self._sleep is None:
            from live_audience import socketio
            self._spawn = self._spawn or socketio.start_background_task
            self._sleep = self._sleep or socketio.sleep
        self._running = True
        self._generation += 1
        log.info(f"[poll-start] {self.label} interval={self.interval}s")
        self._spawn(self._run, self._generation)

    def stop(self) -> None:
        if self._running:
            log.info(f"[poll-stop] {self.label}")
        self._running = False
        self._generation += 1

    def _run(self, generation: int) -> None:
        last_beat = time.monotonic()
        ticks = 0
        try:
            while self._running and generation == self._generation:
                try:
                    self.tick()
                except InteractionError as exc:
                    log.warning(f"[poll-error] {self.label} {exc.message}")
                except Exception:
                    log.exception(f"[poll-error] {self.label} tick failed")
                ticks += 1
                if self.heartbeat and time.monotonic() - last_beat >= self.heartbeat:
                    last_beat = time.monotonic()
                    log.info(f"[poll-heartbeat] {self.label} ticks={ticks}")
                self._sleep(self.interval)
        finally:
            # A newer start() owns the flag once the generation has moved on
            if generation == self._generation:
                self._running = False
