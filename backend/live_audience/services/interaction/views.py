"""Host and participant view controllers.

Each device holds an explicit handle (gateway + session id) instead of any
shared global, and models what it shows as a small tagged union. On every
poll the state is recomputed from the fresh snapshot by a pure
``reconcile_*`` function; the controller only layers timers on top.

Participant states: Joining -> Waiting <-> Questioning -> Finished
Host states:        Lobby -> Presenting -> Results
"""

import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Optional, Tuple

from .errors import DuplicateSubmissionError, InteractionError, MissingFieldsError, ValidationError
from .gateway import LocalGateway
from .scoring import rank, score_for, tally
from .submission import NO_ANSWER
from .sync import PollingLoop, Snapshot
from .timer import AutoAdvancePolicy, TimerTask, start_timer

log = logging.getLogger(__name__)


def _loop_settings(config) -> Dict[str, float]:
    return {
        'poll_interval': float(config.get('POLL_INTERVAL_SEC', 1)),
        'tick_interval': float(config.get('TIMER_TICK_SEC', 1)),
        'heartbeat': float(config.get('TIMER_HEARTBEAT_SEC', 0) or 0),
    }


# ---- Participant view ------------------------------------------------------------

@dataclass(frozen=True)
class Joining:
    session: Optional[Dict[str, Any]] = None  # None: nothing to join
    missing_fields: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Waiting:
    reason: str = 'lobby'  # lobby, answered, closed


@dataclass(frozen=True)
class Questioning:
    index: int
    question_id: int
    deadline: Optional[float] = None


@dataclass(frozen=True)
class Finished:
    score: Optional[int]
    total: int


def reconcile_participant(state, snapshot: Snapshot, participant_id, now: float):
    if participant_id is None:
        return Joining(snapshot.session, getattr(state, 'missing_fields', ()))
    if snapshot.status == 'completed':
        score = None
        if snapshot.session_type == 'exam':
            score = score_for(participant_id, snapshot.questions, snapshot.responses)
        return Finished(score, len(snapshot.questions))

    question = snapshot.current_question()
    if question is None:
        return Waiting('closed' if snapshot.status == 'inactive' else 'lobby')
    if snapshot.has_answered(participant_id, question['id']):
        return Waiting('answered')
    if (isinstance(state, Questioning) and state.question_id == question['id']
            and state.index == snapshot.current_index):
        return state
    duration = question.get('duration')
    return Questioning(snapshot.current_index, question['id'], now + duration if duration else None)


class ParticipantDevice:
    def __init__(self, gateway, session_id=None, clock: Callable[[], float] = time.monotonic,
                 poll_interval: float = 1.0, tick_interval: float = 1.0,
                 spawn: Optional[Callable] = None, sleep: Optional[Callable[[float], None]] = None,
                 heartbeat: float = 0):
        self.gateway = gateway
        self.link_session_id = session_id
        self.session_id = None
        self.participant: Optional[Dict[str, Any]] = None
        self.state = Joining()
        self.snapshot: Optional[Snapshot] = None
        self.selection: Optional[str] = None
        self.timer: Optional[TimerTask] = None
        self.clock = clock
        self.poll_interval = float(poll_interval)
        self._last_poll: Optional[float] = None
        self.loop = PollingLoop(self.tick, tick_interval, spawn=spawn, sleep=sleep,
                                heartbeat=heartbeat, label='participant')

    @classmethod
    def from_app(cls, app, session_id=None, **kwargs):
        settings = _loop_settings(app.config)
        settings.update(kwargs)
        return cls(LocalGateway(app), session_id, **settings)

    @property
    def participant_id(self):
        return self.participant['id'] if self.participant else None

    def open(self):
        """Resolve the session from the join link, or the active one."""
        session = self.gateway.resolve(self.link_session_id)
        self.session_id = session['id'] if session else None
        self.state = Joining(session)
        return self.state

    def join(self, fields: Dict[str, Any]):
        if self.session_id is None:
            self.open()
        if self.session_id is None:
            return self.state
        try:
            self.participant = self.gateway.join(self.session_id, fields)
        except MissingFieldsError as exc:
            self.state = Joining(self.state.session if isinstance(self.state, Joining) else None,
                                 tuple(exc.missing_fields))
            raise
        log.info(f"[device-join] session={self.session_id} participant={self.participant_id}")
        self.state = Waiting('lobby')
        self.refresh()
        return self.state

    def select(self, answer: Optional[str]) -> None:
        self.selection = answer

    def submit(self, answer: Optional[str] = None):
        if not isinstance(self.state, Questioning):
            raise ValidationError('There is no question to answer right now')
        if answer is None:
            answer = self.selection
        try:
            self.gateway.submit(
                self.session_id,
                self.state.question_id,
                self.participant_id,
                NO_ANSWER if answer is None else answer,
            )
        except DuplicateSubmissionError:
            self._apply(Waiting('answered'))
            raise
        self._apply(Waiting('answered'))
        return self.state

    def tick(self, now: Optional[float] = None):
        now = self.clock() if now is None else now
        if self.session_id is None or self.participant is None:
            return self.state
        if self._last_poll is None or now - self._last_poll >= self.poll_interval:
            self.refresh(now)
        if self.timer is not None:
            self.timer.poll(now)
        return self.state

    def refresh(self, now: Optional[float] = None):
        now = self.clock() if now is None else now
        self.snapshot = Snapshot.from_payload(self.gateway.snapshot(self.session_id))
        self._last_poll = now
        self._apply(reconcile_participant(self.state, self.snapshot, self.participant_id, now), now)
        return self.state

    def remaining(self, now: Optional[float] = None) -> Optional[int]:
        if self.timer is None:
            return None
        return self.timer.remaining(self.clock() if now is None else now)

    def start_polling(self) -> None:
        self.loop.start()

    def close(self) -> None:
        self.loop.stop()
        self._cancel_timer()

    def _apply(self, new_state, now: Optional[float] = None) -> None:
        old = self.state
        if new_state is old:
            return
        if isinstance(new_state, Questioning):
            if new_state != old:
                self._cancel_timer()
                self.selection = None
                duration = self._duration_of(new_state.question_id)
                self.timer = start_timer(
                    duration,
                    self.clock() if now is None else now,
                    self._on_timeout,
                    label=f'participant={self.participant_id} question={new_state.question_id}',
                )
        else:
            self._cancel_timer()
        self.state = new_state

    def _duration_of(self, question_id) -> Optional[int]:
        if self.snapshot is None:
            return None
        for q in self.snapshot.questions:
            if q['id'] == question_id:
                return q.get('duration')
        return None

    def _cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None

    def _on_timeout(self) -> None:
        try:
            self.submit(self.selection)
        except InteractionError as exc:
            log.warning(f"[auto-submit-failed] participant={self.participant_id} {exc.message}")
            self._apply(Waiting('answered'))


# ---- Host view -------------------------------------------------------------------

@dataclass(frozen=True)
class Lobby:
    status: str
    participants: Tuple[Dict[str, Any], ...] = ()


@dataclass(frozen=True)
class Presenting:
    index: int
    question_id: int
    deadline: Optional[float] = None
    expired: bool = False
    distribution: Optional[Dict[str, Any]] = field(default=None, compare=False)


@dataclass(frozen=True)
class Results:
    leaderboard: Tuple[Dict[str, Any], ...] = ()
    summaries: Tuple[Dict[str, Any], ...] = ()


def reconcile_host(state, snapshot: Snapshot, now: float):
    if snapshot.status == 'completed':
        leaderboard = ()
        if snapshot.session_type == 'exam':
            leaderboard = tuple(rank(snapshot.questions, snapshot.participants, snapshot.responses))
        summaries = tuple(tally(q, snapshot.responses, snapshot.participants) for q in snapshot.questions)
        return Results(leaderboard, summaries)

    question = snapshot.current_question()
    if question is None:
        return Lobby(snapshot.status, tuple(snapshot.participants))

    distribution = tally(question, snapshot.responses, snapshot.participants)
    if (isinstance(state, Presenting) and state.question_id == question['id']
            and state.index == snapshot.current_index):
        return replace(state, distribution=distribution)
    duration = question.get('duration')
    return Presenting(snapshot.current_index, question['id'], now + duration if duration else None,
                      False, distribution)


class HostConsole:
    def __init__(self, gateway, session_id, policy: Optional[AutoAdvancePolicy] = None,
                 clock: Callable[[], float] = time.monotonic,
                 poll_interval: float = 1.0, tick_interval: float = 1.0,
                 spawn: Optional[Callable] = None, sleep: Optional[Callable[[float], None]] = None,
                 heartbeat: float = 0):
        self.gateway = gateway
        self.session_id = session_id
        self.policy = policy or AutoAdvancePolicy()
        self.state = Lobby('draft')
        self.snapshot: Optional[Snapshot] = None
        self.timer: Optional[TimerTask] = None
        self.clock = clock
        self.poll_interval = float(poll_interval)
        self._last_poll: Optional[float] = None
        self.loop = PollingLoop(self.tick, tick_interval, spawn=spawn, sleep=sleep,
                                heartbeat=heartbeat, label=f'host session={session_id}')

    @classmethod
    def from_app(cls, app, session_id, **kwargs):
        settings = _loop_settings(app.config)
        settings['policy'] = AutoAdvancePolicy.from_config(app.config)
        settings.update(kwargs)
        return cls(LocalGateway(app), session_id, **settings)

    def activate(self):
        self.gateway.activate(self.session_id)
        return self.refresh()

    def start(self):
        self.gateway.start(self.session_id)
        return self.refresh()

    def next(self):
        expected = self.state.index if isinstance(self.state, Presenting) else None
        self.gateway.next_question(self.session_id, expected)
        return self.refresh()

    def previous(self):
        self.gateway.previous_question(self.session_id)
        return self.refresh()

    def complete(self):
        self.gateway.complete(self.session_id)
        return self.refresh()

    def tick(self, now: Optional[float] = None):
        now = self.clock() if now is None else now
        if self._last_poll is None or now - self._last_poll >= self.poll_interval:
            self.refresh(now)
        if self.timer is not None:
            self.timer.poll(now)
        return self.state

    def refresh(self, now: Optional[float] = None):
        now = self.clock() if now is None else now
        self.snapshot = Snapshot.from_payload(self.gateway.snapshot(self.session_id, include_answers=True))
        self._last_poll = now
        self._apply(reconcile_host(self.state, self.snapshot, now), now)
        return self.state

    def remaining(self, now: Optional[float] = None) -> Optional[int]:
        if self.timer is None:
            return None
        return self.timer.remaining(self.clock() if now is None else now)

    def start_polling(self) -> None:
        self.loop.start()

    def close(self) -> None:
        self.loop.stop()
        self._cancel_timer()

    def _apply(self, new_state, now: float) -> None:
        old = self.state
        if isinstance(new_state, Presenting):
            if not (isinstance(old, Presenting) and old.index == new_state.index
                    and old.question_id == new_state.question_id):
                self._cancel_timer()
                question = self.snapshot.current_question() if self.snapshot else None
                self.timer = start_timer(
                    question.get('duration') if question else None,
                    now,
                    lambda index=new_state.index: self._on_expire(index),
                    label=f'host session={self.session_id} question={new_state.question_id}',
                )
        else:
            self._cancel_timer()
            if isinstance(new_state, Results):
                # Nothing left to pace
                self.loop.stop()
        self.state = new_state

    def _cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None

    def _on_expire(self, index: int) -> None:
        session_type = self.snapshot.session_type if self.snapshot else None
        if self.policy.should_auto_advance(session_type):
            log.info(f"[auto-advance] session={self.session_id} index={index}")
            self.gateway.next_question(self.session_id, index)
            self.refresh()
            return
        if isinstance(self.state, Presenting):
            self.state = replace(self.state, expired=True)
