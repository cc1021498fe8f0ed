"""Server-side host consoles.

When a session starts and the auto-advance policy applies to its type, the
server keeps its own ``HostConsole`` polling in the background so timed
questions still move on if the presenter's device goes quiet. At most one
runner exists per session; it stops itself once the session completes.
"""

import logging
from typing import Dict, Optional

from .timer import AutoAdvancePolicy
from .views import HostConsole

log = logging.getLogger(__name__)

_runners: Dict[int, HostConsole] = {}


def wants_runner(config, session_type: str) -> bool:
    if not config.get('HOST_RUNNER_ENABLED', True):
        return False
    return AutoAdvancePolicy.from_config(config).should_auto_advance(session_type)


def ensure_host_runner(app, session_id: int, **kwargs) -> HostConsole:
    console = _runners.get(session_id)
    if console is not None and console.loop.running:
        return console
    console = HostConsole.from_app(app, session_id, **kwargs)
    _runners[session_id] = console
    console.start_polling()
    log.info(f"[host-runner] session={session_id} started")
    return console


def get_host_runner(session_id: int) -> Optional[HostConsole]:
    return _runners.get(session_id)


def stop_host_runner(session_id: int) -> None:
    console = _runners.pop(session_id, None)
    if console is not None:
        console.close()
        log.info(f"[host-runner] session={session_id} stopped")
