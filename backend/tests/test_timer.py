import pytest

from live_audience.services.interaction.timer import AutoAdvancePolicy, Countdown, TimerTask, start_timer


def test_countdown_whole_seconds():
    countdown = Countdown(30, started_at=100.0)
    assert countdown.deadline == 130.0
    assert countdown.remaining(100.0) == 30
    assert countdown.remaining(100.9) == 30
    assert countdown.remaining(101.0) == 29
    assert not countdown.expired(129.5)
    assert countdown.expired(130.0)
    assert countdown.remaining(500.0) == 0


def test_timer_fires_once():
    fired = []
    task = TimerTask(Countdown(2, 0.0), lambda: fired.append(True))
    assert not task.poll(1.0)
    assert task.poll(2.0)
    assert not task.poll(3.0)
    assert fired == [True]
    assert task.state == TimerTask.FIRED


def test_cancelled_timer_never_fires():
    fired = []
    task = TimerTask(Countdown(1, 0.0), lambda: fired.append(True))
    task.cancel()
    assert not task.poll(10.0)
    assert fired == []
    assert task.remaining(0.0) == 0


def test_untimed_question_gets_no_timer():
    assert start_timer(None, 0.0, lambda: None) is None
    assert start_timer(15, 0.0, lambda: None).countdown.duration == 15


def test_auto_advance_policy():
    default = AutoAdvancePolicy()
    assert default.should_auto_advance('exam')
    assert not default.should_auto_advance('poll')
    assert not default.should_auto_advance('survey')
    assert AutoAdvancePolicy('always').should_auto_advance('poll')
    assert not AutoAdvancePolicy('never').should_auto_advance('exam')
    assert AutoAdvancePolicy.from_config({'AUTO_ADVANCE_POLICY': 'never'}).mode == 'never'
    with pytest.raises(ValueError):
        AutoAdvancePolicy('sometimes')
