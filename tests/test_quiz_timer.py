import threading
import time

import pytest

from classes import quiz_timer
from classes.quiz_timer import QuizTimer, QuizSession, initial_seconds


def test_initial_seconds_defaults_to_thirty_minutes():
    assert initial_seconds(None) == 1800
    assert initial_seconds(0) == 1800
    assert initial_seconds(1) == 60


def test_timer_expires_after_its_last_tick():
    expired = []
    timer = QuizTimer(1, on_expire=lambda: expired.append(True)).start(schedule=False)

    for _ in range(59):
        timer.tick()
    assert timer.state == quiz_timer.RUNNING
    assert timer.seconds_remaining == 1
    assert expired == []

    assert timer.tick() == quiz_timer.EXPIRED
    assert timer.seconds_remaining == 0
    assert expired == [True]

    # Further ticks are ignored and never fire again
    timer.tick()
    assert expired == [True]


def test_ticks_before_start_do_nothing():
    timer = QuizTimer(1)
    assert timer.tick() == quiz_timer.NOT_STARTED
    assert timer.seconds_remaining == 60


def test_manual_submit_stops_the_countdown():
    expired = []
    timer = QuizTimer(1, on_expire=lambda: expired.append(True)).start(schedule=False)
    timer.tick()

    assert timer.submit() is True
    assert timer.state == quiz_timer.SUBMITTED
    for _ in range(100):
        timer.tick()
    assert timer.seconds_remaining == 59
    assert expired == []
    assert timer.submit() is False


def test_resume_keeps_elapsed_time():
    timer = QuizTimer.resume(1, elapsed_seconds=45)
    assert timer.state == quiz_timer.RUNNING
    assert timer.seconds_remaining == 15
    assert timer.format_remaining() == "0:15"

    assert QuizTimer.resume(1, elapsed_seconds=600).state == quiz_timer.EXPIRED


def test_start_twice_is_rejected():
    timer = QuizTimer(1).start(schedule=False)
    with pytest.raises(RuntimeError):
        timer.start(schedule=False)


def test_session_auto_submits_answers_held_at_expiry():
    submissions = []
    session = QuizSession(1, submit_fn=lambda answers, auto: submissions.append((answers, auto)))
    session.start(schedule=False)

    session.record_answer(1, "true")
    for tick in range(1, 61):
        if tick == 30:
            session.record_answer(2, "Paris")
        session.timer.tick()

    assert submissions == [(
        [{"question_id": 1, "answer": "true"}, {"question_id": 2, "answer": "Paris"}],
        True,
    )]
    assert session.submitted is True


def test_session_manual_submit_happens_once():
    submissions = []
    session = QuizSession(1, submit_fn=lambda answers, auto: submissions.append(auto))
    session.start(schedule=False)

    session.submit()
    session.submit()
    for _ in range(60):
        session.timer.tick()

    assert submissions == [False]
    with pytest.raises(RuntimeError):
        session.record_answer(1, "late")


def test_session_retry_after_failed_delivery():
    calls = []

    def flaky_submit(answers, auto):
        calls.append(auto)
        if len(calls) == 1:
            raise ConnectionError("network down")
        return "stored"

    session = QuizSession(1, submit_fn=flaky_submit)
    session.start(schedule=False)

    with pytest.raises(ConnectionError):
        session.submit()
    assert session.submitted is False
    assert session.timer.state == quiz_timer.SUBMITTED

    assert session.retry() == "stored"
    assert calls == [False, False]
    assert session.retry() is None


def test_scheduled_countdown_fires_and_cleans_up():
    done = threading.Event()
    timer = QuizTimer(None, on_expire=done.set, interval=0.001)
    timer.total_seconds = timer.seconds_remaining = 3
    timer.start()

    assert done.wait(timeout=5)
    assert timer.state == quiz_timer.EXPIRED
    assert timer._task is None


def test_cancel_stops_scheduled_ticks():
    timer = QuizTimer(1, interval=60).start()
    timer.cancel()
    assert timer._task is None
    assert timer.state == quiz_timer.RUNNING


def test_cancel_while_ticks_are_in_flight():
    expired = threading.Event()
    timer = QuizTimer(1, on_expire=expired.set, interval=0)
    timer.seconds_remaining = 10 ** 9
    timer.start()

    started = time.monotonic()
    while timer.seconds_remaining == 10 ** 9 and time.monotonic() - started < 5:
        time.sleep(0.001)
    timer.cancel()

    frozen = timer.seconds_remaining
    time.sleep(0.05)
    assert timer.seconds_remaining == frozen
    assert timer._task is None
    assert timer.tick() == quiz_timer.RUNNING
    assert timer.seconds_remaining == frozen
    assert not expired.is_set()
