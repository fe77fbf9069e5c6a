"""Countdown for a single quiz session.

State machine::

    NOT_STARTED -> RUNNING(seconds_remaining) -> SUBMITTED | EXPIRED

``tick`` moves the countdown by one second. ``start`` can drive ticks from a
background ``threading.Timer`` that is re-armed after each tick; it is
cancelled on submit, on expiry and on ``cancel``, so a session never leaves a
live timer behind.
"""

import logging
import threading

logger = logging.getLogger(__name__)

DEFAULT_TIMER_MINUTES = 30

NOT_STARTED = "NOT_STARTED"
RUNNING = "RUNNING"
SUBMITTED = "SUBMITTED"
EXPIRED = "EXPIRED"


def initial_seconds(timer_minutes):
    # A missing or zero timer falls back to the default
    return (timer_minutes or DEFAULT_TIMER_MINUTES) * 60


class QuizTimer:
    def __init__(self, timer_minutes=None, on_expire=None, interval=1.0):
        self.total_seconds = initial_seconds(timer_minutes)
        self.seconds_remaining = self.total_seconds
        self.state = NOT_STARTED
        self.on_expire = on_expire
        self.interval = interval
        self._task = None
        self._cancelled = False
        self._lock = threading.Lock()

    @classmethod
    def resume(cls, timer_minutes, elapsed_seconds, on_expire=None, interval=1.0):
        """Rebuild a running timer for an attempt opened ``elapsed_seconds`` ago."""
        timer = cls(timer_minutes, on_expire=on_expire, interval=interval)
        timer.seconds_remaining = max(0, timer.total_seconds - int(elapsed_seconds))
        timer.state = RUNNING if timer.seconds_remaining > 0 else EXPIRED
        return timer

    @property
    def is_running(self):
        return self.state == RUNNING

    def start(self, schedule=True):
        with self._lock:
            if self.state != NOT_STARTED:
                raise RuntimeError(f"Timer cannot start from state {self.state}")
            self.state = RUNNING
        if schedule:
            self._arm()
        return self

    def tick(self):
        """Advance by one second. Fires ``on_expire`` once when reaching zero."""
        with self._lock:
            if self.state != RUNNING or self._cancelled:
                return self.state
            self.seconds_remaining -= 1
            if self.seconds_remaining > 0:
                return self.state
            self.seconds_remaining = 0
            self.state = EXPIRED
            self._cancel_task()

        logger.info("Quiz timer expired after %s seconds", self.total_seconds)
        if self.on_expire is not None:
            self.on_expire()
        return self.state

    def submit(self):
        """Manual submission; returns False if the timer already stopped."""
        with self._lock:
            if self.state not in (NOT_STARTED, RUNNING):
                return False
            self.state = SUBMITTED
            self._cancel_task()
        return True

    def cancel(self):
        """Session teardown: stop the countdown for good, keep the state.

        A tick already running when this is called neither changes the
        countdown nor re-arms the timer.
        """
        with self._lock:
            self._cancelled = True
            self._cancel_task()

    def _arm(self):
        with self._lock:
            if self.state != RUNNING or self._cancelled:
                return
            self._task = threading.Timer(self.interval, self._scheduled_tick)
            self._task.daemon = True
            self._task.start()

    def _scheduled_tick(self):
        if self.tick() == RUNNING:
            self._arm()

    def _cancel_task(self):
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def format_remaining(self):
        minutes, seconds = divmod(self.seconds_remaining, 60)
        return f"{minutes}:{seconds:02d}"


class QuizSession:
    """One student's pass through a quiz: recorded answers plus the countdown.

    ``submit_fn(answers, auto_submitted)`` is called at most once, either by a
    manual ``submit`` or by timer expiry, with the answers recorded so far.
    """

    def __init__(self, timer_minutes, submit_fn, interval=1.0):
        self.submit_fn = submit_fn
        self.answers = {}
        self.submitting = False
        self.submitted = False
        self._last_auto = None
        self._lock = threading.Lock()
        self.timer = QuizTimer(timer_minutes, on_expire=self._auto_submit, interval=interval)

    def record_answer(self, question_id, answer):
        if self.submitted:
            raise RuntimeError("Quiz already submitted")
        self.answers[question_id] = answer

    def answer_list(self):
        return [
            {"question_id": question_id, "answer": answer}
            for question_id, answer in self.answers.items()
        ]

    def start(self, schedule=True):
        self.timer.start(schedule=schedule)
        return self

    def submit(self):
        """Manual submission. Ignored while another submission is in flight."""
        if not self.timer.submit():
            return None
        return self._deliver(auto_submitted=False)

    def retry(self):
        """Deliver again after a failed submission; never restarts the timer."""
        if self.submitted or self.timer.is_running or self._last_auto is None:
            return None
        return self._deliver(auto_submitted=self._last_auto)

    def close(self):
        self.timer.cancel()

    def _auto_submit(self):
        return self._deliver(auto_submitted=True)

    def _deliver(self, auto_submitted):
        with self._lock:
            if self.submitting or self.submitted:
                return None
            self.submitting = True
            self._last_auto = auto_submitted
        try:
            outcome = self.submit_fn(self.answer_list(), auto_submitted)
        finally:
            self.submitting = False
        self.submitted = True
        return outcome
