from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from common.logging_setup import get_logger
from common.types import WorkResult, WorkState
from common.utils import elapsed_ms
from workers.work import Work


log = get_logger("workers.worker")


class Worker:
    """
    Runs one Work until it succeeds or its attempts are used up.

    The Worker owns the retry loop: attempt counting, the fixed cooldown
    between failed attempts and the terminal state. `on_done` is invoked
    exactly once with the terminal WorkResult, whatever happens inside the
    loop.
    """

    def __init__(
        self,
        work: Work,
        *,
        cooldown_s: float = 1.0,
        on_done: Optional[Callable[[WorkResult], None]] = None,
        gate: Optional[threading.Semaphore] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if work.max_attempts < 1:
            raise ValueError(f"{work.name}: max_attempts must be >= 1")
        self.work = work
        self.cooldown_s = float(cooldown_s)
        self.tried = 0
        self.state = WorkState.PENDING
        self.last_error: Optional[BaseException] = None
        self.result: Optional[WorkResult] = None
        self._on_done = on_done
        self._gate = gate
        self._sleep = sleep

    @property
    def name(self) -> str:
        return self.work.name

    def run(self) -> WorkResult:
        t_start = time.perf_counter()
        payload = None
        try:
            while self.tried < self.work.max_attempts:
                if self.tried > 0 and self.cooldown_s > 0:
                    self._sleep(self.cooldown_s)
                self.tried += 1
                t0 = time.perf_counter()
                try:
                    payload = self._attempt()
                except Exception as e:
                    self.last_error = e
                    log.warning(
                        "attempt failed",
                        extra={"extra": {
                            "work": self.name,
                            "attempt": self.tried,
                            "max_attempts": self.work.max_attempts,
                            "elapsed_ms": elapsed_ms(t0),
                            "error": repr(e),
                        }},
                    )
                    continue
                log.debug(
                    "attempt done",
                    extra={"extra": {"work": self.name, "attempt": self.tried, "elapsed_ms": elapsed_ms(t0)}},
                )
                self.last_error = None
                self.state = WorkState.SUCCEEDED
                break
            else:
                self.state = WorkState.EXHAUSTED
                log.error(
                    "giving up",
                    extra={"extra": {"work": self.name, "attempts": self.tried, "error": repr(self.last_error)}},
                )
        finally:
            if not self.state.terminal:
                # unexpected BaseException (KeyboardInterrupt, SystemExit) escaped the loop
                self.state = WorkState.EXHAUSTED
            self.result = WorkResult(
                name=self.name,
                state=self.state,
                payload=payload if self.state is WorkState.SUCCEEDED else None,
                error=self.last_error,
                attempts=self.tried,
                elapsed_s=time.perf_counter() - t_start,
            )
            if self._on_done is not None:
                self._on_done(self.result)
        return self.result

    def _attempt(self):
        if self._gate is None:
            return self.work.execute()
        with self._gate:
            return self.work.execute()
