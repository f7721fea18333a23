from __future__ import annotations

import threading
from typing import Callable, List, Optional

from common.logging_setup import get_logger
from common.types import WorkResult
from workers.work import Work
from workers.worker import Worker


log = get_logger("workers.manager")


class Manager:
    """
    Fan-out/fan-in over Workers, one thread each.

    `submit()` starts the Worker right away. `await_all()` blocks until every
    submitted Worker is terminal, joins their threads and reports whether all
    of them succeeded. A Worker that exhausts its attempts does not cancel its
    siblings: each runs to its own terminal state first.

    A Manager is single-use: submitting after `await_all()` raises.
    """

    def __init__(
        self,
        *,
        cooldown_s: float = 1.0,
        max_concurrency: int = 0,
        on_done: Optional[Callable[[WorkResult], None]] = None,
        name: str = "work",
    ):
        self.cooldown_s = cooldown_s
        self.name = name
        self.workers: List[Worker] = []
        self._threads: List[threading.Thread] = []
        self._gate = threading.BoundedSemaphore(max_concurrency) if max_concurrency and max_concurrency > 0 else None
        self._on_done = on_done
        self._cond = threading.Condition()
        self._pending = 0
        self._finished = 0
        self._closed = False

    # -------- public API --------

    def submit(self, work: Work) -> Worker:
        with self._cond:
            if self._closed:
                raise RuntimeError("Manager already awaited; create a new one per run")
            worker = Worker(work, cooldown_s=self.cooldown_s, on_done=self._report, gate=self._gate)
            self.workers.append(worker)
            self._pending += 1
        t = threading.Thread(target=worker.run, name=f"{self.name}-{len(self.workers)}", daemon=True)
        self._threads.append(t)
        t.start()
        return worker

    def await_all(self) -> bool:
        """Block until every submitted Worker is terminal; True iff all succeeded."""
        with self._cond:
            self._closed = True
            while self._pending > 0:
                self._cond.wait()
        for t in self._threads:
            t.join()
        ok = all(w.result is not None and w.result.ok for w in self.workers)
        log.info(
            "batch finished",
            extra={"extra": {"batch": self.name, "total": len(self.workers), "failed": len(self.failed()), "ok": ok}},
        )
        return ok

    def results(self) -> List[WorkResult]:
        return [w.result for w in self.workers if w.result is not None]

    def failed(self) -> List[WorkResult]:
        return [r for r in self.results() if not r.ok]

    @property
    def finished(self) -> int:
        with self._cond:
            return self._finished

    def __len__(self) -> int:
        return len(self.workers)

    # -------- internals --------

    def _report(self, result: WorkResult) -> None:
        with self._cond:
            self._pending -= 1
            self._finished += 1
            done = self._finished
            total = len(self.workers)
            self._cond.notify_all()
        if self._on_done is not None:
            try:
                self._on_done(result)
            except Exception:
                log.exception("on_done callback failed", extra={"extra": {"work": result.name}})
        log.debug("progress", extra={"extra": {"batch": self.name, "done": done, "total": total}})
