"""
Retry-bounded concurrent execution

- Work: one retryable, idempotent unit of effort (name, max_attempts, execute)
- Worker: drives one Work through up to `max_attempts` calls of `execute()`
- Manager: starts one Worker thread per submitted Work and waits for all of
  them to reach a terminal state

Usage:
    m = Manager(cooldown_s=1.0)
    for w in works:
        m.submit(w)
    if not m.await_all():
        for r in m.failed():
            ...
"""
from .work import Work
from .worker import Worker
from .manager import Manager

__all__ = ["Work", "Worker", "Manager"]
