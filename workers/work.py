from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class Work(ABC):
    """
    A retryable unit of effort.

    `execute()` is called once per attempt and must be safe to call again
    after a failure. It returns the payload on success and raises on any
    failure; the Worker decides whether another attempt follows.
    """

    max_attempts: int = 5

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def execute(self) -> Any:
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
