from __future__ import annotations

from typing import Callable, Optional, TypeVar


T = TypeVar("T")


def retry_until(
    attempt: Callable[[int], T],
    *,
    accept: Callable[[T], bool],
    max_attempts: int,
) -> Optional[T]:
    """
    Call `attempt(n)` for n = 1..max_attempts until `accept(result)` is true.

    - Returns the first accepted result.
    - Returns None when every attempt was rejected.
    - Exceptions raised by `attempt` propagate; callers that want to retry on
      errors should turn them into a rejected outcome inside `attempt`.
    """
    if max_attempts <= 0:
        raise ValueError("max_attempts must be > 0")
    for n in range(1, max_attempts + 1):
        result = attempt(n)
        if accept(result):
            return result
    return None
