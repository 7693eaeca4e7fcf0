"""
Retry decorator for connector methods.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import asyncio
import logging
from functools import wraps
from typing import Any, Awaitable, Callable, Tuple, Type, TypeVar, cast

log = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


def retry(
    *,
    attempts: int = 3,
    delay: float = 1.0,
    backoff: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
) -> Callable[[F], F]:
    """Retry an async connector call on ``exceptions`` with exponential backoff.

    The last failure is re-raised once ``attempts`` calls have failed.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    def decorator(func: F) -> F:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            wait = delay
            for attempt in range(1, attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except exceptions as exc:
                    if attempt >= attempts:
                        raise
                    log.warning(
                        "%s failed (attempt %d/%d): %s; retrying in %.2fs",
                        func.__qualname__, attempt, attempts, exc, wait,
                    )
                    await asyncio.sleep(wait)
                    wait *= backoff

        return cast(F, wrapper)

    return decorator
