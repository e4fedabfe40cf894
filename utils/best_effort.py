"""Fail-soft wrapper for outbound calls whose failure must never reach the caller"""
import copy
import functools
from typing import Any, Awaitable, Callable, TypeVar

from core.config import logger

T = TypeVar("T")


def best_effort(default: Any, tag: str = "best_effort") -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Decorate an async function so any exception is logged and replaced by ``default``.

    The default is deep-copied on every failure, so callers can mutate the
    returned value without affecting later calls.

    Usage:
        @best_effort(default=None, tag="geo")
        async def lookup(ip: str) -> Optional[dict]:
            ...
    """
    def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(fn)
        async def wrapper(*args, **kwargs) -> T:
            try:
                return await fn(*args, **kwargs)
            except Exception as ex:
                logger.warning(f"[{tag}] {fn.__name__} failed: {ex!r}")
                return copy.deepcopy(default)
        return wrapper
    return decorator
