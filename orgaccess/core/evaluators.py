"""
Configuration values that are either constant or computed per call.

Options such as ``allow_user_to_create_organization`` or ``maximum_teams``
accept a plain value or a (sync or async) callable. Both are wrapped in an
Evaluator so call sites always do ``await option.evaluate(**context)``.

Usage:
    limit = as_evaluator(5)
    await limit.evaluate(user=user)            # -> 5

    limit = as_evaluator(lambda user: 10 if user.email.endswith("@corp.com") else 1)
    await limit.evaluate(user=user)
"""
import inspect
from abc import ABC, abstractmethod
from typing import Any, Callable


class Evaluator(ABC):
    @abstractmethod
    async def evaluate(self, **context: Any) -> Any:
        ...


class Constant(Evaluator):
    def __init__(self, value: Any):
        self.value = value

    async def evaluate(self, **context: Any) -> Any:
        return self.value

    def __repr__(self) -> str:
        return f"Constant({self.value!r})"


class Computed(Evaluator):
    """Calls ``fn(**context)``; awaits the result when it is awaitable."""

    def __init__(self, fn: Callable[..., Any]):
        self.fn = fn

    async def evaluate(self, **context: Any) -> Any:
        result = self.fn(**context)
        if inspect.isawaitable(result):
            result = await result
        return result

    def __repr__(self) -> str:
        return f"Computed({getattr(self.fn, '__name__', self.fn)!r})"


def as_evaluator(value: Any) -> Evaluator:
    if isinstance(value, Evaluator):
        return value
    if callable(value):
        return Computed(value)
    return Constant(value)
