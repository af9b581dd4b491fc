"""Scenario-scoped execution context.

This module defines the mutable key/value store passed through every hook
and step handler of a scenario run.
"""

from collections.abc import Hashable
from typing import Any, overload

from pytest_stepwise.errors import ContextError, ErrorContext

_MISSING: Any = object()


class Context(dict[Hashable, Any]):
    """Execution context shared by hooks and steps of one scenario.

    The context maps arbitrary hashable keys (not only strings, so step
    libraries may use private sentinel objects or classes as keys) to
    arbitrary values.

    A context is exclusively owned by the running scenario. The executor
    gives the scenario steps a clone, one per example row of an outline,
    so values set inside one outline run never leak into another one.
    """

    def clone(self) -> 'Context':
        """Return an independent copy of the context.

        The copy is shallow: the mapping is new, stored values are shared.

        Returns:
            A new context holding the same items.
        """
        return type(self)(self)

    @overload
    def get_as[T](self, key: Hashable, kind: type[T]) -> T:
        ...  # pragma: no cover

    @overload
    def get_as[T](self, key: Hashable, kind: type[T], default: T) -> T:
        ...  # pragma: no cover

    def get_as(self, key: Hashable, kind: type[Any],
               default: Any = _MISSING) -> Any:  # noqa: ANN401
        """Return a value checked against an expected type.

        Args:
            key: Context key.
            kind: Expected type of the stored value.
            default: Value returned when the key is missing.

        Returns:
            The stored value, or the default.

        Raises:
            ContextError: If the key is missing and no default is given,
                or if the stored value is not an instance of `kind`.
        """
        if key not in self:
            if default is _MISSING:
                raise ContextError(f'Key {key!r} is not in the context', context=ErrorContext(
                    context=self,
                ))
            return default

        value = self[key]
        if not isinstance(value, kind):
            raise ContextError(
                f'Value of {key!r} is {type(value).__name__}, not {kind.__name__}',
                context=ErrorContext(context=self),
            )

        return value

    def get_str(self, key: Hashable, default: str = _MISSING) -> str:
        """Return a string value."""
        return self.get_as(key, str, default)

    def get_int(self, key: Hashable, default: int = _MISSING) -> int:
        """Return an integer value (booleans are rejected)."""
        value = self.get_as(key, int, default)
        if isinstance(value, bool):
            raise ContextError(f'Value of {key!r} is bool, not int')

        return value

    def get_float(self, key: Hashable, default: float = _MISSING) -> float:
        """Return a float value."""
        return self.get_as(key, float, default)

    def get_bool(self, key: Hashable, default: bool = _MISSING) -> bool:  # noqa: FBT001
        """Return a boolean value."""
        return self.get_as(key, bool, default)
