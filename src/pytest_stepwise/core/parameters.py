"""Parameter-type registry.

A parameter type maps a symbolic token used inside step expressions (for
example `{int}`) to one or more regular expression fragments. Expanding an
expression replaces every known token with each of its fragments, so one
human-friendly expression yields several candidate patterns.
"""

from itertools import product
from re import compile as regexp
from re import error as RegexError  # noqa: N812
from typing import TYPE_CHECKING

from pytest_stepwise.errors import ErrorContext, ParameterTypeError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

#: Parameter types every registry starts with.
BUILTIN_PARAMETER_TYPES: dict[str, tuple[str, ...]] = {
    '{int}': (r'([-+]?\d+)',),
    '{float}': (r'([-+]?\d*\.?\d*)',),
    '{word}': (r'(\w+)',),
    '{text}': (r'"([\w\-\s]+)"', r"'([\w\-\s]+)'"),
}


class ParameterTypes:
    """Ordered registry of parameter-type tokens and their fragments."""

    def __init__(self, *, builtins: bool = True) -> None:
        """Initialize the registry.

        Args:
            builtins: Register the built-in `{int}`, `{float}`, `{word}`
                and `{text}` tokens.
        """
        self.fragments: dict[str, list[str]] = {}

        if builtins:
            for token, fragments in BUILTIN_PARAMETER_TYPES.items():
                self.register(token, fragments)

    def __contains__(self, token: object) -> bool:
        """Check whether a token is registered."""
        return token in self.fragments

    def __iter__(self) -> 'Iterator[str]':
        """Iterate over registered tokens in registration order."""
        return iter(self.fragments)

    def register(self, token: str, fragments: 'Iterable[str]') -> None:
        """Register fragments for a token.

        Fragments of an already known token are appended after the existing
        ones; fragments already present are skipped.

        Args:
            token: Placeholder token, for example `{color}`.
            fragments: Regular expression fragments matching the token.

        Raises:
            ParameterTypeError: If the token is empty, no fragment is given
                or any fragment does not compile. Nothing is registered in
                that case.
        """
        fragments = tuple(fragments)

        if not token:
            raise ParameterTypeError('Parameter-type token must not be empty')

        if not fragments:
            raise ParameterTypeError(
                f'Parameter type {token!r} has no fragments',
                context=ErrorContext(element={'token': token}),
            )

        for fragment in fragments:
            try:
                regexp(fragment)
            except RegexError as base:
                raise ParameterTypeError(
                    f'Fragment of parameter type {token!r} does not compile: {base}',
                    context=ErrorContext(
                        error=base,
                        element={'token': token, 'fragment': fragment},
                    ),
                ) from base

        known = self.fragments.setdefault(token, [])
        known.extend(
            fragment
            for fragment in dict.fromkeys(fragments)
            if fragment not in known
        )

    def tokens_in(self, pattern: str) -> list[str]:
        """Return known tokens present in a pattern, in order of appearance."""
        positions = {
            token: pattern.find(token)
            for token in self.fragments
            if token in pattern
        }

        return sorted(positions, key=positions.__getitem__)

    def expand(self, pattern: str) -> list[str]:
        """Expand a step expression into candidate patterns.

        The original expression comes first. It is followed by one variant
        per combination of fragments over the known tokens present, every
        occurrence of a token receiving the same fragment.

        Args:
            pattern: Step expression.

        Returns:
            Distinct candidate patterns, the original one first.
        """
        tokens = self.tokens_in(pattern)
        candidates = [pattern]

        if not tokens:
            return candidates

        for combination in product(*(self.fragments[token] for token in tokens)):
            variant = pattern
            for token, fragment in zip(tokens, combination, strict=True):
                variant = variant.replace(token, fragment)
            if variant not in candidates:
                candidates.append(variant)

        return candidates
