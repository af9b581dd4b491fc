"""Step definitions registry.

The registry binds compiled step patterns to handlers and resolves step
text to the best matching definition.

Registration problems are not raised immediately. They are collected and
reported together by `StepRegistry.check`, so a broken suite shows every
malformed definition at once instead of the first one only.
"""

from collections.abc import Callable
from re import Pattern
from re import compile as regexp
from re import error as RegexError  # noqa: N812
from re import sub
from typing import TYPE_CHECKING, Any

from pydantic import Field

from pytest_stepwise.arguments import HandlerSignature
from pytest_stepwise.errors import (
    ConfigurationError,
    ErrorContext,
    StepDefinitionError,
    StepNotFoundError,
)
from pytest_stepwise.models import SchemaModel

if TYPE_CHECKING:
    from collections.abc import Iterator

    from pytest_stepwise.core.parameters import ParameterTypes

#: Parenthesized groups and regex syntax characters, ignored when measuring
#: how literal a pattern is.
_NON_LITERAL = regexp(r'\((?:[^()\\]|\\.)*\)|\\[dDwWsSbB]|[\\^$.|?*+()\[\]{}]')


def literal_length(pattern: Pattern[str]) -> int:
    """Return the number of literal characters of a pattern."""
    return len(sub(_NON_LITERAL, '', pattern.pattern))


def count_matches(pattern: Pattern[str], text: str) -> int:
    """Count the non-overlapping matches of a pattern in a text.

    An empty match starting where the previous match ended is not
    counted, so `(.*)` matches a text once, not twice.
    """
    count, previous_end = 0, None
    for match in pattern.finditer(text):
        if match.start() == match.end() == previous_end:
            continue

        count += 1
        previous_end = match.end()

    return count


class StepDefinition(SchemaModel):
    """Compiled step pattern bound to a handler."""

    expression: str = Field(
        title='Source expression',
        description='Expression or regex the definition was registered with.',
    )

    pattern: Pattern[str] = Field(
        title='Compiled pattern',
        description='Candidate pattern matched against step text.',
    )

    handler: Callable[..., Any] = Field(
        title='Step handler',
        description='Callable receiving a reporter, a context and the captures.',
    )

    signature: HandlerSignature = Field(
        title='Handler signature',
        description='Validated call contract of the handler.',
    )

    def captures(self, text: str) -> tuple[str | None, ...]:
        """Return the capture groups of the first match in a step text."""
        match = self.pattern.search(text)
        if match is None:
            return ()

        return match.groups()


class StepRegistry:
    """Registry of step definitions.

    A registry may be an overlay of a parent registry: it resolves against
    the parent definitions first and its own afterwards, but registers into
    itself only. The executor keeps per-scenario outline definitions in an
    overlay so they never leak into other scenarios.
    """

    def __init__(self, parameter_types: 'ParameterTypes',
                 parent: 'StepRegistry | None' = None) -> None:
        """Initialize the registry.

        Args:
            parameter_types: Parameter types used to expand expressions.
            parent: Registry read through by an overlay.
        """
        self.parameter_types = parameter_types
        self.parent = parent

        self.definitions: list[StepDefinition] = []
        self.errors: list[StepDefinitionError] = []

    def __iter__(self) -> 'Iterator[StepDefinition]':
        """Iterate over visible definitions in registration order."""
        if self.parent is not None:
            yield from self.parent
        yield from self.definitions

    def __len__(self) -> int:
        """Number of visible definitions."""
        return sum(1 for _ in self)

    @property
    def broken(self) -> bool:
        """Whether any registration failed."""
        return bool(self.errors)

    def has_expression(self, expression: str) -> bool:
        """Check whether a definition was registered with an expression."""
        return any(
            definition.expression == expression
            for definition in self
        )

    def overlay(self) -> 'StepRegistry':
        """Return a child registry reading through this one."""
        return type(self)(self.parameter_types, parent=self)

    def add_step(self, expression: str, handler: Callable[..., Any]) -> bool:
        """Register a handler for an expression with parameter-type tokens.

        The expression is expanded into every candidate pattern and all of
        them are bound to the handler. On any failure nothing is registered
        and the error is recorded.

        Args:
            expression: Step expression, for example `I have {int} cats`.
            handler: Step handler.

        Returns:
            True if the definition was registered.
        """
        return self._register(expression, self.parameter_types.expand(expression), handler)

    def add_regex_step(self, pattern: Pattern[str] | str,
                       handler: Callable[..., Any]) -> bool:
        """Register a handler for a regular expression, without expansion.

        Args:
            pattern: Precompiled pattern or regex source.
            handler: Step handler.

        Returns:
            True if the definition was registered.
        """
        if isinstance(pattern, Pattern):
            return self._register(pattern.pattern, [pattern], handler)

        return self._register(pattern, [pattern], handler)

    def _register(self, expression: str,
                  candidates: 'list[Pattern[str] | str]',
                  handler: Callable[..., Any]) -> bool:
        """Validate and register all candidates of one definition."""
        try:
            handler_signature = HandlerSignature.inspect(handler)

        except StepDefinitionError as error:
            error.context = ErrorContext(element={'step': expression})
            self.errors.append(error)
            return False

        compiled = []
        for candidate in candidates:
            try:
                compiled.append(regexp(candidate))

            except RegexError as base:
                self.errors.append(StepDefinitionError.from_expression(
                    'Step pattern does not compile',
                    expression,
                    error=base,
                ))
                return False

        self.definitions.extend(
            StepDefinition(
                expression=expression,
                pattern=pattern,
                handler=handler,
                signature=handler_signature,
            )
            for pattern in compiled
        )

        return True

    def check(self) -> None:
        """Raise all recorded registration errors at once.

        Raises:
            ConfigurationError: If any registration failed.
        """
        errors = [*(self.parent.errors if self.parent else ()), *self.errors]
        if errors:
            raise ConfigurationError(
                'The suite contains invalid step definitions',
                errors=errors,
            )

    def resolve(self, text: str) -> StepDefinition:
        """Resolve a step text to its best matching definition.

        Among the definitions whose pattern matches the text, the one with
        the greatest number of non-overlapping matches wins. Equal counts
        prefer the pattern with more literal characters. The first
        registered definition wins a full tie.

        Args:
            text: Literal step text.

        Returns:
            Matching step definition.

        Raises:
            StepNotFoundError: If no definition matches.
        """
        best: StepDefinition | None = None
        best_rank: tuple[int, int] | None = None

        for definition in self:
            if definition.pattern.search(text) is None:
                continue

            rank = (
                count_matches(definition.pattern, text),
                literal_length(definition.pattern),
            )
            if best_rank is None or rank > best_rank:
                best, best_rank = definition, rank

        if best is None:
            raise StepNotFoundError(
                f'Can not find step definition for step: {text}',
                context=ErrorContext(element={'step': text}),
            )

        return best
