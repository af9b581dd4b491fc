"""Declarative step library definition.

This module defines the top-level declarative container used to describe
steps, parameter types and hooks provided by a reusable step library.

The library model itself is purely declarative. It contains no execution
logic and is consumed by the suite during initialization to register all
provided declarations in a structured and validated form.
"""

from collections.abc import Callable
from re import Pattern
from typing import TYPE_CHECKING, Any, Self

from pydantic import Field, model_validator

from pytest_stepwise.models import SchemaModel
from pytest_stepwise.names import Token  # noqa: TC001

if TYPE_CHECKING:
    from collections.abc import Iterator

__all__ = (
    'ParameterType',
    'StepDeclaration',
    'StepLibrary',
)

type Handler = Callable[..., Any]


class ParameterType(SchemaModel):
    """Declarative parameter type."""

    token: Token

    fragments: tuple[str, ...] = Field(
        min_length=1,
        title='Regex fragments',
        description=(
            'Regular expression fragments replacing the token, tried in '
            'order. Each fragment must compile on its own.'
        ),
    )


class StepDeclaration(SchemaModel):
    """Declarative step definition.

    Exactly one of `expression` (with parameter-type tokens) and `pattern`
    (a raw regular expression) must be given.
    """

    expression: str | None = Field(
        default=None,
        title='Step expression',
        description='Human-friendly pattern that may contain tokens such as `{int}`.',
    )

    pattern: Pattern[str] | None = Field(
        default=None,
        title='Step regex',
        description='Regular expression registered without token expansion.',
    )

    handler: Handler = Field(
        title='Step handler',
        description=(
            'Callable receiving a reporter, the execution context and one '
            'argument per capture group.'
        ),
    )

    @property
    def source(self) -> str:
        """Expression or regex source of the declaration."""
        if self.pattern is not None:
            return self.pattern.pattern

        return self.expression or ''

    @model_validator(mode='after')
    def check_source(self) -> Self:
        """Check that exactly one source is declared.

        Raises:
            ValueError: If both or none of the sources are given.
        """
        if (self.expression is None) == (self.pattern is None):
            raise ValueError('exactly one of expression and pattern is required')

        return self


class StepLibrary(SchemaModel):
    """Declarative container for reusable steps.

    A library represents a logical namespace that groups together steps,
    parameter types and hooks contributed by an extension module, exposed
    through the `stepwise_libraries` entry point group.

    All contained elements are optional. Declarations are usually added
    with the decorator methods while the library module is imported::

        library = StepLibrary(name='shop')

        @library.step('I add {int} items')
        def add_items(reporter, context, count: int) -> None:
            context['items'] = count
    """

    name: str = Field(
        title='Library namespace',
        description=(
            'Logical namespace of the library. '
            'Used for identification, diagnostics and conflict detection.'
        ),
    )

    version: int = Field(
        default=1,
        title='Library contract version',
        description=(
            'Version of the library contract. '
            'This is not a semantic version of the library implementation.'
        ),
    )

    steps: list[StepDeclaration] = Field(
        default_factory=list,
        title='Steps',
    )

    parameter_types: list[ParameterType] = Field(
        default_factory=list,
        title='Parameter types',
    )

    before_scenario: list[Handler] = Field(default_factory=list)
    after_scenario: list[Handler] = Field(default_factory=list)
    before_step: list[Handler] = Field(default_factory=list)
    after_step: list[Handler] = Field(default_factory=list)

    def hooks(self) -> 'Iterator[tuple[str, list[Handler]]]':
        """Iterate over hook scopes and their hooks."""
        yield 'before_scenario', self.before_scenario
        yield 'after_scenario', self.after_scenario
        yield 'before_step', self.before_step
        yield 'after_step', self.after_step

    def step(self, expression: str) -> Callable[[Handler], Handler]:
        """Declare a step from an expression with parameter-type tokens."""
        def decorator(handler: Handler) -> Handler:
            self.steps.append(StepDeclaration(expression=expression, handler=handler))
            return handler

        return decorator

    def regex_step(self, pattern: Pattern[str] | str) -> Callable[[Handler], Handler]:
        """Declare a step from a regular expression."""
        def decorator(handler: Handler) -> Handler:
            self.steps.append(StepDeclaration(pattern=pattern, handler=handler))
            return handler

        return decorator

    def parameter_type(self, token: str, *fragments: str) -> None:
        """Declare a parameter type."""
        self.parameter_types.append(ParameterType(token=token, fragments=fragments))

    def before_scenario_hook(self, hook: Handler) -> Handler:
        """Declare a before-scenario hook."""
        self.before_scenario.append(hook)
        return hook

    def after_scenario_hook(self, hook: Handler) -> Handler:
        """Declare an after-scenario hook."""
        self.after_scenario.append(hook)
        return hook

    def before_step_hook(self, hook: Handler) -> Handler:
        """Declare a before-step hook."""
        self.before_step.append(hook)
        return hook

    def after_step_hook(self, hook: Handler) -> Handler:
        """Declare an after-step hook."""
        self.after_step.append(hook)
        return hook
