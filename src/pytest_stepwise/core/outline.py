"""Scenario outline expansion.

An outline is a scenario template whose steps reference examples header
cells through `<placeholder>` tokens. Expansion produces one concrete step
sequence per body row and derives a step pattern for every substituted
step, so the literal text resolves to the handler of the template step.
"""

from logging import getLogger
from re import compile as regexp
from re import escape
from typing import TYPE_CHECKING

from pytest_stepwise.errors import StepNotFoundError
from pytest_stepwise.names import DECIMAL_PATTERN, DIGITS_PATTERN, PLACEHOLDER_PATTERN, placeholder

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from pytest_stepwise.core.registry import StepRegistry
    from pytest_stepwise.document import Examples, Step

logger = getLogger(__name__)

DIGITS_FRAGMENT = r'(\d+)'
DECIMAL_FRAGMENT = r'([+-]?(?:[0-9]*[.])?[0-9]+)'
WILDCARD_FRAGMENT = r'(.*)'


def sniff_fragment(cell: str) -> str:
    """Choose a capture fragment from the shape of an example cell.

    Args:
        cell: Literal cell value.

    Returns:
        A digit-only fragment for integer cells, a signed decimal fragment
        for float cells and a wildcard fragment otherwise.
    """
    # Signed integers fall through to the decimal fragment, which matches
    # the sign the digit-only fragment would reject.
    if DIGITS_PATTERN.match(cell):
        return DIGITS_FRAGMENT

    if DECIMAL_PATTERN.match(cell):
        return DECIMAL_FRAGMENT

    return WILDCARD_FRAGMENT


def substitute(text: str, values: dict[str, str]) -> tuple[str, str]:
    """Replace placeholders of a step text with example values.

    Placeholders naming no header cell are kept as written.

    Args:
        text: Step text of the outline.
        values: Row cells keyed by header names.

    Returns:
        The substituted text and the derived anchored pattern.
    """
    parts = PLACEHOLDER_PATTERN.split(text)

    literal = parts[0]
    pattern = escape(parts[0])

    for name, tail in zip(parts[1::2], parts[2::2], strict=True):
        if name in values:
            literal += values[name]
            pattern += sniff_fragment(values[name])
        else:
            literal += placeholder(name)
            pattern += escape(placeholder(name))

        literal += tail
        pattern += escape(tail)

    return literal, f'^{pattern}$'


class OutlineExpander:
    """Expander of scenario outlines into concrete steps.

    Derived definitions are registered in the registry given to the
    expander, normally a per-scenario overlay.
    """

    def __init__(self, registry: 'StepRegistry') -> None:
        """Initialize the expander.

        Args:
            registry: Registry resolving substituted steps and receiving
                the derived definitions.
        """
        self.registry = registry

    def rows(self, examples: 'Iterable[Examples]') -> 'Iterator[dict[str, str]]':
        """Iterate over body rows of all example blocks as header mappings."""
        for block in examples:
            for row in block.rows:
                yield dict(zip(block.header, row, strict=True))

    def iterations(self, steps: 'Iterable[Step]', examples: 'Iterable[Examples]') -> 'list[list[Step]]':
        """Expand outline steps into one step sequence per example row.

        Rows are walked in document order. A substituted step that does
        not resolve is still returned, so the executor reports the miss
        where it occurs.

        Args:
            steps: Steps of the outline.
            examples: Example blocks of the outline.

        Returns:
            Concrete step sequences; empty when there is no row.
        """
        steps = tuple(steps)
        iterations = []

        for values in self.rows(examples):
            iteration = []
            for step in steps:
                text, pattern = substitute(step.text, values)
                self.derive(text, pattern)
                iteration.append(step.model_copy(update={'text': text}))
            iterations.append(iteration)

        return iterations

    def expand(self, steps: 'Iterable[Step]', examples: 'Iterable[Examples]') -> 'list[Step]':
        """Expand outline steps over example rows into a flat sequence."""
        return [
            step
            for iteration in self.iterations(steps, examples)
            for step in iteration
        ]

    def derive(self, text: str, pattern: str) -> None:
        """Register a derived pattern against the handler resolving a text."""
        if self.registry.has_expression(pattern):
            return

        try:
            definition = self.registry.resolve(text)

        except StepNotFoundError:
            logger.debug('outline step %r has no definition', text)
            return

        # Derived patterns must capture every handler argument.
        if regexp(pattern).groups != definition.signature.arity:
            return

        self.registry.add_regex_step(pattern, definition.handler)
