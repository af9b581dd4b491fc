"""Tests for step registration and resolution."""

from re import compile as regexp
from typing import Any

import pytest

from pytest_stepwise.core import ParameterTypes, StepRegistry
from pytest_stepwise.core.registry import count_matches
from pytest_stepwise.errors import ConfigurationError, StepNotFoundError


def handler(reporter, context) -> None:  # noqa: ANN001, ARG001
    """Step handler without captures."""


def first(reporter, context, value: str) -> None:  # noqa: ANN001, ARG001
    """Step handler with one capture."""


def second(reporter, context, value: str) -> None:  # noqa: ANN001, ARG001
    """Another step handler with one capture."""


@pytest.fixture
def registry() -> StepRegistry:
    """Provide a registry with built-in parameter types."""
    return StepRegistry(ParameterTypes())


def test_resolve_prefers_literal_pattern(registry: StepRegistry) -> None:
    """Resolve to the more specific of two matching patterns."""
    registry.add_regex_step('a (.*) number', first)
    registry.add_regex_step('a 5 number', handler)

    assert registry.resolve('a 5 number').handler is handler
    assert registry.resolve('a 7 number').handler is first


def test_resolve_prefers_literal_pattern_registered_first(registry: StepRegistry) -> None:
    """Prefer the literal pattern regardless of registration order."""
    registry.add_regex_step('a 5 number', handler)
    registry.add_regex_step('a (.*) number', first)

    assert registry.resolve('a 5 number').handler is handler


def test_resolve_greatest_match_count(registry: StepRegistry) -> None:
    """Prefer the pattern matching the text the most times."""
    registry.add_regex_step(r'(\w+) cat', first)
    registry.add_regex_step(r'(cat)', second)

    assert registry.resolve('cat and cat and cat').handler is second


def test_resolve_ignores_catch_all(registry: StepRegistry) -> None:
    """Prefer a specific step over an unanchored catch-all pattern."""
    registry.add_step('I have {int} cats', first)
    registry.add_regex_step('(.*)', second)

    assert registry.resolve('I have 3 cats').handler is first
    assert registry.resolve('I have no cats').handler is second


def test_resolve_prefers_full_pattern_over_prefix(registry: StepRegistry) -> None:
    """Prefer the full pattern over a pattern matching a prefix of the text."""
    registry.add_step('I click the button {word}', first)
    registry.add_step('I click the button', handler)

    assert registry.resolve('I click the button twice').handler is first
    assert registry.resolve('I click the button').handler is handler


@pytest.mark.parametrize('pattern, text, expected', (
    pytest.param(r'(.*)', 'anything', 1, id='catch all'),
    pytest.param(r'(.*)', '', 1, id='empty text'),
    pytest.param(r'(cat)', 'cat and cat', 2, id='repeated'),
    pytest.param(r'x*', 'ab', 3, id='empty matches apart'),
))
def test_count_matches(pattern: str, text: str, expected: int) -> None:
    """Count matches without empty matches abutting the previous one."""
    assert count_matches(regexp(pattern), text) == expected


def test_resolve_first_registered_wins_full_tie(registry: StepRegistry) -> None:
    """Keep the first registered definition on a full tie."""
    registry.add_regex_step(r'I see (\w+)', first)
    registry.add_regex_step(r'I see (\w+)', second)

    assert registry.resolve('I see birds').handler is first


def test_resolve_not_found(registry: StepRegistry) -> None:
    """Fail resolution when nothing matches."""
    registry.add_regex_step('a 5 number', handler)

    with pytest.raises(StepNotFoundError, match=r'^Can not find step definition for step: a cat'):
        registry.resolve('a cat')


def test_add_step_expands_parameter_types(registry: StepRegistry) -> None:
    """Register every candidate of an expression against one handler."""
    assert registry.add_step('I have {int} cats', first)

    assert [definition.pattern.pattern for definition in registry] == [
        'I have {int} cats',
        r'I have ([-+]?\d+) cats',
    ]
    assert {definition.handler for definition in registry} == {first}

    definition = registry.resolve('I have 3 cats')

    assert definition.expression == 'I have {int} cats'
    assert definition.captures('I have 3 cats') == ('3',)


def test_add_regex_step_precompiled(registry: StepRegistry) -> None:
    """Register a precompiled pattern without expansion."""
    pattern = regexp(r'^I have (\d+) {int}$')

    assert registry.add_regex_step(pattern, first)
    assert len(registry) == 1
    assert registry.resolve('I have 3 {int}').pattern is pattern


def test_definitions_are_immutable(registry: StepRegistry) -> None:
    """Reject changes to registered definitions."""
    registry.add_regex_step('a 5 number', handler)
    definition = registry.resolve('a 5 number')

    with pytest.raises(ValueError, match=r'frozen'):
        definition.handler = first  # type: ignore[misc]


def not_a_handler(reporter) -> None:  # noqa: ANN001, ARG001
    """Handler missing the context parameter."""


def untyped_capture(reporter, context, value: list[str]) -> None:  # noqa: ANN001, ARG001
    """Handler with an unsupported capture type."""


@pytest.mark.parametrize('candidate, message', (
    pytest.param(not_a_handler, r'must accept a reporter and a context', id='missing context'),
    pytest.param(untyped_capture, r'has unsupported type', id='unsupported type'),
    pytest.param(42, r'is not callable', id='not callable'),
))
def test_malformed_handler_is_deferred(registry: StepRegistry, candidate: Any, message: str) -> None:  # noqa: ANN401
    """Record malformed handlers and report them on check."""
    assert not registry.add_step('I do {word}', candidate)
    assert registry.broken
    assert len(registry) == 0

    with pytest.raises(ConfigurationError, match=message):
        registry.check()


def test_malformed_pattern_is_deferred(registry: StepRegistry) -> None:
    """Record patterns that do not compile."""
    assert not registry.add_regex_step(r'I do (unclosed', first)
    assert not registry.add_step('I do [{int}', first)

    with pytest.raises(ConfigurationError) as error:
        registry.check()

    assert len(error.value.errors) == 2
    assert 'Step pattern does not compile' in f'{error.value}'


def test_check_passes_without_errors(registry: StepRegistry) -> None:
    """Do nothing on a valid registry."""
    registry.add_step('I have {int} cats', first)
    registry.check()

    assert not registry.broken


def test_overlay_reads_through(registry: StepRegistry) -> None:
    """Resolve parent definitions and keep own ones local."""
    registry.add_regex_step('a (.*) number', first)
    overlay = registry.overlay()
    overlay.add_regex_step('^a 5 number$', handler)

    assert overlay.resolve('a 5 number').handler is handler
    assert registry.resolve('a 5 number').handler is first

    assert len(overlay) == 2
    assert len(registry) == 1
    assert overlay.has_expression('^a 5 number$')
    assert not registry.has_expression('^a 5 number$')
