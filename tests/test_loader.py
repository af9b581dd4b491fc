"""Tests for step library loading via entry points."""

from typing import TYPE_CHECKING

import pytest
from pydantic import ValidationError

from pytest_stepwise.core import Suite, SuiteSettings
from pytest_stepwise.core.loader import LibrariesLoaderMixin
from pytest_stepwise.errors import PluginError, PluginWarning
from pytest_stepwise.extensions import StepDeclaration, StepLibrary
from tests.examples.library import calculator

if TYPE_CHECKING:
    from collections.abc import Callable

    from pytest_mock import MockType


@pytest.fixture
def relaxed() -> Suite:
    """Provide a suite reporting library issues as warnings."""
    return Suite(SuiteSettings(tags=[], ignore_tags=[], strict=False))


def test_load_library(suite: Suite, patch_entrypoints: 'Callable[..., MockType]') -> None:
    """Register parameter types, steps and hooks of a library."""
    patch_entrypoints(calculator)

    suite.load_libraries()

    assert suite.libraries == {'calculator': calculator}
    assert '{color}' in suite.parameter_types
    assert suite.has_step('I add {int}')
    assert suite.has_step(r'^I multiply by (\d+)$')
    assert suite.hooks.before_scenario == calculator.before_scenario
    assert suite.registry.resolve('I paint it green').expression == 'I paint it {color}'
    assert not suite.broken


def test_load_without_libraries(suite: Suite, patch_entrypoints: 'Callable[..., MockType]') -> None:
    """Do nothing without entry points."""
    patch_entrypoints()

    suite.load_libraries()

    assert suite.libraries == {}
    assert len(suite.registry) == 0


def test_load_not_a_library(suite: Suite, relaxed: Suite,
                            patch_entrypoints: 'Callable[..., MockType]') -> None:
    """Reject entry points not exposing a step library."""
    patch_entrypoints(object())

    with pytest.raises(PluginError, match=r'object is not a step library'):
        suite.load_libraries()

    with pytest.warns(PluginWarning, match=r'object is not a step library'):
        relaxed.load_libraries()

    assert relaxed.libraries == {}


@pytest.mark.parametrize('raises, message', (
    pytest.param(ImportError('no module'), r'^Failed to load entrypoint', id='import error'),
    pytest.param(
        ValidationError.from_exception_data('StepLibrary', []),
        r'^Failed to validate entrypoint',
        id='validation error',
    ),
))
def test_load_failure(suite: Suite, relaxed: Suite, patch_entrypoints: 'Callable[..., MockType]',
                      raises: Exception, message: str) -> None:
    """Report entry points failing to load."""
    patch_entrypoints(calculator, raises=raises)

    with pytest.raises(PluginError, match=message) as error:
        suite.load_libraries()

    assert error.value.entrypoint is not None
    assert error.value.entrypoint.name == 'tests0'

    with pytest.warns(PluginWarning, match=message):
        relaxed.load_libraries()


def test_library_shadowing(suite: Suite, relaxed: Suite) -> None:
    """Report libraries and steps registered twice."""
    suite.add_library(calculator)

    with pytest.raises(PluginError, match=r"Library 'calculator' from 'calculator' is shadowing"):
        suite.add_library(calculator)

    relaxed.add_library(calculator)
    with pytest.warns(PluginWarning, match=r"Step 'I add \{int\}' from 'calculator' is shadowing"):
        relaxed.add_library(calculator)


def test_step_shadowing_keeps_first(relaxed: Suite) -> None:
    """Keep resolving to the first registered handler on shadowing."""
    def first(reporter, context) -> None:  # noqa: ANN001, ARG001
        """First handler."""

    def second(reporter, context) -> None:  # noqa: ANN001, ARG001
        """Second handler."""

    relaxed.add_step('I wait', first)

    other = StepLibrary(name='other')
    other.step('I wait')(second)

    with pytest.warns(PluginWarning, match=r'is shadowing an existing'):
        relaxed.add_library(other)

    assert relaxed.registry.resolve('I wait').handler is first


def test_invalid_parameter_type(suite: Suite, relaxed: Suite) -> None:
    """Report parameter types with fragments that do not compile."""
    library = StepLibrary(name='broken')
    library.parameter_type('{broken}', r'(unclosed')

    with pytest.raises(PluginError, match=r"Parameter type '\{broken\}' from 'broken' is invalid"):
        suite.add_library(library)

    with pytest.warns(PluginWarning, match=r'is invalid'):
        relaxed.add_library(library)

    assert '{broken}' not in relaxed.parameter_types


def test_malformed_library_handler_is_deferred(suite: Suite) -> None:
    """Record malformed library handlers as suite errors."""
    library = StepLibrary(name='malformed')
    library.step('I break')(lambda: None)
    library.before_step_hook(lambda reporter: None)  # noqa: ARG005

    suite.add_library(library)

    assert suite.broken
    assert len(suite.errors) == 2


@pytest.mark.parametrize('kwargs', (
    pytest.param({}, id='no source'),
    pytest.param({'expression': 'I wait', 'pattern': '^I wait$'}, id='both sources'),
))
def test_step_declaration_requires_one_source(kwargs: dict[str, str]) -> None:
    """Require exactly one of expression and pattern."""
    with pytest.raises(ValidationError, match=r'exactly one of expression and pattern'):
        StepDeclaration(handler=lambda reporter, context: None, **kwargs)  # noqa: ARG005


def test_parameter_type_token_is_validated() -> None:
    """Reject malformed parameter type tokens in libraries."""
    library = StepLibrary(name='tokens')

    with pytest.raises(ValidationError):
        library.parameter_type('color', r'(red)')


def test_loader_mixin_declares_registration_methods(suite: Suite) -> None:
    """Leave registration methods to the suite implementing the mixin."""
    names = ('add_parameter_type', 'add_step', 'add_regex_step', 'add_hook', 'has_step')

    assert set(names) <= set(LibrariesLoaderMixin.__annotations__)
    assert not any(hasattr(LibrariesLoaderMixin, name) for name in names)
    assert all(callable(getattr(suite, name)) for name in names)
