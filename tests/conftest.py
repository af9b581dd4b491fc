"""Tests configurations and fixtures."""

from importlib.metadata import EntryPoint, EntryPoints
from typing import TYPE_CHECKING

import pytest
import yaml

from pytest_stepwise.core import Suite, SuiteSettings
from pytest_stepwise.document import DocumentLoader
from pytest_stepwise.host import ReportingUnit

if TYPE_CHECKING:
    from collections.abc import Callable

    from pytest_mock import MockerFixture, MockType

    from pytest_stepwise.extensions import StepLibrary


@pytest.fixture
def loader() -> type[yaml.SafeLoader]:
    """Provide an isolated YAML SafeLoader class for tests.

    Creates a dedicated subclass of `yaml.SafeLoader` to ensure that
    YAML constructors registered during a test do not leak into other
    tests or affect global loader state.
    """
    class Loader(yaml.SafeLoader):
        pass

    return Loader


@pytest.fixture
def documents(loader: type[yaml.SafeLoader]) -> DocumentLoader:
    """Provide a document loader over the isolated YAML loader."""
    return DocumentLoader(loader)


@pytest.fixture
def settings() -> SuiteSettings:
    """Provide settings independent from the environment."""
    return SuiteSettings(
        tags=[],
        ignore_tags=[],
        run_in_parallel=False,
        strict_coercion=False,
        strict=True,
    )


@pytest.fixture
def suite(settings: SuiteSettings) -> Suite:
    """Provide an empty suite with built-in parameter types."""
    return Suite(settings)


@pytest.fixture
def root() -> ReportingUnit:
    """Provide a root reporting unit."""
    return ReportingUnit('root')


@pytest.fixture
def patch_entrypoints(mocker: 'MockerFixture') -> 'Callable[..., MockType]':
    """Provide a factory for mocking `importlib.metadata.entry_points`.

    Returns a callable that patches `entry_points()` to simulate
    discovery of libraries in the `stepwise_libraries` entry point group.

    The returned factory allows configuring:
    - successfully loadable libraries,
    - or an exception raised during library loading,
    - or an empty entry point list.
    """
    def patch(*libraries: 'StepLibrary | object', raises: Exception | None = None) -> 'MockType':
        """Patch `entry_points` with a controlled library configuration.

        Args:
            libraries: Objects to be returned by `EntryPoint.load()`.
                If empty, no entry points are registered.
            raises: Exception to raise when `EntryPoint.load()` is called.

        Returns:
            A mock patch object replacing `importlib.metadata.entry_points`
            for the duration of the test.
        """
        entrypoints = []
        for position, library in enumerate(libraries):
            ep = mocker.Mock(spec=EntryPoint)
            ep.group = 'stepwise_libraries'
            ep.name = f'tests{position}'
            ep.value = f'tests.examples.library:library{position}'
            ep.load.return_value = library
            if raises is not None:
                ep.load.side_effect = raises
            entrypoints.append(ep)

        return mocker.patch(
            'importlib.metadata.entry_points',
            return_value=EntryPoints(entrypoints),
        )

    return patch
