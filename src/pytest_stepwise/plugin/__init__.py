"""Pytest plugin for collecting and executing feature document trees.

This module integrates the `pytest-stepwise` engine with pytest by:
- registering custom command-line options and the configure hook;
- configuring a shared `Suite` instance from options and environment;
- collecting feature files as executable scenarios;
- writing the collected outcome records at session finish.

Files matching the pattern `*.feature.yml` or `*.feature.yaml` are
automatically collected and loaded into pytest test items.
"""

from pathlib import Path
from re import match
from typing import TYPE_CHECKING, Any

import pytest
from pydantic import ValidationError

from . import hooks
from .report import OutcomeCollector
from .spec import FeatureSpec

if TYPE_CHECKING:
    from _pytest.config import Config, PytestPluginManager
    from _pytest.config.argparsing import Parser
    from _pytest.main import Session
    from _pytest.nodes import Node


def pytest_addoption(parser: 'Parser') -> None:
    """Register pytest command-line options for pytest-stepwise.

    Args:
        parser: Pytest argument parser.
    """
    group = parser.getgroup('stepwise', 'step-matching scenario execution')
    group.addoption(
        '--stepwise-tags',
        action='append',
        dest='stepwise_tags',
        default=[],
        metavar='TAG',
        help=(
            'Run only scenarios carrying this tag. '
            'May be repeated; overrides STEPWISE_TAGS.'
        ),
    )
    group.addoption(
        '--stepwise-ignore-tags',
        action='append',
        dest='stepwise_ignore_tags',
        default=[],
        metavar='TAG',
        help=(
            'Skip scenarios and features carrying this tag. '
            'May be repeated; overrides STEPWISE_IGNORE_TAGS.'
        ),
    )
    group.addoption(
        '--stepwise-parallel',
        action='store_true',
        dest='stepwise_parallel',
        default=False,
        help=(
            'Declare that scenarios may run concurrently. Without it, '
            'scenarios are kept on one pytest-xdist worker.'
        ),
    )
    group.addoption(
        '--stepwise-strict-coercion',
        action='store_true',
        dest='stepwise_strict_coercion',
        default=False,
        help=(
            'Fail steps whose captures do not convert to numeric handler '
            'parameters instead of passing the zero value.'
        ),
    )
    group.addoption(
        '--stepwise-relaxed',
        action='store_true',
        dest='stepwise_relaxed',
        default=False,
        help=(
            'Report step library loading errors and shadowing '
            'as warnings instead of failing the run.'
        ),
    )
    group.addoption(
        '--stepwise-report',
        action='store',
        dest='stepwise_report',
        default=None,
        metavar='PATH',
        help='Write collected outcome records as JSON to this file.',
    )


def pytest_addhooks(pluginmanager: 'PytestPluginManager') -> None:
    """Register pytest-stepwise hook specifications."""
    pluginmanager.add_hookspecs(hooks)


def get_settings_overrides(config: 'Config') -> dict[str, Any]:
    """Collect settings given on the command line.

    Args:
        config: Pytest configuration object.

    Returns:
        Settings fields overriding environment values.
    """
    overrides: dict[str, Any] = {}

    if tags := config.getoption('stepwise_tags', default=None):
        overrides['tags'] = tags
    if ignore_tags := config.getoption('stepwise_ignore_tags', default=None):
        overrides['ignore_tags'] = ignore_tags

    if config.getoption('stepwise_parallel', default=False):
        overrides['run_in_parallel'] = True
    if config.getoption('stepwise_strict_coercion', default=False):
        overrides['strict_coercion'] = True
    if config.getoption('stepwise_relaxed', default=False):
        overrides['strict'] = False

    return overrides


def pytest_configure(config: 'Config') -> None:
    """Configure pytest-stepwise integration.

    This hook initializes a shared `Suite` instance, loads step libraries
    from entry points and attaches both the suite and an outcome collector
    to the pytest configuration object as `config.stepwise_suite` and
    `config.stepwise_outcomes`.

    Args:
        config: Pytest configuration object.

    Raises:
        pytest.UsageError: If settings are invalid.
    """
    config.addinivalue_line(
        'markers',
        'xdist_group(name): keep scenarios of a non-parallel suite on one worker',
    )

    from pytest_stepwise.core import Suite, SuiteSettings  # noqa: PLC0415

    try:
        settings = SuiteSettings(**get_settings_overrides(config))
    except ValidationError as base:
        raise pytest.UsageError(f'Invalid pytest-stepwise settings:\n{base}') from base

    suite = Suite(settings)
    suite.load_libraries()

    config.stepwise_suite = suite  # type: ignore[attr-defined]
    config.stepwise_configured = False  # type: ignore[attr-defined]
    config.stepwise_outcomes = OutcomeCollector()  # type: ignore[attr-defined]


def pytest_collect_file(parent: 'Node', file_path: 'Path') -> FeatureSpec | None:
    """Collect feature document trees.

    Files matching the pattern `*.feature.yml` or `*.feature.yaml` are
    treated as feature documents and collected using `FeatureSpec`.

    Args:
        parent: Parent pytest collection node.
        file_path: Path to the file being considered.

    Returns:
        A `FeatureSpec` collector if the file matches the pattern, otherwise ``None``.
    """
    if match(r'^.+\.feature\.ya?ml$', file_path.name):
        return FeatureSpec.from_parent(
            parent,
            path=file_path,
        )

    return None


def pytest_sessionfinish(session: 'Session') -> None:
    """Write the outcome report when requested."""
    report = session.config.getoption('stepwise_report', default=None)
    collector = getattr(session.config, 'stepwise_outcomes', None)

    if report and collector is not None:
        collector.write(Path(report))
