"""Pytest integration for feature document trees.

This module defines a custom pytest file collector that treats YAML
document trees as executable features.

Each collected file is loaded with the suite document loader and converted
into one `ScenarioCase` per scenario or scenario outline.
"""

from typing import TYPE_CHECKING

import pytest

from pytest_stepwise.errors import ConfigurationError, DocumentError
from pytest_stepwise.outcomes import ScenarioOutcome

from .case import ScenarioCase

if TYPE_CHECKING:
    from collections.abc import Iterable

    from _pytest.config import Config

    from pytest_stepwise.core import Suite

#: Group keeping scenarios of a non-parallel suite on one xdist worker.
XDIST_GROUP = 'stepwise'


def configure_suite(config: 'Config') -> 'Suite':
    """Run the configure hook once and return the shared suite.

    Args:
        config: Pytest configuration object.

    Returns:
        The configured suite.
    """
    suite: Suite = config.stepwise_suite  # type: ignore[attr-defined]

    if not config.stepwise_configured:  # type: ignore[attr-defined]
        config.stepwise_configured = True  # type: ignore[attr-defined]
        config.hook.pytest_stepwise_configure(suite=suite, config=config)

    return suite


class FeatureSpec(pytest.File):
    """Pytest file collector for feature document trees.

    This collector:
    - configures the shared suite on first use;
    - turns configuration and document errors into collection errors;
    - yields one `ScenarioCase` per scenario, marking scenarios skipped
      by tag rules.
    """

    def collect(self) -> 'Iterable[ScenarioCase]':
        """Collect pytest test cases from a feature document tree.

        Returns:
            Iterable of `ScenarioCase` instances for pytest execution.

        Raises:
            CollectError: If the suite configuration is invalid or the
                document can not be loaded.
        """
        suite = configure_suite(self.config)
        outcomes = self.config.stepwise_outcomes  # type: ignore[attr-defined]

        try:
            suite.check()
        except ConfigurationError as error:
            raise self.CollectError(f'{error}') from error

        try:
            feature = suite.document_loader.load_file(self.path)
        except DocumentError as error:
            outcomes.add_error(f'{error}')
            raise self.CollectError(f'{error}') from error

        executor = suite.executor()
        feature_ignored = executor.is_feature_ignored(feature)

        for scenario, background in feature.walk():
            item = ScenarioCase.from_parent(
                self,
                name=scenario.id,
                suite=suite,
                feature=feature,
                scenario=scenario,
                background=background,
            )

            if feature_ignored or executor.should_skip(scenario.tags):
                item.add_marker(pytest.mark.skip(reason='skipped by tags'))
                outcomes.add(feature, ScenarioOutcome.skipped(scenario, background))

            elif not suite.settings.run_in_parallel:
                item.add_marker(pytest.mark.xdist_group(XDIST_GROUP))

            yield item
