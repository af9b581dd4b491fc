"""Pytest item running one scenario through the executor."""

from typing import TYPE_CHECKING

import pytest

from pytest_stepwise.errors import ScenarioFailure
from pytest_stepwise.host import ReportingUnit
from pytest_stepwise.outcomes import Status

if TYPE_CHECKING:
    from typing import Any

    from _pytest._code.code import ExceptionInfo, TerminalRepr

    from pytest_stepwise.core import Suite
    from pytest_stepwise.document import Background, Feature, Scenario


class ScenarioCase(pytest.Item):
    """Pytest item executing a single scenario or scenario outline.

    The scenario runs inside a root `ReportingUnit` named after the
    feature. Its report is attached to the test report as the `stepwise`
    section.
    """

    def __init__(self, *,
                 suite: 'Suite',
                 feature: 'Feature',
                 scenario: 'Scenario',
                 background: 'Background | None' = None,
                 **kwargs: 'Any') -> None:
        """Initialize a pytest test case backed by a scenario.

        Args:
            suite: Configured suite.
            feature: Feature containing the scenario.
            scenario: Scenario to run.
            background: Background applying to the scenario.
            **kwargs: Keyword pytest.Item arguments.
        """
        super().__init__(**kwargs)

        self.suite = suite
        self.feature = feature
        self.scenario = scenario
        self.background = background

    def runtest(self) -> None:
        """Execute the scenario.

        Raises:
            ScenarioFailure: If the scenario failed.
        """
        root = ReportingUnit(self.feature.title)

        outcome = self.suite.executor().run_scenario(
            root,
            self.scenario,
            self.background,
            filename=self.feature.uri or f'{self.path}',
        )

        self.config.stepwise_outcomes.add(self.feature, outcome)  # type: ignore[attr-defined]
        self.add_report_section('call', 'stepwise', root.report())

        if outcome.failed:
            raise ScenarioFailure(root.report())

        if outcome.status is Status.SKIPPED:
            pytest.skip(f'{self.scenario.title} skipped')

    def repr_failure(self, excinfo: 'ExceptionInfo[BaseException]',
                     style: 'Any' = None) -> 'str | TerminalRepr':
        """Render scenario failures without the engine traceback."""
        if isinstance(excinfo.value, ScenarioFailure):
            return f'{excinfo.value}'

        return super().repr_failure(excinfo, style=style)

    def reportinfo(self) -> tuple['Any', int | None, str]:
        """Location of the scenario for pytest reports."""
        return self.path, max(self.scenario.line - 1, 0), self.scenario.title
