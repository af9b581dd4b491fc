"""Outcome collection across pytest items."""

from json import dumps
from operator import attrgetter
from typing import TYPE_CHECKING

from pytest_stepwise.outcomes import FeatureOutcome, SuiteOutcome

if TYPE_CHECKING:
    from pathlib import Path

    from pytest_stepwise.document import Feature
    from pytest_stepwise.outcomes import ScenarioOutcome


class OutcomeCollector:
    """Accumulator of scenario outcomes grouped by feature.

    Features keep the order in which their first scenario was recorded.
    Scenarios are ordered by source line, since scenarios skipped by tags
    are recorded at collection time, before the others run.
    """

    def __init__(self) -> None:
        """Initialize an empty collector."""
        self.features: dict[str, Feature] = {}
        self.elements: dict[str, list[ScenarioOutcome]] = {}
        self.errors: list[str] = []

    def add(self, feature: 'Feature', outcome: 'ScenarioOutcome') -> None:
        """Record the outcome of one scenario."""
        key = feature.uri or feature.id
        self.features.setdefault(key, feature)
        self.elements.setdefault(key, []).append(outcome)

    def add_error(self, message: str) -> None:
        """Record a feature file that could not be loaded."""
        self.errors.append(message)

    def build(self) -> SuiteOutcome:
        """Build the suite outcome record."""
        return SuiteOutcome(
            features=tuple(
                FeatureOutcome.from_feature(feature, sorted(
                    self.elements[key],
                    key=attrgetter('line'),
                ))
                for key, feature in self.features.items()
            ),
            errors=tuple(self.errors),
        )

    def write(self, path: 'Path') -> None:
        """Write collected features as a cucumber-like JSON list.

        Args:
            path: Output file; parent directories are created.
        """
        outcome = self.build()

        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open('wt', encoding='utf-8') as output:
            output.write(dumps(
                [feature.model_dump(mode='json') for feature in outcome.features],
                ensure_ascii=False,
                indent=4,
            ))
            output.write('\n')
