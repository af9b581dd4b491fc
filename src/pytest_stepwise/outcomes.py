"""Outcome records produced by a suite run.

Records are organized feature -> scenario -> step and carry status,
duration and source metadata. Dumping them with
`model_dump(mode='json')` yields a cucumber-like JSON tree;
writing any particular report format is left to reporters.
"""

from enum import StrEnum
from typing import TYPE_CHECKING

from pydantic import Field

from pytest_stepwise.models import RecordModel

if TYPE_CHECKING:
    from collections.abc import Iterable

    from pytest_stepwise.document import Background, Feature, Scenario, Step, Tag


class Status(StrEnum):
    """Classification of an executed unit."""

    PASSED = 'passed'
    FAILED = 'failed'
    SKIPPED = 'skipped'


class TagRecord(RecordModel):
    """Tag as reported."""

    name: str
    line: int = 0

    @classmethod
    def from_tags(cls, tags: 'Iterable[Tag]') -> 'tuple[TagRecord, ...]':
        """Convert document tags into records."""
        return tuple(cls(name=tag.name, line=tag.line) for tag in tags)


class StepResult(RecordModel):
    """Result of one step."""

    status: Status
    duration: int = Field(
        default=0,
        title='Duration',
        description='Elapsed time in microseconds.',
    )
    error_message: str | None = None


class StepOutcome(RecordModel):
    """Outcome record of one executed (or skipped) step."""

    keyword: str
    name: str
    line: int = 0
    result: StepResult

    @property
    def status(self) -> Status:
        """Status of the step."""
        return self.result.status

    @classmethod
    def from_step(cls, step: 'Step', status: Status, *,
                  duration: float = 0.0,
                  error_message: str | None = None) -> 'StepOutcome':
        """Build a step record.

        Args:
            step: Executed document step.
            status: Step classification.
            duration: Elapsed time in seconds.
            error_message: Diagnostic text for failed steps.

        Returns:
            Step outcome record.
        """
        return cls(
            keyword=step.keyword,
            name=step.text,
            line=step.line,
            result=StepResult(
                status=status,
                duration=round(duration * 1_000_000),
                error_message=error_message,
            ),
        )


class ScenarioOutcome(RecordModel):
    """Outcome record of one scenario (or scenario outline) run."""

    id: str
    keyword: str
    name: str
    description: str = ''
    type: str = 'scenario'
    line: int = 0
    tags: tuple[TagRecord, ...] = ()
    steps: tuple[StepOutcome, ...] = ()
    status: Status

    @property
    def failed(self) -> bool:
        """Whether the scenario failed."""
        return self.status is Status.FAILED

    @classmethod
    def from_scenario(cls, scenario: 'Scenario', status: Status,
                      steps: 'Iterable[StepOutcome]') -> 'ScenarioOutcome':
        """Build a scenario record."""
        return cls(
            id=scenario.id,
            keyword=scenario.keyword,
            name=scenario.name,
            description=scenario.description,
            type='scenario_outline' if scenario.is_outline else 'scenario',
            line=scenario.line,
            tags=TagRecord.from_tags(scenario.tags),
            steps=tuple(steps),
            status=status,
        )

    @classmethod
    def skipped(cls, scenario: 'Scenario',
                background: 'Background | None' = None) -> 'ScenarioOutcome':
        """Build a record for a scenario skipped by tag rules.

        Every step of the background and of the scenario (as written,
        without outline expansion) is recorded as skipped.
        """
        steps = [*(background.steps if background else ()), *scenario.steps]

        return cls.from_scenario(scenario, Status.SKIPPED, (
            StepOutcome.from_step(step, Status.SKIPPED)
            for step in steps
        ))


class FeatureOutcome(RecordModel):
    """Outcome record of one feature."""

    uri: str = ''
    id: str
    keyword: str
    name: str
    description: str = ''
    line: int = 0
    tags: tuple[TagRecord, ...] = ()
    elements: tuple[ScenarioOutcome, ...] = ()

    @property
    def failed(self) -> bool:
        """Whether any scenario of the feature failed."""
        return any(element.failed for element in self.elements)

    @classmethod
    def from_feature(cls, feature: 'Feature',
                     elements: 'Iterable[ScenarioOutcome]') -> 'FeatureOutcome':
        """Build a feature record."""
        return cls(
            uri=feature.uri,
            id=feature.id,
            keyword=feature.keyword,
            name=feature.name,
            description=feature.description,
            line=feature.line,
            tags=TagRecord.from_tags(feature.tags),
            elements=tuple(elements),
        )


class SuiteOutcome(RecordModel):
    """Outcome records of a whole run."""

    features: tuple[FeatureOutcome, ...] = ()
    errors: tuple[str, ...] = Field(
        default=(),
        title='Source errors',
        description='Diagnostics of feature files that could not be loaded.',
    )

    @property
    def failed(self) -> bool:
        """Whether any feature failed or any source could not be loaded."""
        return bool(self.errors) or any(feature.failed for feature in self.features)
