"""Scenario and step executor.

The executor walks features, scenarios and steps, applies tag-based skip
rules, runs hooks, invokes step handlers inside nested reporting units of
the host runner and builds the outcome records.

Failures are kept inside the smallest reporting unit that can hold them:
a handler failure fails its step, a resolution miss fails its scenario,
and a failed scenario never stops the next one.
"""

from collections.abc import Callable, Collection
from enum import StrEnum
from os import linesep
from typing import TYPE_CHECKING, Any

from pytest_stepwise.arguments import HandlerSignature
from pytest_stepwise.context import Context
from pytest_stepwise.core.outline import OutlineExpander
from pytest_stepwise.errors import (
    ArityError,
    CoercionError,
    ErrorContext,
    StepDefinitionError,
    StepNotFoundError,
    StepRuntimeError,
)
from pytest_stepwise.host import UnitInterrupt
from pytest_stepwise.outcomes import FeatureOutcome, ScenarioOutcome, Status, StepOutcome

if TYPE_CHECKING:
    from collections.abc import Iterable

    from pytest_stepwise.core.registry import StepRegistry
    from pytest_stepwise.document import Background, Feature, Scenario, Step
    from pytest_stepwise.host import HostRunner, StepReporter

type Hook = Callable[['StepReporter', Context], Any]

#: Names of the hook lists of a suite.
HOOK_SCOPES = ('before_scenario', 'after_scenario', 'before_step', 'after_step')


class ExecutionState(StrEnum):
    """Lifecycle of one scenario run."""

    NOT_STARTED = 'not_started'
    RUNNING_BACKGROUND = 'running_background'
    RUNNING_STEPS = 'running_steps'
    COMPLETED = 'completed'


class Hooks:
    """Ordered hook lists of a suite.

    Hooks are called with the reporting handle of the unit they bracket and
    the execution context. Hooks not matching that contract are recorded in
    `errors` and never called.
    """

    def __init__(self) -> None:
        """Initialize empty hook lists."""
        self.before_scenario: list[Hook] = []
        self.after_scenario: list[Hook] = []
        self.before_step: list[Hook] = []
        self.after_step: list[Hook] = []

        self.errors: list[StepDefinitionError] = []

    def add(self, scope: str, hook: Hook) -> bool:
        """Append a hook to a scope.

        Args:
            scope: One of `before_scenario`, `after_scenario`,
                `before_step` or `after_step`.
            hook: Callable accepting a reporter and a context.

        Returns:
            True if the hook was registered.

        Raises:
            ValueError: If the scope is unknown.
        """
        if scope not in HOOK_SCOPES:
            raise ValueError(f'Unknown hook scope {scope!r}')

        try:
            signature = HandlerSignature.inspect(hook)
            if signature.arity:
                raise StepDefinitionError(
                    f'Hook {signature.name} must accept a reporter and a context only',
                )

        except StepDefinitionError as error:
            error.context = ErrorContext(element={'hook': scope})
            self.errors.append(error)
            return False

        getattr(self, scope).append(hook)

        return True


class ScenarioRun:
    """State of one scenario run.

    The running instance is stored in the execution context under the
    `ScenarioRun` key, so hooks can inspect the run state.
    """

    def __init__(self, scenario: 'Scenario', registry: 'StepRegistry', *,
                 background: 'Background | None' = None,
                 filename: str | None = None) -> None:
        """Initialize a run that has not started yet."""
        self.scenario = scenario
        self.background = background
        self.registry = registry
        self.filename = filename

        self.state = ExecutionState.NOT_STARTED
        self.aborted = False

        self.planned: list[Step] = [*(background.steps if background else ()), *scenario.steps]
        self.outcomes: list[StepOutcome] = []

    def plan_steps(self, steps: 'Iterable[Step]') -> None:
        """Replace the scenario part of the planned steps."""
        background = list(self.background.steps if self.background else ())
        self.planned = [*background, *steps]

    def outcome(self, *, failed: bool, skipped: bool) -> ScenarioOutcome:
        """Build the scenario record.

        Planned steps that never started are recorded as skipped.

        Args:
            failed: Whether the scenario unit failed.
            skipped: Whether the scenario unit was skipped.

        Returns:
            Scenario outcome record.
        """
        steps = [
            *self.outcomes,
            *(
                StepOutcome.from_step(step, Status.SKIPPED)
                for step in self.planned[len(self.outcomes):]
            ),
        ]

        if failed or any(step.status is Status.FAILED for step in steps):
            status = Status.FAILED
        elif skipped or (steps and all(step.status is Status.SKIPPED for step in steps)):
            status = Status.SKIPPED
        else:
            status = Status.PASSED

        return ScenarioOutcome.from_scenario(self.scenario, status, steps)


class ScenarioExecutor:
    """Executor of features, scenarios and steps."""

    def __init__(self, registry: 'StepRegistry', hooks: Hooks | None = None, *,
                 tags: Collection[str] = (),
                 ignore_tags: Collection[str] = (),
                 strict_coercion: bool = False) -> None:
        """Initialize the executor.

        Args:
            registry: Registry resolving step texts.
            hooks: Suite hooks.
            tags: Allow-list of tags; empty allows every scenario.
            ignore_tags: Tags skipping any scenario or feature carrying them.
            strict_coercion: Fail steps on numeric conversion errors
                instead of passing zero.
        """
        self.registry = registry
        self.hooks = hooks or Hooks()

        self.tags = frozenset(tags)
        self.ignore_tags = frozenset(ignore_tags)

        self.strict_coercion = strict_coercion

    def should_skip(self, tags: 'Iterable[Any]') -> bool:
        """Apply tag rules to a set of tags.

        Any ignored tag skips. Otherwise a non-empty allow-list skips when
        none of the tags is in it.

        Args:
            tags: Tag models or tag names.

        Returns:
            True if the tagged unit must be skipped.
        """
        names = {getattr(tag, 'name', tag) for tag in tags}

        if names & self.ignore_tags:
            return True

        if not self.tags:
            return False

        return not names & self.tags

    def is_feature_ignored(self, feature: 'Feature') -> bool:
        """Check whether a feature carries an ignored tag."""
        return any(tag.name in self.ignore_tags for tag in feature.tags)

    def run_feature(self, host: 'HostRunner', feature: 'Feature') -> FeatureOutcome:
        """Run every scenario of a feature in document order.

        Args:
            host: Reporting unit receiving the feature sub-unit.
            feature: Feature document.

        Returns:
            Feature outcome record.
        """
        if self.is_feature_ignored(feature):
            host.log('the feature (%s) is ignored', feature.name)
            return FeatureOutcome.from_feature(feature, (
                ScenarioOutcome.skipped(scenario, background)
                for scenario, background in feature.walk()
            ))

        elements: list[ScenarioOutcome] = []

        def body(unit: 'HostRunner') -> None:
            for scenario, background in feature.walk():
                elements.append(self.run_scenario(
                    unit,
                    scenario,
                    background,
                    filename=feature.uri or None,
                ))

        host.run(feature.title, body)

        return FeatureOutcome.from_feature(feature, elements)

    def run_scenario(self, host: 'HostRunner', scenario: 'Scenario',
                     background: 'Background | None' = None, *,
                     filename: str | None = None) -> ScenarioOutcome:
        """Run one scenario or scenario outline.

        Tag rules are checked first: a skipped scenario runs no hook and no
        handler. Otherwise the scenario runs in its own sub-unit with
        scenario hooks bracketing the background and the scenario steps.

        Args:
            host: Reporting unit receiving the scenario sub-unit.
            scenario: Scenario document.
            background: Background applying to the scenario.
            filename: Source file of the feature, for diagnostics.

        Returns:
            Scenario outcome record.
        """
        if self.should_skip(scenario.tags):
            host.log('Skipping scenario %s', scenario.name)
            return ScenarioOutcome.skipped(scenario, background)

        run = ScenarioRun(
            scenario,
            self.registry,
            background=background,
            filename=filename,
        )
        units: list[HostRunner] = []

        def body(unit: 'HostRunner') -> None:
            units.append(unit)
            self._run_scenario_body(unit, run)

        host.run(scenario.title, body)

        unit = units[0]
        return run.outcome(failed=unit.failed, skipped=unit.skipped)

    def _run_scenario_body(self, unit: 'HostRunner', run: ScenarioRun) -> None:
        """Run hooks, background and steps of a scenario inside its unit."""
        context = Context()
        context[ScenarioRun] = run

        try:
            self.call_hooks(unit, self.hooks.before_scenario, context, run)

            run.state = ExecutionState.RUNNING_BACKGROUND
            if run.background is not None:
                self.run_steps(unit, run, run.background.steps, context)

            if run.aborted:
                return

            run.state = ExecutionState.RUNNING_STEPS

            if not run.scenario.is_outline:
                self.run_steps(unit, run, run.scenario.steps, context.clone())
                return

            run.registry = run.registry.overlay()
            iterations = OutlineExpander(run.registry).iterations(
                run.scenario.steps,
                run.scenario.examples,
            )
            run.plan_steps(step for iteration in iterations for step in iteration)

            for iteration in iterations:
                self.run_steps(unit, run, iteration, context.clone())
                if run.aborted:
                    return

        finally:
            self.call_hooks(unit, self.hooks.after_scenario, context, run, cleanup=True)
            run.state = ExecutionState.COMPLETED

    def run_steps(self, host: 'HostRunner', run: ScenarioRun,
                  steps: 'Iterable[Step]', context: Context) -> None:
        """Run steps in order until a resolution miss aborts the scenario."""
        for step in steps:
            run.outcomes.append(self.run_step(host, run, step, context))
            if run.aborted:
                break

        if run.aborted:
            host.error('scenario stopped at an unresolved step')

    def run_step(self, host: 'HostRunner', run: ScenarioRun,
                 step: 'Step', context: Context) -> StepOutcome:
        """Run one step inside its own sub-unit.

        Before-step hooks, resolution, coercion and the handler call run in
        that order; after-step hooks always run once the body has finished.
        An unresolved step marks the scenario run aborted.

        Args:
            host: Scenario reporting unit.
            run: Running scenario.
            step: Concrete step.
            context: Execution context of the step.

        Returns:
            Step outcome record.
        """
        units: list[HostRunner] = []

        def body(unit: 'HostRunner') -> None:
            units.append(unit)
            try:
                self.call_hooks(unit, self.hooks.before_step, context, run, step=step)
                self._invoke(unit, run, step, context)
            finally:
                self.call_hooks(unit, self.hooks.after_step, context, run, step=step, cleanup=True)

        host.run(step.title, body)

        unit = units[0]
        if unit.skipped:
            status = Status.SKIPPED
        elif unit.failed:
            status = Status.FAILED
        else:
            status = Status.PASSED

        return StepOutcome.from_step(
            step,
            status,
            duration=getattr(unit, 'duration', 0.0),
            error_message=linesep.join(unit.errors) if status is Status.FAILED else None,
        )

    def _invoke(self, unit: 'HostRunner', run: ScenarioRun,
                step: 'Step', context: Context) -> None:
        """Resolve a step, coerce its captures and call its handler."""
        try:
            definition = run.registry.resolve(step.text)

        except StepNotFoundError:
            run.aborted = True
            unit.fail('cannot find step definition for step: %s%s', step.keyword, step.text)
            return

        try:
            arguments = definition.signature.coerce(
                definition.captures(step.text),
                strict=self.strict_coercion,
            )

        except (ArityError, CoercionError) as error:
            unit.fail(f'{error}')
            return

        try:
            definition.handler(unit, context, *arguments)

        except Exception as error:  # noqa: BLE001
            unit.fail(f'{self.runtime_error(error, run, context, step=step)}')

    def call_hooks(self, unit: 'StepReporter', hooks: 'Iterable[Hook]',  # noqa: PLR0913
                   context: Context, run: ScenarioRun, *,
                   step: 'Step | None' = None,
                   cleanup: bool = False) -> None:
        """Call hooks in registration order.

        A failing before-hook fails the unit and stops it. After-hooks
        (`cleanup`) record failures and always run to the last one.

        Args:
            unit: Reporting unit the hooks bracket.
            hooks: Hooks to call.
            context: Execution context.
            run: Running scenario.
            step: Step bracketed by step hooks.
            cleanup: Whether the hooks are after-hooks.
        """
        for hook in hooks:
            try:
                hook(unit, context)

            except UnitInterrupt as signal:
                if not cleanup or signal.unit is not unit:
                    raise

            except Exception as error:  # noqa: BLE001
                message = f'{self.runtime_error(error, run, context, step=step)}'
                if not cleanup:
                    unit.fail(message)
                unit.error(message)

    @staticmethod
    def runtime_error(error: Exception, run: ScenarioRun, context: Context, *,
                      step: 'Step | None' = None) -> StepRuntimeError:
        """Wrap an exception raised by user code with its location."""
        return StepRuntimeError.from_exception(
            error,
            filename=run.filename,
            line_num=step.line if step else run.scenario.line,
            scenario=run.scenario.name,
            step=step.title if step else None,
            context={
                key: value
                for key, value in context.items()
                if key is not ScenarioRun
            },
        )
