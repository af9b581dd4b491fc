"""Suite configuration surface and run orchestration.

A `Suite` owns the parameter types, the step registry, the hooks and the
settings of one run. It is configured in code (or through step libraries)
before execution starts and is treated as read-only afterwards.
"""

from glob import glob
from typing import TYPE_CHECKING, Any

from pydantic import Field, field_validator
from pydantic_settings import SettingsConfigDict

from pytest_stepwise.core.executor import Hooks, ScenarioExecutor
from pytest_stepwise.core.loader import LibrariesLoaderMixin
from pytest_stepwise.core.parameters import ParameterTypes
from pytest_stepwise.core.registry import StepRegistry
from pytest_stepwise.document import DocumentLoader
from pytest_stepwise.errors import ConfigurationError, DocumentError
from pytest_stepwise.models import SettingsModel
from pytest_stepwise.names import TAG_PATTERN
from pytest_stepwise.outcomes import SuiteOutcome

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from re import Pattern

    from pytest_stepwise.core.executor import Hook
    from pytest_stepwise.document import Feature
    from pytest_stepwise.extensions import StepLibrary
    from pytest_stepwise.host import HostRunner
    from pytest_stepwise.outcomes import FeatureOutcome


class SuiteSettings(SettingsModel):
    """Runtime settings of a suite.

    Every field may be set from a `STEPWISE_`-prefixed environment
    variable; list fields take JSON arrays, for example
    `STEPWISE_TAGS='["@smoke"]'`.
    """

    model_config = SettingsConfigDict(
        env_prefix='STEPWISE_',
        frozen=True,
        extra='ignore',
    )

    features_path: str = Field(
        default='features/*.feature.yml',
        title='Feature files pattern',
        description='Glob selecting the document trees loaded by `Suite.discover`.',
    )

    tags: list[str] = Field(
        default_factory=list,
        title='Tags allow-list',
        description='When non-empty, only scenarios carrying one of these tags run.',
    )

    ignore_tags: list[str] = Field(
        default_factory=list,
        title='Tags ignore-list',
        description='Scenarios and features carrying one of these tags are skipped.',
    )

    run_in_parallel: bool = Field(
        default=False,
        title='Parallel run',
        description='Declare to the host runner that the suite may run concurrently.',
    )

    strict_coercion: bool = Field(
        default=False,
        title='Strict coercion',
        description=(
            'Fail a step when a capture does not convert to a numeric '
            'parameter instead of passing the zero value.'
        ),
    )

    strict: bool = Field(
        default=True,
        title='Strict library loading',
        description='Step library loading issues are errors instead of warnings.',
    )

    @field_validator('tags', 'ignore_tags')
    @classmethod
    def check_tags(cls, value: list[str]) -> list[str]:
        """Check that every tag carries the `@` marker.

        Raises:
            ValueError: If a tag is malformed.
        """
        for tag in value:
            if not TAG_PATTERN.match(tag):
                raise ValueError(f'tag {tag!r} must start with "@"')

        return value


class Suite(LibrariesLoaderMixin):
    """Configured collection of step definitions and hooks.

    Example::

        suite = Suite(SuiteSettings(tags=['@smoke']))

        @suite.step('I have {int} cats')
        def have_cats(reporter, context, count: int) -> None:
            context['cats'] = count

        outcome = suite.run(ReportingUnit('suite'))
    """

    def __init__(self, settings: SuiteSettings | None = None) -> None:
        """Initialize a suite with the built-in parameter types.

        Args:
            settings: Runtime settings; resolved from the environment when
                omitted.
        """
        self.settings = settings or SuiteSettings()
        self.strict_mode = self.settings.strict

        self.parameter_types = ParameterTypes()
        self.registry = StepRegistry(self.parameter_types)
        self.hooks = Hooks()

        self.libraries: dict[str, StepLibrary] = {}

        self.document_loader = DocumentLoader()
        self.document_errors: list[DocumentError] = []

    @property
    def errors(self) -> list[Any]:
        """Recorded configuration errors."""
        return [*self.registry.errors, *self.hooks.errors]

    @property
    def broken(self) -> bool:
        """Whether the suite can not run."""
        return bool(self.errors)

    def check(self) -> None:
        """Raise every recorded configuration error at once.

        Raises:
            ConfigurationError: If any registration failed.
        """
        if errors := self.errors:
            raise ConfigurationError(
                'The suite contains invalid step definitions',
                errors=errors,
            )

    def executor(self) -> ScenarioExecutor:
        """Build an executor over the current configuration."""
        return ScenarioExecutor(
            self.registry,
            self.hooks,
            tags=self.settings.tags,
            ignore_tags=self.settings.ignore_tags,
            strict_coercion=self.settings.strict_coercion,
        )

    def add_parameter_type(self, token: str, fragments: 'Iterable[str]') -> None:
        """Register a parameter type.

        Raises:
            ParameterTypeError: If any fragment does not compile.
        """
        self.parameter_types.register(token, fragments)

    def add_step(self, expression: str, handler: 'Callable[..., Any]') -> bool:
        """Register a step definition from an expression."""
        return self.registry.add_step(expression, handler)

    def add_regex_step(self, pattern: 'Pattern[str] | str', handler: 'Callable[..., Any]') -> bool:
        """Register a step definition from a regular expression."""
        return self.registry.add_regex_step(pattern, handler)

    def add_hook(self, scope: str, hook: 'Hook') -> bool:
        """Register a hook for a scope."""
        return self.hooks.add(scope, hook)

    def has_step(self, expression: str) -> bool:
        """Check whether a step expression is already registered."""
        return self.registry.has_expression(expression)

    def step(self, expression: str) -> 'Callable[[Callable[..., Any]], Callable[..., Any]]':
        """Decorate a handler as a step definition."""
        def decorator(handler: 'Callable[..., Any]') -> 'Callable[..., Any]':
            self.add_step(expression, handler)
            return handler

        return decorator

    def regex_step(self, pattern: 'Pattern[str] | str') -> 'Callable[[Callable[..., Any]], Callable[..., Any]]':
        """Decorate a handler as a regular expression step definition."""
        def decorator(handler: 'Callable[..., Any]') -> 'Callable[..., Any]':
            self.add_regex_step(pattern, handler)
            return handler

        return decorator

    def before_scenario(self, hook: 'Hook') -> 'Hook':
        """Register a before-scenario hook (usable as a decorator)."""
        self.add_hook('before_scenario', hook)
        return hook

    def after_scenario(self, hook: 'Hook') -> 'Hook':
        """Register an after-scenario hook (usable as a decorator)."""
        self.add_hook('after_scenario', hook)
        return hook

    def before_step(self, hook: 'Hook') -> 'Hook':
        """Register a before-step hook (usable as a decorator)."""
        self.add_hook('before_step', hook)
        return hook

    def after_step(self, hook: 'Hook') -> 'Hook':
        """Register an after-step hook (usable as a decorator)."""
        self.add_hook('after_step', hook)
        return hook

    def discover(self) -> list['Feature']:
        """Load every document tree selected by `features_path`.

        A file that can not be loaded is recorded in `document_errors` and
        does not prevent loading the others.

        Returns:
            Loaded features in path order.
        """
        features = []

        for path in sorted(glob(self.settings.features_path, recursive=True)):  # noqa: PTH207
            try:
                features.append(self.document_loader.load_file(path))
            except DocumentError as error:
                self.document_errors.append(error)

        return features

    def run(self, host: 'HostRunner', features: 'Iterable[Feature] | None' = None) -> SuiteOutcome:
        """Run features through a host runner.

        Configuration errors abort the run through `host.fail` before any
        scenario starts.

        Args:
            host: Root reporting unit.
            features: Features to run; discovered from `features_path`
                when omitted.

        Returns:
            Suite outcome record.
        """
        try:
            self.check()

        except ConfigurationError as error:
            host.fail(f'{error}')
            return SuiteOutcome(errors=(f'{error}',))

        if self.settings.run_in_parallel:
            host.parallel()

        if features is None:
            features = self.discover()
            for error in self.document_errors:
                host.error(f'{error}')

        executor = self.executor()
        outcomes: list[FeatureOutcome] = [
            executor.run_feature(host, feature)
            for feature in features
        ]

        if any(outcome.failed for outcome in outcomes) and not host.failed:
            host.error('the suite has failed features')

        return SuiteOutcome(
            features=tuple(outcomes),
            errors=tuple(f'{error}' for error in self.document_errors),
        )
