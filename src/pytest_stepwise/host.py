"""Host test-runner capabilities and the in-process reporting unit.

The engine does not own test scheduling. It drives a host runner that can:
- open a named, possibly nested reporting sub-unit whose failure does not
  abort sibling sub-units;
- signal pass, fail and skip, visible after a sub-unit completes;
- accept a declaration that a unit may run concurrently with its siblings;
- emit textual log and error lines.

`StepReporter` is the part of that capability handed to every hook and
step handler. `ReportingUnit` is the in-process implementation used by the
pytest integration.
"""

from collections.abc import Callable
from logging import getLogger
from os import linesep
from time import perf_counter
from traceback import format_exception
from typing import Protocol, runtime_checkable

logger = getLogger(__name__)

REPORT_INDENT = '    '


class UnitInterrupt(BaseException):  # noqa: N818
    """Base signal stopping the current reporting unit.

    Derived from `BaseException` (as pytest outcome exceptions are), so that
    handler code catching `Exception` cannot swallow a fail-now or skip-now
    request.
    """

    def __init__(self, unit: 'ReportingUnit', message: str = '') -> None:
        """Initialize the signal for the interrupted unit."""
        self.unit = unit
        self.message = message

        super().__init__(message)


class UnitFailed(UnitInterrupt):
    """Signal raised by `StepReporter.fail`."""


class UnitSkipped(UnitInterrupt):
    """Signal raised by `StepReporter.skip`."""


@runtime_checkable
class StepReporter(Protocol):
    """Reporting handle passed to hooks and step handlers."""

    @property
    def name(self) -> str:
        """Name of the reporting unit."""
        ...  # pragma: no cover

    @property
    def failed(self) -> bool:
        """Whether the unit has been marked failed."""
        ...  # pragma: no cover

    @property
    def skipped(self) -> bool:
        """Whether the unit has been skipped."""
        ...  # pragma: no cover

    @property
    def errors(self) -> list[str]:
        """Error lines recorded on the unit."""
        ...  # pragma: no cover

    def log(self, message: str, *args: object) -> None:
        """Record a log line."""
        ...  # pragma: no cover

    def error(self, message: str, *args: object) -> None:
        """Record an error line and mark the unit failed, then continue."""
        ...  # pragma: no cover

    def fail(self, message: str = '', *args: object) -> None:
        """Record an error line, mark the unit failed and stop it."""
        ...  # pragma: no cover

    def skip(self, message: str = '', *args: object) -> None:
        """Record a log line, mark the unit skipped and stop it."""
        ...  # pragma: no cover


@runtime_checkable
class HostRunner(StepReporter, Protocol):
    """Full host runner capability driven by the executor."""

    def run(self, name: str, body: 'Callable[[HostRunner], object]') -> bool:
        """Run a body inside a nested named sub-unit.

        The body runs to completion, including its own nested sub-units,
        before the call returns.

        Returns:
            True if the sub-unit did not fail.
        """
        ...  # pragma: no cover

    def parallel(self) -> None:
        """Declare that this unit may run concurrently with its siblings."""
        ...  # pragma: no cover


class ReportingUnit:
    """In-process reporting unit implementing `HostRunner`.

    Units form a tree. Failing a child marks every ancestor failed, but
    never a sibling: a failed scenario does not stop the next one.

    Messages are kept on the unit for reports and forwarded to the
    `pytest_stepwise.host` logger.
    """

    def __init__(self, name: str, parent: 'ReportingUnit | None' = None) -> None:
        """Initialize a reporting unit.

        Args:
            name: Display name of the unit.
            parent: Enclosing unit, if any.
        """
        self._name = name
        self.parent = parent

        self.children: list[ReportingUnit] = []
        self.messages: list[str] = []
        self._errors: list[str] = []

        self.concurrent = False
        self.finished = False

        self._failed = False
        self._skipped = False

        self.started_at = perf_counter()
        self.finished_at: float | None = None

    @property
    def name(self) -> str:
        """Name of the reporting unit."""
        return self._name

    @property
    def failed(self) -> bool:
        """Whether the unit (or any of its descendants) failed."""
        return self._failed

    @property
    def skipped(self) -> bool:
        """Whether the unit has been skipped."""
        return self._skipped

    @property
    def errors(self) -> list[str]:
        """Error lines recorded on the unit."""
        return self._errors

    @property
    def duration(self) -> float:
        """Elapsed time of the unit in seconds."""
        finished_at = self.finished_at if self.finished_at is not None else perf_counter()
        return finished_at - self.started_at

    @property
    def path(self) -> str:
        """Slash-separated names from the root unit."""
        if self.parent is None:
            return self._name

        return f'{self.parent.path}/{self._name}'

    def log(self, message: str, *args: object) -> None:
        """Record a log line."""
        text = message % args if args else message
        self.messages.append(text)

        logger.debug('%s: %s', self.path, text)

    def error(self, message: str, *args: object) -> None:
        """Record an error line and mark the unit failed, then continue."""
        text = message % args if args else message
        self.messages.append(text)
        self.mark_failed()
        self._errors.append(text)

        logger.error('%s: %s', self.path, text)

    def fail(self, message: str = '', *args: object) -> None:
        """Record an error line, mark the unit failed and stop it.

        Raises:
            UnitFailed: Always.
        """
        if message:
            self.error(message, *args)
        else:
            self.mark_failed()

        raise UnitFailed(self, message % args if args else message)

    def skip(self, message: str = '', *args: object) -> None:
        """Record a log line, mark the unit skipped and stop it.

        Raises:
            UnitSkipped: Always.
        """
        if message:
            self.log(message, *args)
        self._skipped = True

        raise UnitSkipped(self, message % args if args else message)

    def mark_failed(self) -> None:
        """Mark the unit and all of its ancestors failed."""
        unit: ReportingUnit | None = self
        while unit is not None:
            unit._failed = True  # noqa: SLF001
            unit = unit.parent

    def parallel(self) -> None:
        """Declare that this unit may run concurrently with its siblings."""
        self.concurrent = True
        self.log('running in parallel with sibling units')

    def run(self, name: str, body: 'Callable[[HostRunner], object]') -> bool:
        """Run a body inside a nested named sub-unit.

        Fail-now and skip-now signals of the sub-unit end the body. An
        unexpected exception escaping the body is recorded as an error of
        the sub-unit instead of propagating. A fail-now signal addressed to
        an enclosing unit keeps propagating.

        Args:
            name: Display name of the sub-unit.
            body: Callable receiving the sub-unit.

        Returns:
            True if the sub-unit did not fail.
        """
        child = type(self)(name, parent=self)
        self.children.append(child)

        try:
            body(child)

        except UnitInterrupt as signal:
            if signal.unit is not child:
                raise

        except Exception as error:  # noqa: BLE001
            child.error(''.join(format_exception(error)).rstrip())

        finally:
            child.finished = True
            child.finished_at = perf_counter()

        return not child.failed

    def status(self) -> str:
        """Return the final status word of the unit."""
        if self._skipped:
            return 'SKIP'

        if self._failed:
            return 'FAIL'

        return 'PASS'

    def report(self, depth: int = 0) -> str:
        """Render the unit tree as indented diagnostic text.

        Args:
            depth: Indentation level of this unit.

        Returns:
            One line per unit with its status and duration, followed by
            the unit messages.
        """
        indent = REPORT_INDENT * depth
        lines = [f'{indent}--- {self.status()}: {self._name} ({self.duration:.3f}s)']

        for message in self.messages:
            lines.extend(
                f'{indent}{REPORT_INDENT}{line}'
                for line in message.splitlines()
            )

        lines.extend(
            child.report(depth + 1)
            for child in self.children
        )

        return linesep.join(lines)
