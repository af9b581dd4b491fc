"""Tests for the in-process reporting unit."""

import logging

import pytest

from pytest_stepwise.host import HostRunner, ReportingUnit, StepReporter, UnitFailed, UnitSkipped


def test_protocols(root: ReportingUnit) -> None:
    """Implement the host runner and reporter capabilities."""
    assert isinstance(root, HostRunner)
    assert isinstance(root, StepReporter)


def test_run_passes(root: ReportingUnit) -> None:
    """Run a body in a nested unit."""
    seen: list[str] = []

    assert root.run('child', lambda unit: seen.append(unit.path))
    assert seen == ['root/child']
    assert root.children[0].finished
    assert root.status() == 'PASS'


def test_fail_stops_only_its_unit(root: ReportingUnit) -> None:
    """Stop a failed unit and keep running its siblings."""
    reached: list[str] = []

    def failing(unit: ReportingUnit) -> None:
        unit.fail('broken %s', 'pipe')
        reached.append('failing')

    assert not root.run('first', failing)
    assert root.run('second', lambda unit: reached.append('second'))

    first, second = root.children
    assert reached == ['second']
    assert first.errors == ['broken pipe']
    assert first.failed
    assert not second.failed
    assert root.failed


def test_error_continues(root: ReportingUnit) -> None:
    """Record errors and keep running the body."""
    reached: list[str] = []

    def body(unit: ReportingUnit) -> None:
        unit.error('first')
        unit.error('second')
        reached.append('end')

    assert not root.run('child', body)
    assert reached == ['end']
    assert root.children[0].errors == ['first', 'second']


def test_skip(root: ReportingUnit) -> None:
    """Stop a skipped unit without failing it."""
    assert root.run('child', lambda unit: unit.skip('later'))

    [child] = root.children
    assert child.skipped
    assert not child.failed
    assert child.messages == ['later']
    assert child.status() == 'SKIP'


def test_unexpected_exception_fails_unit(root: ReportingUnit) -> None:
    """Record exceptions escaping a body as unit errors."""
    def body(unit: ReportingUnit) -> None:  # noqa: ARG001
        raise ZeroDivisionError('division by zero')

    assert not root.run('child', body)
    assert 'ZeroDivisionError: division by zero' in root.children[0].errors[0]


def test_signal_for_enclosing_unit_propagates(root: ReportingUnit) -> None:
    """Let fail-now signals of outer units leave inner units."""
    def outer(unit: ReportingUnit) -> None:
        unit.run('inner', lambda inner: unit.fail('outer failure'))

    assert not root.run('outer', outer)

    [outer_unit] = root.children
    [inner_unit] = outer_unit.children
    assert outer_unit.errors == ['outer failure']
    assert inner_unit.finished
    assert not inner_unit.failed


@pytest.mark.parametrize('signal, method', (
    pytest.param(UnitFailed, 'fail', id='fail'),
    pytest.param(UnitSkipped, 'skip', id='skip'),
))
def test_signals_escape_exception_handlers(root: ReportingUnit,
                                           signal: type[BaseException], method: str) -> None:
    """Raise signals that `except Exception` does not catch."""
    with pytest.raises(signal):
        try:
            getattr(root, method)('stop')
        except Exception:  # noqa: BLE001
            pytest.fail('signal caught as an exception')


def test_log_forwards_to_logger(root: ReportingUnit, caplog: pytest.LogCaptureFixture) -> None:
    """Forward unit messages to the module logger."""
    with caplog.at_level(logging.DEBUG, logger='pytest_stepwise.host'):
        root.run('child', lambda unit: unit.log('hello %d', 42))

    assert root.children[0].messages == ['hello 42']
    assert 'root/child: hello 42' in caplog.messages


def test_parallel(root: ReportingUnit) -> None:
    """Mark a unit as concurrent."""
    root.parallel()

    assert root.concurrent
    assert not root.failed


def test_report(root: ReportingUnit) -> None:
    """Render the unit tree with statuses and messages."""
    root.run('passing', lambda unit: unit.log('all good'))
    root.run('failing', lambda unit: unit.fail('first line\nsecond line'))

    lines = root.report().splitlines()

    assert lines[0].startswith('--- FAIL: root (')
    assert lines[1].startswith('    --- PASS: passing (')
    assert lines[2] == '        all good'
    assert lines[3].startswith('    --- FAIL: failing (')
    assert lines[4:] == ['        first line', '        second line']


def test_duration(root: ReportingUnit) -> None:
    """Measure a finished unit."""
    root.run('child', lambda unit: None)  # noqa: ARG005

    [child] = root.children
    assert child.finished_at is not None
    assert child.duration >= 0
