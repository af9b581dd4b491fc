"""Tests for handler signatures and argument coercion."""

from collections.abc import Mapping
from typing import Any

import pytest

from pytest_stepwise.arguments import ArgumentKind, Float32, HandlerSignature, coerce
from pytest_stepwise.context import Context
from pytest_stepwise.errors import ArityError, CoercionError, StepDefinitionError
from pytest_stepwise.host import ReportingUnit, StepReporter


@pytest.mark.parametrize('value, kind, expected', (
    pytest.param('42', ArgumentKind.INTEGER, 42, id='integer'),
    pytest.param('-7', ArgumentKind.INTEGER, -7, id='signed integer'),
    pytest.param('2.5', ArgumentKind.FLOAT64, 2.5, id='float64'),
    pytest.param('text', ArgumentKind.STRING, 'text', id='string'),
    pytest.param('text', ArgumentKind.BYTES, b'text', id='bytes'),
    pytest.param(b'raw', ArgumentKind.STRING, 'raw', id='bytes as string'),
    pytest.param(None, ArgumentKind.STRING, '', id='unmatched group'),
))
def test_coerce(value: str | bytes | None, kind: ArgumentKind, expected: Any) -> None:  # noqa: ANN401
    """Convert captures to the requested kinds."""
    assert coerce(value, kind) == expected


def test_coerce_float32_precision() -> None:
    """Round 32-bit floats to single precision."""
    value = coerce('0.1', ArgumentKind.FLOAT32)

    assert isinstance(value, Float32)
    assert value != 0.1
    assert value == pytest.approx(0.1, rel=1e-7)


@pytest.mark.parametrize('value, kind, expected', (
    pytest.param('abc', ArgumentKind.INTEGER, 0, id='integer'),
    pytest.param('1.5', ArgumentKind.INTEGER, 0, id='float as integer'),
    pytest.param('abc', ArgumentKind.FLOAT64, 0.0, id='float64'),
    pytest.param('', ArgumentKind.FLOAT32, 0.0, id='float32'),
    pytest.param(None, ArgumentKind.INTEGER, 0, id='unmatched group'),
))
def test_coerce_lenient_falls_back_to_zero(value: str | None, kind: ArgumentKind,
                                           expected: Any) -> None:  # noqa: ANN401
    """Pass the zero value on conversion failures in lenient mode."""
    assert coerce(value, kind) == expected


@pytest.mark.parametrize('value, kind', (
    pytest.param('abc', ArgumentKind.INTEGER, id='integer'),
    pytest.param('abc', ArgumentKind.FLOAT64, id='float64'),
    pytest.param('', ArgumentKind.FLOAT32, id='float32'),
))
def test_coerce_strict_raises(value: str, kind: ArgumentKind) -> None:
    """Fail conversion in strict mode."""
    with pytest.raises(CoercionError, match=r'^Can not convert'):
        coerce(value, kind, strict=True)


def typed(reporter: StepReporter, context: Context,  # noqa: ARG001
          count: int, ratio: float, precise: Float32, name: str, raw: bytes, other) -> None:  # noqa: ANN001, ARG001
    """Handler with every supported capture type."""


def test_inspect_kinds() -> None:
    """Derive argument kinds from annotations."""
    signature = HandlerSignature.inspect(typed)

    assert signature.arity == 6
    assert signature.kinds == (
        ArgumentKind.INTEGER,
        ArgumentKind.FLOAT64,
        ArgumentKind.FLOAT32,
        ArgumentKind.STRING,
        ArgumentKind.BYTES,
        ArgumentKind.STRING,
    )


def test_coerce_captures() -> None:
    """Convert captures into handler arguments."""
    signature = HandlerSignature.inspect(typed)

    assert signature.coerce(['3', '1.5', '2', 'x', 'y', 'z']) == [3, 1.5, 2.0, 'x', b'y', 'z']


def test_coerce_arity_mismatch() -> None:
    """Fail when captures and parameters differ in count."""
    signature = HandlerSignature.inspect(typed)

    with pytest.raises(ArityError, match=r'accepts 8 arguments but 3 received'):
        signature.coerce(['3'])


def mapping_context(reporter: ReportingUnit, context: Mapping[str, Any]) -> None:  # noqa: ARG001
    """Handler accepting a read-only context."""


def any_context(reporter: Any, context: dict) -> None:  # noqa: ANN401, ARG001
    """Handler accepting plain mappings."""


def with_defaults(reporter, context, value: int, *, flag: bool = False) -> None:  # noqa: ANN001, ARG001
    """Handler with an optional keyword-only parameter."""


@pytest.mark.parametrize('handler, arity', (
    pytest.param(mapping_context, 0, id='mapping context'),
    pytest.param(any_context, 0, id='dict context'),
    pytest.param(with_defaults, 1, id='keyword defaults'),
    pytest.param(lambda reporter, context, value: None, 1, id='lambda'),  # noqa: ARG005
))
def test_inspect_accepts(handler: Any, arity: int) -> None:  # noqa: ANN401
    """Accept handlers satisfying the contract."""
    assert HandlerSignature.inspect(handler).arity == arity


def wrong_reporter(reporter: int, context) -> None:  # noqa: ANN001, ARG001
    """Handler with a wrong reporter type."""


def wrong_context(reporter, context: list) -> None:  # noqa: ANN001, ARG001
    """Handler with a wrong context type."""


def variadic(reporter, context, *values: str) -> None:  # noqa: ANN001, ARG001
    """Handler accepting any number of captures."""


def keyword_required(reporter, context, *, value: str) -> None:  # noqa: ANN001, ARG001
    """Handler with a required keyword-only parameter."""


@pytest.mark.parametrize('handler, message', (
    pytest.param(wrong_reporter, r'must accept a reporter$', id='reporter'),
    pytest.param(wrong_context, r'must accept a context$', id='context'),
    pytest.param(variadic, r'must not accept \*values$', id='variadic'),
    pytest.param(keyword_required, r'required keyword-only parameter', id='keyword-only'),
    pytest.param(lambda: None, r'must accept a reporter and a context', id='no parameters'),
))
def test_inspect_rejects(handler: Any, message: str) -> None:  # noqa: ANN401
    """Reject handlers violating the contract."""
    with pytest.raises(StepDefinitionError, match=message):
        HandlerSignature.inspect(handler)


def test_inspect_quoted_annotations() -> None:
    """Resolve quoted annotations naming types unknown at runtime."""
    def handler(reporter: 'host.StepReporter', context: 'Mapping[str, Any]',  # noqa: F821
                count: 'int') -> None:  # noqa: ARG001
        """Annotated with names imported only for type checking."""

    signature = HandlerSignature.inspect(handler)

    assert signature.kinds == (ArgumentKind.INTEGER,)
