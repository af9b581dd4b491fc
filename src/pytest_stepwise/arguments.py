"""Handler signature validation and argument coercion.

Step handlers are plain callables of arbitrary arity. Their first two
positional parameters receive the reporting handle and the execution
context; every further parameter receives one regular expression capture,
converted to the kind the parameter is annotated with.

The handler contract is checked once, at registration time, and captured
as a `HandlerSignature`. At run time the signature converts raw captures
into call arguments.
"""

from collections.abc import Mapping, MutableMapping
from enum import StrEnum
from inspect import Parameter, signature
from struct import pack, unpack
from typing import TYPE_CHECKING, Any, get_origin, get_type_hints

from pytest_stepwise.context import Context
from pytest_stepwise.errors import ArityError, CoercionError, StepDefinitionError
from pytest_stepwise.host import HostRunner, ReportingUnit, StepReporter
from pytest_stepwise.models import SchemaModel
from pytest_stepwise.names import INTEGER_PATTERN

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence


class Float32(float):
    """Float rounded to single (32-bit) precision.

    Annotate a handler parameter with `Float32` to receive captures with
    the precision of a C `float`.
    """

    def __new__(cls, value: Any = 0.0) -> 'Float32':  # noqa: ANN401
        """Round the value through a 32-bit float."""
        return super().__new__(cls, unpack('f', pack('f', float(value)))[0])


class ArgumentKind(StrEnum):
    """Closed set of argument kinds a capture can be converted to."""

    STRING = 'string'
    INTEGER = 'integer'
    FLOAT32 = 'float32'
    FLOAT64 = 'float64'
    BYTES = 'bytes'


#: Annotations accepted for capture parameters.
ANNOTATION_KINDS: dict[Any, ArgumentKind] = {
    Parameter.empty: ArgumentKind.STRING,
    Any: ArgumentKind.STRING,
    str: ArgumentKind.STRING,
    int: ArgumentKind.INTEGER,
    Float32: ArgumentKind.FLOAT32,
    float: ArgumentKind.FLOAT64,
    bytes: ArgumentKind.BYTES,
}

#: Known annotations by name, for annotations that can not be evaluated.
ANNOTATION_NAMES: dict[str, Any] = {
    annotation.__name__: annotation
    for annotation in (
        Any, str, int, Float32, float, bytes,
        StepReporter, HostRunner, ReportingUnit,
        Context, dict, Mapping, MutableMapping,
    )
}

#: Annotations accepted for the context parameter.
CONTEXT_ANNOTATIONS = (Parameter.empty, Any, Context, dict, Mapping, MutableMapping)

POSITIONAL = (Parameter.POSITIONAL_ONLY, Parameter.POSITIONAL_OR_KEYWORD)


def _resolve_annotation(annotation: Any) -> Any:  # noqa: ANN401
    """Map an annotation left as a string to the known type it names.

    Subscripted names map to their base type, so `'Mapping[str, Any]'`
    resolves to `Mapping`. Unknown names are returned unchanged.
    """
    if not isinstance(annotation, str):
        return annotation

    name = annotation.split('[', 1)[0].rsplit('.', 1)[-1].strip()
    return ANNOTATION_NAMES.get(name, annotation)


def _is_reporter_annotation(annotation: Any) -> bool:  # noqa: ANN401
    """Check whether an annotation accepts a reporting handle."""
    if annotation in (Parameter.empty, Any, StepReporter, HostRunner):
        return True

    return isinstance(annotation, type) and issubclass(ReportingUnit, annotation)


def _to_integer(value: str) -> int:
    """Convert a capture to an integer, accepting only decimal digits."""
    if not INTEGER_PATTERN.match(value.strip()):
        raise ValueError(f'invalid literal for int(): {value!r}')

    return int(value)


def coerce(value: str | bytes | None, kind: ArgumentKind, *, strict: bool = False) -> Any:  # noqa: ANN401
    """Convert a raw capture into an argument of the requested kind.

    Args:
        value: Raw capture; `None` stands for an unmatched optional group
            and is treated as an empty capture.
        kind: Requested argument kind.
        strict: Raise on numeric conversion failures instead of falling
            back to zero.

    Returns:
        The converted argument.

    Raises:
        CoercionError: If conversion fails in strict mode.
    """
    if value is None:
        value = ''

    if isinstance(value, bytes):
        raw, text = value, value.decode('utf-8', errors='replace')
    else:
        raw, text = value.encode('utf-8'), value

    if kind is ArgumentKind.STRING:
        return text
    if kind is ArgumentKind.BYTES:
        return raw

    try:
        if kind is ArgumentKind.INTEGER:
            return _to_integer(text)
        if kind is ArgumentKind.FLOAT32:
            return Float32(text)
        return float(text)

    except (ValueError, OverflowError) as base:
        if strict:
            raise CoercionError(f'Can not convert {text!r} to {kind}') from base

    if kind is ArgumentKind.INTEGER:
        return 0
    if kind is ArgumentKind.FLOAT32:
        return Float32(0.0)
    return 0.0


class HandlerSignature(SchemaModel):
    """Validated call contract of a step handler.

    Built once at registration; step definitions share it with every
    match of their pattern.
    """

    name: str
    kinds: tuple[ArgumentKind, ...]

    @property
    def arity(self) -> int:
        """Number of capture arguments the handler accepts."""
        return len(self.kinds)

    @classmethod
    def inspect(cls, handler: 'Callable[..., Any]') -> 'HandlerSignature':
        """Validate a handler against the step handler contract.

        Args:
            handler: Candidate step handler or hook.

        Returns:
            Signature describing the capture argument kinds.

        Raises:
            StepDefinitionError: If the handler does not satisfy the
                contract.
        """
        name = getattr(handler, '__qualname__', None) or repr(handler)

        if not callable(handler):
            raise StepDefinitionError(f'Step handler {name} is not callable')

        try:
            parameters = list(signature(handler).parameters.values())
        except (TypeError, ValueError) as base:
            raise StepDefinitionError(f'Step handler {name} has no signature') from base

        try:
            hints = get_type_hints(handler)
        except (NameError, AttributeError, TypeError):
            hints = {}

        positional = []
        for parameter in parameters:
            if parameter.kind in POSITIONAL:
                positional.append(parameter)
            elif parameter.kind is Parameter.VAR_POSITIONAL:
                raise StepDefinitionError(f'Step handler {name} must not accept *{parameter.name}')
            elif parameter.kind is Parameter.KEYWORD_ONLY and parameter.default is Parameter.empty:
                raise StepDefinitionError(
                    f'Step handler {name} has a required keyword-only parameter {parameter.name!r}',
                )

        if len(positional) < 2:  # noqa: PLR2004
            raise StepDefinitionError(
                f'Step handler {name} must accept a reporter and a context as first parameters',
            )

        reporter, context, *captures = positional
        reporter_annotation = _resolve_annotation(hints.get(reporter.name, reporter.annotation))
        if not _is_reporter_annotation(reporter_annotation):
            raise StepDefinitionError(
                f'First parameter {reporter.name!r} of step handler {name} must accept a reporter',
            )

        context_annotation = _resolve_annotation(hints.get(context.name, context.annotation))
        if (get_origin(context_annotation) or context_annotation) not in CONTEXT_ANNOTATIONS:
            raise StepDefinitionError(
                f'Second parameter {context.name!r} of step handler {name} must accept a context',
            )

        kinds = []
        for parameter in captures:
            annotation = _resolve_annotation(hints.get(parameter.name, parameter.annotation))
            if annotation not in ANNOTATION_KINDS:
                raise StepDefinitionError(
                    f'Parameter {parameter.name!r} of step handler {name} '
                    f'has unsupported type {annotation!r}',
                )
            kinds.append(ANNOTATION_KINDS[annotation])

        return cls(name=name, kinds=tuple(kinds))

    def coerce(self, captures: 'Sequence[str | bytes | None]', *,
               strict: bool = False) -> list[Any]:
        """Convert captures into handler call arguments.

        Args:
            captures: Captured groups of the matched pattern.
            strict: Fail on numeric conversion errors instead of falling
                back to zero.

        Returns:
            Positional arguments following the reporter and the context.

        Raises:
            ArityError: If the capture count differs from the handler arity.
            CoercionError: If a conversion fails in strict mode.
        """
        if len(captures) != self.arity:
            raise ArityError(
                f'The step handler {self.name} accepts {self.arity + 2} arguments '
                f'but {len(captures) + 2} received',
            )

        return [
            coerce(capture, kind, strict=strict)
            for capture, kind in zip(captures, self.kinds, strict=True)
        ]
