"""Exception hierarchy of the engine.

Every engine error may carry an `ErrorContext`: the feature file and line
it refers to, the scenario and step being run, and either the document
fragment or the execution context values involved. `ErrorFormatter`
renders that context under the message as a location line followed by a
YAML snippet, so a failure reads the same whether it comes from a broken
document, a malformed step definition or a failing handler.
"""

from collections.abc import Hashable
from os import linesep
from typing import TYPE_CHECKING, Any, TypedDict

from yaml import dump
from yaml.error import MarkedYAMLError

if TYPE_CHECKING:
    from collections.abc import Iterable
    from importlib.metadata import EntryPoint
    from typing import Self

    from pydantic_core import ValidationError

#: Marker opening a YAML snippet.
SNIPPET_START = f' ...{linesep}'
#: Marker between the context values and the element of a snippet.
SNIPPET_BREAK = f' ---{linesep}'
SNIPPET_INDENT = 2

#: Placeholder for values that can not be rendered as YAML.
OPAQUE_VALUE = '<runtime object>'
UNKNOWN_SOURCE = '<unknown source>'
FORMAT_INDENT = 4

PLAIN_TYPES = (str, bytes, int, float, bool)


class ErrorContext(TypedDict, total=False):
    """Where and on what an error happened.

    Every key is optional: document errors know a file and a line, step
    failures know a scenario, a step and the context values.
    """

    #: Feature file the error refers to.
    filename: str | None
    #: One-based source line.
    line_num: int | None
    #: One-based source column.
    column_num: int | None

    #: Name of the running scenario.
    scenario: str | None
    #: Keyword and text of the running step.
    step: str | None

    #: Exception the error was raised from.
    error: Exception | None

    #: Execution context values at failure time.
    context: dict[Hashable, Any] | None
    #: Document fragment or definition the error is about.
    element: Any


class ErrorFormatter:
    """Renderer of error messages with their context."""

    @classmethod
    def render(cls, message: str, context: ErrorContext | None = None) -> str:
        """Append the location and the snippet of a context to a message.

        Args:
            message: Error message.
            context: Error context, if any.

        Returns:
            The message alone without context, otherwise the message
            followed by the indented location and snippet lines.
        """
        if not context:
            return message

        text = f'{message}{linesep}'
        text += cls.location(context, ' ' * FORMAT_INDENT)
        text += cls.snippet(context, ' ' * FORMAT_INDENT * 2)

        return text.rstrip()

    @classmethod
    def location(cls, context: ErrorContext, indent: str = '') -> str:
        """Render the source position and the running scenario and step."""
        position = f'in "{context.get('filename') or UNKNOWN_SOURCE}"'

        if (line_num := context.get('line_num')) is not None:
            position += f', line {line_num}'
            if (column_num := context.get('column_num')) is not None:
                position += f', column {column_num}'

        lines = [position]

        if scenario := context.get('scenario'):
            running = f'on scenario "{scenario}"'
            if step := context.get('step'):
                running += f', step "{step}"'
            lines.append(running)

        return ''.join(f'{indent}{line}{linesep}' for line in lines)

    @classmethod
    def snippet(cls, context: ErrorContext, indent: str = '') -> str:
        """Render the YAML snippet of a context.

        YAML parser errors show the marked source lines. Other errors show
        the execution context values and the element they are about.
        """
        error = context.get('error')
        if isinstance(error, MarkedYAMLError):
            if error.problem_mark is None:
                return ''
            return cls.indented(error.problem_mark.get_snippet(indent=0) or '', indent)

        element = context.get('element')
        values = context.get('context')
        if not element and not values:
            return ''

        parts = []
        if values:
            parts.append(cls.to_yaml({'context': dict(values)}, indent))
        if element:
            parts.append(cls.to_yaml(element, indent))

        separator = f'{linesep}{indent}{SNIPPET_BREAK}'
        return f'{indent}{SNIPPET_START}{separator.join(parts)}{linesep}'

    @classmethod
    def sanitize(cls, value: Any) -> Any:  # noqa: ANN401
        """Reduce a value to plain data that YAML can dump.

        Context keys may be any hashable, so non-plain keys are rendered
        with `repr`. Values of other types become a placeholder.
        """
        if value is None or isinstance(value, PLAIN_TYPES):
            return value

        if isinstance(value, dict):
            return {
                key if isinstance(key, PLAIN_TYPES) else repr(key): cls.sanitize(item)
                for key, item in value.items()
            }

        if isinstance(value, (list, tuple, set, frozenset)):
            return [cls.sanitize(item) for item in value]

        return OPAQUE_VALUE

    @classmethod
    def to_yaml(cls, value: Any, indent: str = '') -> str:  # noqa: ANN401
        """Dump a value as indented block YAML."""
        text = dump(
            cls.sanitize(value),
            indent=SNIPPET_INDENT,
            sort_keys=False,
            allow_unicode=True,
        )

        return cls.indented(text, indent)

    @staticmethod
    def indented(text: str, indent: str) -> str:
        """Indent the non-blank lines of a text."""
        if not indent:
            return text

        return linesep.join(
            f'{indent}{line}'
            for line in text.splitlines()
            if line.strip()
        )


class PluginWarning(UserWarning):
    """Step library issue reported in relaxed mode."""


class StepwiseError(Exception, ErrorFormatter):
    """Base class of every pytest-stepwise error."""

    def __init__(self, message: str, *,
                 context: ErrorContext | None = None) -> None:
        """Initialize an error.

        Args:
            message: Error message.
            context: Where and on what the error happened.
        """
        self.message = message
        self.context = context

        super().__init__(message)

    def __str__(self) -> str:
        """Message rendered with its context."""
        return self.render(self.message, self.context)


class PluginError(StepwiseError):
    """Step library issue reported in strict mode.

    Raised for entry points that do not load or do not expose a step
    library, and for libraries shadowing already registered names.
    """

    def __init__(self, message: str, *,
                 entrypoint: 'EntryPoint | None' = None) -> None:
        """Initialize a library error.

        Args:
            message: Error message.
            entrypoint: Entry point the library was loaded from, if any.
        """
        self.entrypoint = entrypoint

        super().__init__(message)


class ConfigurationError(StepwiseError):
    """Error raised when the suite configuration is unusable.

    Configuration errors are fatal to suite setup: once one is raised
    no scenario of the suite is executed.
    """

    def __init__(self, message: str, *,
                 errors: 'Iterable[StepwiseError]' = (),
                 context: ErrorContext | None = None) -> None:
        """Initialize a configuration error.

        Args:
            message: Error message.
            errors: Errors collected while registering definitions.
            context: Where and on what the error happened.
        """
        self.errors = tuple(errors)

        super().__init__(message, context=context)

    def __str__(self) -> str:
        """String representation with every collected error."""
        message = super().__str__()

        for error in self.errors:
            details = f'{error}'.replace(linesep, f'{linesep}{' ' * FORMAT_INDENT}')
            message += f'{linesep}{' ' * FORMAT_INDENT}- {details}'

        return message


class ParameterTypeError(ConfigurationError):
    """Error raised when a parameter-type fragment does not compile.

    Raised immediately on registration: a broken parameter type corrupts
    every step expression using it.
    """


class StepDefinitionError(ConfigurationError):
    """Error raised for a malformed step handler or step pattern.

    Step definition errors are collected by the registry and reported
    together when the suite starts.
    """

    @classmethod
    def from_expression(cls, message: str, expression: str, *,
                        error: Exception | None = None) -> 'Self':
        """Create an error describing a rejected step expression.

        Args:
            message: Human-readable error message.
            expression: Step expression that was being registered.
            error: Optional underlying exception.

        Returns:
            StepDefinitionError with the expression as snippet element.
        """
        if error is not None:
            message += f': {error}'

        return cls(message, context=ErrorContext(
            error=error,
            element={'step': expression},
        ))


class DocumentError(StepwiseError):
    """Error raised when a document tree cannot be loaded.

    The document tree is produced by an external parser. This error
    covers unreadable files, malformed YAML and trees that violate the
    document model.
    """

    @classmethod
    def from_yaml_error(cls, error: MarkedYAMLError) -> 'Self':
        """Create a document error from a YAML parsing failure.

        Args:
            error: Exception raised by the YAML parser.

        Returns:
            DocumentError representing the YAML parsing failure.
        """
        error_context = ErrorContext(error=error)
        if (mark := error.problem_mark) is not None:
            error_context.update(
                filename=mark.name,
                line_num=mark.line + 1,
                column_num=mark.column + 1,
            )

        message = 'Invalid YAML'
        if error.problem:
            message += f'{linesep}{' ' * FORMAT_INDENT}{error.problem}'

        return cls(message, context=error_context)

    @classmethod
    def from_pydantic_error(cls, error: 'ValidationError', *,
                            data: Any = None,  # noqa: ANN401
                            filename: str | None = None) -> 'Self':
        """Create a document error from a Pydantic validation failure.

        The first validation issue is reported together with the
        smallest fragment of the tree that contains it, and the source
        line of that fragment when the tree carries one.

        Args:
            error: ValidationError raised by Pydantic.
            data: Raw document tree.
            filename: Name of the source file where the error occurred.

        Returns:
            DocumentError representing the validation failure.
        """
        error_context = ErrorContext(
            filename=filename,
            error=error,
        )

        if not isinstance(data, dict):
            return cls('Document must be a mapping', context=error_context)

        for item in error.errors(include_url=False, include_input=False):
            fragment, line_num = cls._locate_fragment(data, item['loc'])
            message = item.get('msg') or 'Validation error'
            location = '.'.join(f'{key}' for key in item['loc'])
            if location:
                message = f'{message} at "{location}"'
            return cls(message, context=ErrorContext({
                **error_context,
                'line_num': line_num,
                'element': fragment,
            }))

        return cls('Validation error', context=error_context)

    @staticmethod
    def _locate_fragment(value: Any,  # noqa: ANN401
                         location: tuple[int | str, ...]) -> tuple[Any, int | None]:
        """Walk the validation location path in the raw tree.

        Args:
            value: Root data structure being validated.
            location: Pydantic error location path.

        Returns:
            The deepest mapping reached and the last `line` value seen
            on the way, if any.
        """
        fragment = value
        line_num = value.get('line') if isinstance(value, dict) else None

        for key in location:
            if isinstance(value, (list, tuple)) and isinstance(key, int) and 0 <= key < len(value):
                value = value[key]
            elif isinstance(value, dict) and key in value:
                value = value[key]
            else:
                break

            if isinstance(value, dict):
                fragment = value
                if isinstance(value.get('line'), int):
                    line_num = value['line']

        return fragment, line_num


class StepNotFoundError(StepwiseError):
    """Error raised when no step definition matches a step text."""


class CoercionError(StepwiseError):
    """Error raised when a capture cannot convert to a handler argument.

    Only raised in strict coercion mode; lenient mode falls back to the
    numeric zero value.
    """


class ArityError(StepwiseError):
    """Error raised when captures and handler arguments differ in count."""


class ContextError(StepwiseError, KeyError):
    """Error raised by typed execution context lookups."""

    def __str__(self) -> str:
        """String representation (bypasses `KeyError` quoting)."""
        return StepwiseError.__str__(self)


class StepRuntimeError(StepwiseError):
    """Error raised during step or hook execution.

    Wraps any exception escaping a step handler or hook together with the
    scenario, step and execution context values at failure time.
    """

    @classmethod
    def from_exception(cls, error: BaseException, *,  # noqa: PLR0913
                       filename: str | None = None,
                       line_num: int | None = None,
                       scenario: str | None = None,
                       step: str | None = None,
                       context: dict[Hashable, Any] | None = None) -> 'Self':
        """Create a runtime error from an exception raised by user code.

        Args:
            error: Exception raised by a handler or hook.
            filename: Source file of the feature.
            line_num: Source line of the step.
            scenario: Scenario name.
            step: Step keyword and text.
            context: Execution context at failure time.

        Returns:
            StepRuntimeError describing the failure.
        """
        error_context = ErrorContext(
            filename=filename,
            line_num=line_num,
            scenario=scenario,
            step=step,
            context=context,
        )

        if isinstance(error, AssertionError):
            message = 'Assertion failed'
            if f'{error}':
                message += f'{linesep}{' ' * FORMAT_INDENT}{error}'
        else:
            message = f'Runtime error{linesep}{' ' * FORMAT_INDENT}{error!r}'

        return cls(message, context=error_context)


class ScenarioFailure(StepwiseError):
    """Error raised by the pytest item when a scenario failed.

    The message carries the rendered report of the scenario's reporting
    unit tree.
    """
