"""Step libraries discovery and loading infrastructure.

This module defines a mixin responsible for discovering, loading and
registering step libraries exposed via Python entry points.

Libraries are loaded one by one: individual failures do not interrupt the
loading process unless strict mode is enabled. Each library may contribute
parameter types, step definitions and hooks.
"""

from typing import TYPE_CHECKING
from warnings import warn

from pydantic import ValidationError

from pytest_stepwise.errors import ParameterTypeError, PluginError, PluginWarning
from pytest_stepwise.extensions import StepLibrary

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from importlib.metadata import EntryPoint
    from re import Pattern
    from typing import Any

    from pytest_stepwise.core.executor import Hook

#: Entry point group of step libraries.
ENTRYPOINT_GROUP = 'stepwise_libraries'


class LibrariesLoaderMixin:
    """Mixin loading step libraries into a suite.

    The mixin walks the entry points, validates what they expose and
    feeds every declaration to the `add_*` registration methods, which
    the suite implements.

    Attributes:
        strict_mode: Raise `PluginError` on library issues instead of
            warning and moving on to the next library.
    """

    strict_mode: bool = False

    libraries: dict[str, StepLibrary]

    add_parameter_type: 'Callable[[str, Iterable[str]], None]'
    add_step: 'Callable[[str, Callable[..., Any]], bool]'
    add_regex_step: 'Callable[[Pattern[str] | str, Callable[..., Any]], bool]'
    add_hook: 'Callable[[str, Hook], bool]'
    has_step: 'Callable[[str], bool]'

    def add_library(self, library: StepLibrary,
                    entrypoint: 'EntryPoint | None' = None) -> None:
        """Register every declaration of a step library.

        Parameter types are registered first, so library steps may use
        them. A step expression registered before by another library is
        reported as shadowing and is not registered again.

        Args:
            library: Declarative step library.
            entrypoint: Entry point from which the library was loaded,
                if applicable. Used for diagnostics and warnings.

        Raises:
            PluginError: If the library is invalid on strict mode.
        """
        module = entrypoint.value if entrypoint else library.name

        if library.name in self.libraries and (error := self.emit_plugin_issue(
            f'Library {library.name!r} from {module!r} is shadowing an existing',
            entrypoint,
        )):
            raise error

        self.libraries[library.name] = library

        for parameter_type in library.parameter_types:
            try:
                self.add_parameter_type(parameter_type.token, parameter_type.fragments)

            except ParameterTypeError as base:
                if error := self.emit_plugin_issue(
                    f'Parameter type {parameter_type.token!r} from {module!r} is invalid',
                    entrypoint,
                ):
                    raise error from base

        for declaration in library.steps:
            expression = declaration.source
            if self.has_step(expression) and (error := self.emit_plugin_issue(
                f'Step {expression!r} from {module!r} is shadowing an existing',
                entrypoint,
            )):
                raise error

            if declaration.pattern is not None:
                self.add_regex_step(declaration.pattern, declaration.handler)
            elif declaration.expression is not None:
                self.add_step(declaration.expression, declaration.handler)

        for scope, hooks in library.hooks():
            for hook in hooks:
                self.add_hook(scope, hook)

    def emit_plugin_issue(self, message: str,
                          entrypoint: 'EntryPoint | None' = None) -> Exception | None:
        """Report a library issue.

        Args:
            message: Issue description.
            entrypoint: Entry point the library came from, if any.

        Returns:
            The `PluginError` to raise in strict mode. Otherwise a
            `PluginWarning` is emitted and `None` is returned.
        """
        if self.strict_mode:
            return PluginError(message, entrypoint=entrypoint)

        warn(message, category=PluginWarning, stacklevel=2)

        return None

    def _load_library(self, entrypoint: 'EntryPoint') -> None:
        """Load and register a single library entry point.

        Args:
            entrypoint: Entry point describing the library to load.

        Raises:
            PluginError: If any loading issues occur on strict mode.
        """
        try:
            library = entrypoint.load()

        except ValidationError as base:
            if error := self.emit_plugin_issue(
                f'Failed to validate entrypoint {entrypoint.name!r}',
                entrypoint,
            ):
                raise error from base
            return

        except Exception as base:
            if error := self.emit_plugin_issue(
                f'Failed to load entrypoint {entrypoint.name!r}',
                entrypoint,
            ):
                raise error from base
            return

        if not isinstance(library, StepLibrary):
            if error := self.emit_plugin_issue(
                f'Loaded from entrypoint {entrypoint.name!r} object is not a step library',
                entrypoint,
            ):
                raise error
            return

        self.add_library(library, entrypoint)

    def load_libraries(self) -> None:
        """Load step libraries via entry points and register them.

        Discovers libraries from the `stepwise_libraries` entry point group.

        Raises:
            PluginError: If any loading issues occur on strict mode.
        """
        from importlib.metadata import entry_points  # noqa: PLC0415

        for entrypoint in entry_points().select(group=ENTRYPOINT_GROUP):
            self._load_library(entrypoint)
