"""Document model of parsed feature files.

Gherkin parsing is performed by an external parser. This module defines the
tree that parser is expected to produce (features, backgrounds, scenarios,
steps, tags and example tables) as immutable Pydantic models, plus the
default document source: a YAML serialization of that tree.
"""

from pathlib import Path
from re import sub
from typing import TYPE_CHECKING, Annotated, Any, Literal, Self

from pydantic import Field, ValidationError, field_validator, model_validator
from yaml import SafeLoader, load
from yaml.error import MarkedYAMLError

from pytest_stepwise.errors import DocumentError, ErrorContext
from pytest_stepwise.models import DescribedMixin, SchemaModel
from pytest_stepwise.names import TagName  # noqa: TC001

if TYPE_CHECKING:
    from io import TextIOBase


def slugify(value: str) -> str:
    """Build a stable identifier from a human-readable name."""
    return sub(r'[^a-z0-9]+', '-', value.lower()).strip('-')


def _cell(value: Any) -> Any:  # noqa: ANN401
    """Render a scalar table cell as text, as a Gherkin parser would."""
    if value is None:
        return ''

    if isinstance(value, (bool, int, float)):
        return f'{value}'.lower() if isinstance(value, bool) else f'{value}'

    return value


class Tag(SchemaModel):
    """Tag attached to a feature, scenario or examples block."""

    name: TagName
    line: int = Field(
        default=0,
        title='Source line',
    )


class Step(SchemaModel):
    """Single step of a background or scenario."""

    keyword: str = Field(
        title='Step keyword',
        description=(
            'Keyword as written in the source, including its trailing '
            'space, for example `Given `.'
        ),
    )

    text: str = Field(
        title='Step text',
        description=(
            'Literal step text. Inside an outline it may contain '
            '`<placeholder>` tokens naming examples header cells.'
        ),
    )

    line: int = Field(
        default=0,
        title='Source line',
    )

    @property
    def title(self) -> str:
        """Keyword and text, as displayed in reports."""
        return f'{self.keyword.strip()} {self.text}'


class Examples(DescribedMixin, SchemaModel):
    """Example table of a scenario outline."""

    keyword: str = 'Examples'
    line: int = 0
    tags: tuple[Tag, ...] = ()

    header: tuple[str, ...] = Field(
        default=(),
        title='Header row',
        description='Placeholder names, one per column.',
    )

    rows: tuple[tuple[str, ...], ...] = Field(
        default=(),
        title='Body rows',
        description='Literal cell values, one tuple per example.',
    )

    @field_validator('header', mode='before')
    @classmethod
    def stringify_header(cls, value: Any) -> Any:  # noqa: ANN401
        """Render scalar header cells read from YAML as text."""
        if isinstance(value, (list, tuple)):
            return tuple(_cell(item) for item in value)

        return value

    @field_validator('rows', mode='before')
    @classmethod
    def stringify_rows(cls, value: Any) -> Any:  # noqa: ANN401
        """Render scalar body cells read from YAML as text."""
        if isinstance(value, (list, tuple)):
            return tuple(
                tuple(_cell(item) for item in row) if isinstance(row, (list, tuple)) else row
                for row in value
            )

        return value

    @model_validator(mode='after')
    def check_rows_width(self) -> Self:
        """Check that every body row has the header width.

        Raises:
            ValueError: If a row is wider or narrower than the header.
        """
        for position, row in enumerate(self.rows):
            if len(row) != len(self.header):
                raise ValueError(
                    f'row {position} has {len(row)} cells, '
                    f'header has {len(self.header)}',
                )

        return self


class Background(DescribedMixin, SchemaModel):
    """Steps implicitly prefixed to every following scenario of a feature."""

    type: Literal['background'] = 'background'
    keyword: str = 'Background'
    line: int = 0
    steps: tuple[Step, ...] = ()


class Scenario(DescribedMixin, SchemaModel):
    """Scenario or scenario outline."""

    type: Literal['scenario'] = 'scenario'
    id: str = Field(
        default='',
        title='Scenario identity',
        description='Stable identifier; derived from the name when omitted.',
    )
    keyword: str = 'Scenario'
    line: int = 0
    tags: tuple[Tag, ...] = ()
    steps: tuple[Step, ...] = ()

    examples: tuple[Examples, ...] = Field(
        default=(),
        title='Examples',
        description='Example tables; a scenario with examples is an outline.',
    )

    @property
    def is_outline(self) -> bool:
        """Whether the scenario is expanded from example tables."""
        return bool(self.examples)

    @property
    def title(self) -> str:
        """Keyword and name, as displayed in reports."""
        return f'{self.keyword.strip()} {self.name}'.strip()

    @model_validator(mode='before')
    @classmethod
    def default_identity(cls, data: Any) -> Any:  # noqa: ANN401
        """Derive the identifier from the name when none is given."""
        if isinstance(data, dict) and not data.get('id'):
            name = data.get('name')
            identity = slugify(name) if isinstance(name, str) else ''
            data = {**data, 'id': identity or f'line-{data.get('line', 0)}'}

        return data


FeatureChild = Annotated[Background | Scenario, Field(discriminator='type')]


class Feature(DescribedMixin, SchemaModel):
    """Top-level document unit describing one capability."""

    uri: str = Field(
        default='',
        title='Source URI',
        description='Path of the source feature file.',
    )
    id: str = ''
    keyword: str = 'Feature'
    line: int = 0
    tags: tuple[Tag, ...] = ()
    children: tuple[FeatureChild, ...] = ()

    @property
    def title(self) -> str:
        """Keyword and name, as displayed in reports."""
        return f'{self.keyword.strip()} {self.name}'.strip()

    @property
    def scenarios(self) -> tuple[Scenario, ...]:
        """Scenario children in document order."""
        return tuple(
            child
            for child in self.children
            if isinstance(child, Scenario)
        )

    def walk(self) -> 'list[tuple[Scenario, Background | None]]':
        """Pair every scenario with the background that applies to it.

        A background applies to the scenarios that follow it.

        Returns:
            Scenarios in document order with their background.
        """
        background: Background | None = None
        pairs = []

        for child in self.children:
            if isinstance(child, Background):
                background = child
            else:
                pairs.append((child, background))

        return pairs

    @model_validator(mode='before')
    @classmethod
    def default_identity(cls, data: Any) -> Any:  # noqa: ANN401
        """Derive the identifier from the name or the source path."""
        if isinstance(data, dict) and not data.get('id'):
            source = data.get('name') or data.get('uri')
            data = {**data, 'id': slugify(source) if isinstance(source, str) else ''}

        return data


class DocumentLoader:
    """Default document source reading YAML feature trees.

    Each file holds a single mapping validated against `Feature`. The
    loader accepts any YAML loader class, `SafeLoader` by default.
    """

    def __init__(self, loader: type[SafeLoader] = SafeLoader) -> None:
        """Initialize the document loader.

        Args:
            loader: YAML loader class used to read documents.
        """
        self.loader = loader

    def load(self, content: 'TextIOBase | str', *, uri: str = '') -> Feature:
        """Load and validate a feature tree.

        Args:
            content: YAML content as a string or file-like object.
            uri: Source path recorded in the feature when absent.

        Returns:
            Validated feature document.

        Raises:
            DocumentError: If YAML parsing or validation fails.
        """
        try:
            document = load(content, Loader=self.loader)  # noqa: S506

        except MarkedYAMLError as base:
            raise DocumentError.from_yaml_error(base) from base

        except Exception as base:
            raise DocumentError('Unexpected error', context=ErrorContext(
                filename=uri or None,
                error=base,
            )) from base

        if isinstance(document, dict) and uri and not document.get('uri'):
            document = {**document, 'uri': uri}

        try:
            return Feature.model_validate(document)

        except ValidationError as base:
            raise DocumentError.from_pydantic_error(
                base,
                data=document,
                filename=uri or None,
            ) from base

    def load_file(self, path: Path | str) -> Feature:
        """Load a feature tree from a file.

        Args:
            path: Path of the document.

        Returns:
            Validated feature document.

        Raises:
            DocumentError: If the file can not be read or loaded.
        """
        path = Path(path)

        try:
            with path.open('rt', encoding='utf-8') as content:
                return self.load(content, uri=path.as_posix())

        except OSError as base:
            raise DocumentError(f'Can not open file {path}', context=ErrorContext(
                filename=path.as_posix(),
                error=base,
            )) from base
