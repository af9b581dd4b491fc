"""Name primitive types and validation rules.

This module defines the patterns and strongly-typed aliases used by the
engine to validate tag names, parameter-type tokens and outline
placeholders.

The rules defined here are part of the public contract and are relied upon
by document loaders, step libraries and suite settings.
"""

from re import ASCII
from re import compile as regexp
from typing import Annotated

from pydantic import Field

#: Base pattern for tag names: a `@` marker followed by non-space characters.
_TAG_PATTERN = r'@\S+'

#: Compiled pattern for tag names.
TAG_PATTERN = regexp(rf'^{_TAG_PATTERN}$')

#: Base pattern for parameter-type tokens, for example `{int}` or `{color}`.
_TOKEN_PATTERN = r'\{[a-zA-Z][\w]*\}'

#: Compiled pattern for outline placeholders such as `<count>`.
PLACEHOLDER_PATTERN = regexp(r'<(?P<name>[^<>]+)>')

#: Compiled pattern for signed decimal integer captures.
INTEGER_PATTERN = regexp(r'^[-+]?\d+$', flags=ASCII)

#: Compiled pattern for digit-only example cells.
DIGITS_PATTERN = regexp(r'^\d+$', flags=ASCII)

#: Compiled pattern for signed decimal example cells.
DECIMAL_PATTERN = regexp(r'^[+-]?(?:\d*\.)?\d+$', flags=ASCII)


TagName = Annotated[
    str, Field(
        pattern=rf'^{_TAG_PATTERN}$',
        title='Tag name',
        description=(
            'Name of a tag attached to a feature, scenario or examples block. '
            'Tags are written with a leading `@` marker.'
        ),
        examples=[
            '@slow',
            '@wip',
        ],
    ),
]

Token = Annotated[
    str, Field(
        pattern=rf'^{_TOKEN_PATTERN}$',
        title='Parameter-type token',
        description=(
            'Symbolic placeholder used inside step expressions, replaced '
            'by one of its regular expression fragments on registration.'
        ),
        examples=[
            '{int}',
            '{text}',
        ],
    ),
]


def placeholder(name: str) -> str:
    """Render an outline placeholder for an examples header cell."""
    return f'<{name}>'
