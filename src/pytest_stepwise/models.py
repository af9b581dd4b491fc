"""Base Pydantic models for documents, outcomes and settings.

This module defines the foundational model classes shared by the document
tree, step definitions, outcome records and runtime settings. It enforces
immutability and strict schema validation so that a parsed feature and a
registered step definition cannot change once the suite starts running.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SchemaModel(BaseModel):
    """Base immutable model for all engine elements.

    This class serves as the root for all Pydantic models representing
    documents (features, scenarios, steps), step definitions and
    declarative step libraries.

    Design principles enforced by this model:
        - Immutability: elements cannot be modified after creation.
          A step definition is looked up by value on every match and must
          never be rebound to another pattern or handler.
        - Strict schema validation: unknown or extra fields are rejected
          to avoid silent errors caused by typos in document trees.
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        frozen=True,
        extra='forbid',
    )


class DescribedMixin(SchemaModel):
    """Mixin providing element self-documentation.

    Extends the base schema model with the name and free-form description
    every Gherkin element may carry. The fields defined in this model do not
    affect execution semantics and are used for reporting only.
    """

    name: str = Field(
        default='',
        title='Name',
        description='Short human-readable name of the element.',
    )

    description: str = Field(
        default='',
        title='Description',
        description='Detailed human-readable description of the element.',
    )


class RecordModel(BaseModel):
    """Base model for outcome records.

    Outcome records are assembled while a suite runs and serialized by an
    external reporter afterwards. Field names follow the cucumber JSON
    layout so that a plain dump is already a usable report tree.
    """

    model_config = ConfigDict(
        frozen=True,
        extra='forbid',
        use_enum_values=False,
    )


class SettingsModel(BaseSettings):
    """Base immutable model for runtime settings.

    Settings are resolved once from keyword arguments and the environment
    and never change afterwards. Unrelated environment variables sharing
    the prefix are ignored.
    """

    model_config = SettingsConfigDict(
        frozen=True,
        extra='ignore',
    )
