"""
Base classes and identity helpers for the canonical catalog model.

This module contains the shared Pydantic configuration and the qualified-name
rules every entity relies on. The qualified-name format is the one serialized
contract of the engine: it must stay stable across versions so an unchanged
object keeps the same identity from one poll cycle to the next.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

logger = logging.getLogger(__name__)

# Reserved separator between the parts of a qualified name
SEPARATOR = "."

# Fixed path segment between the database and its tables
SCHEMA_SEGMENT = "schema"


# =============================================================================
# QUALIFIED NAMES
# =============================================================================

def join_qualified_name(*parts: str) -> str:
    """Join path parts into a qualified name with the reserved separator."""
    return SEPARATOR.join(parts)


def parent_of(qualified_name: str) -> Optional[str]:
    """Return the qualified name one level up, or None at the top."""
    head, sep, _ = qualified_name.rpartition(SEPARATOR)
    return head if sep else None


def is_within(qualified_name: str, ancestor: str) -> bool:
    """True if qualified_name is ancestor itself or lies beneath it."""
    return qualified_name == ancestor or qualified_name.startswith(ancestor + SEPARATOR)


# =============================================================================
# BASE CONFIGURATION
# =============================================================================

class BaseCatalogModel(BaseModel):
    """
    Base model for all catalog objects with common configuration.

    Canonical entities are values: once built they are never mutated, so the
    diff engine can read them from several threads at once.
    """

    model_config = ConfigDict(
        frozen=True,
        validate_default=True,  # Validate defaults once
        populate_by_name=True,  # Allow field population by name
        use_enum_values=False,  # Keep enums as enum objects
        json_schema_extra={
            "title": "Canonical Catalog Model",
            "description": "Base model for synchronized catalog metadata"
        }
    )


# =============================================================================
# SCOPE
# =============================================================================

class Scope(BaseCatalogModel):
    """
    One catalog + database pair tracked as an independent snapshot partition.

    The scope's base qualified name is the root of every entity it contains.
    """

    catalog: str = Field(..., min_length=1, description="Catalog name in the external source")
    database: str = Field(..., min_length=1, description="Database (schema) name in the external source")

    @field_validator('catalog', 'database')
    @classmethod
    def validate_no_separator(cls, v: str) -> str:
        """Scope parts become qualified-name segments and cannot contain the separator."""
        if SEPARATOR in v:
            raise ValueError(f"'{v}' must not contain the separator '{SEPARATOR}'")
        return v

    @property
    def base_qualified_name(self) -> str:
        """Qualified name of the database asset: catalog.database."""
        return join_qualified_name(self.catalog, self.database)

    @property
    def key(self) -> str:
        """Partition key used by snapshot stores."""
        return self.base_qualified_name

    def __str__(self) -> str:
        return self.key
