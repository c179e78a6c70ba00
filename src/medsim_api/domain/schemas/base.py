from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

SCHEMA_CONFIG = ConfigDict(
    frozen=True,
    from_attributes=True,
    populate_by_name=True,
    extra="ignore",
)

CAMEL_SCHEMA_CONFIG = ConfigDict(
    frozen=True,
    from_attributes=True,
    populate_by_name=True,
    extra="ignore",
    alias_generator=to_camel,
)


class BaseSchema(BaseModel):
    """Base schema with shared configuration."""

    model_config = SCHEMA_CONFIG


class CamelSchema(BaseModel):
    """Schema whose wire format uses the provider's camelCase keys."""

    model_config = CAMEL_SCHEMA_CONFIG


__all__ = ["BaseSchema", "CAMEL_SCHEMA_CONFIG", "CamelSchema", "SCHEMA_CONFIG"]
