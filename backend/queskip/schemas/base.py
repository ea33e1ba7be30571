"""Shared schema configuration: camelCase on the wire, snake_case in Python."""

import uuid

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_json(self) -> dict:
        """Serialize with wire (camelCase) field names."""
        return self.model_dump(by_alias=True, mode="json")


def uuid_string(value: str, message: str) -> str:
    """Normalize a UUID string, raising ValueError(message) when malformed."""
    try:
        return str(uuid.UUID(value))
    except ValueError:
        raise ValueError(message)
