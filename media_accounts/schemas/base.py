"""Shared schema configuration - camelCase on the wire."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

# Syntactic check only
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class CamelModel(BaseModel):
    """Base schema serialised with camelCase field names.

    Field names are accepted in either form on input.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
