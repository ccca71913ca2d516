"""
Base Schema Classes for request bodies.

Request bodies arrive camelCase from the board UI; attributes are snake_case.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseCreateSchema(BaseModel):
    """
    Base class for create/input schemas.

    Usage:
        class MoveToDoor(BaseCreateSchema):
            trailer_id: str     # "trailerId" in JSON
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        # Allow extra fields to be ignored (forward compatibility)
        extra='ignore',
    )


class BaseUpdateSchema(BaseCreateSchema):
    """
    Base class for update/patch schemas.

    All fields are optional; read them with model_dump(exclude_unset=True).
    """
