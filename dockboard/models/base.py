"""
Base classes for the JSON documents persisted by the dock board.

Attributes are snake_case in Python and camelCase on the wire, so documents
written by the service stay readable by the board UI.
"""
import uuid
from datetime import datetime, timezone
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def ensure_utc(value: datetime) -> datetime:
    """Naive timestamps are treated as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


Timestamp = Annotated[datetime, AfterValidator(ensure_utc)]


class DocumentModel(BaseModel):
    """
    Base class for stored documents.

    Usage:
        class Door(DocumentModel):
            trailer_id: Optional[str] = None   # "trailerId" in JSON
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=False,
        use_enum_values=False,
    )

    def to_document(self, **kwargs: Any) -> dict:
        """Dump using camelCase keys and JSON-safe values."""
        return self.model_dump(mode="json", by_alias=True, **kwargs)
