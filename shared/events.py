"""
Domain events exchanged between the employees and notifications services.

Wire format is a JSON object with exactly the fields of DomainEvent.

Identifiers: ``event_id`` is ``<event_type>:<record_id>:<uuid4 hex>``. The
random 128-bit suffix makes it unique; the prefix is for humans and must not be
parsed.
"""

import json
from datetime import datetime
from typing import Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from shared.errors import DecodeError

EMPLOYEE_CREATED = "employee.created"


def new_event_id(event_type: str, record_id: int) -> str:
    """Generate a collision-resistant event identifier."""
    return f"{event_type}:{record_id}:{uuid4().hex}"


class DomainEvent(BaseModel):
    """Immutable record of a committed write."""

    model_config = ConfigDict(frozen=True)

    event_type: str = Field(..., description="Routing key, e.g. employee.created")
    event_id: str = Field(..., description="Unique event identifier")
    record_id: int
    record_name: str
    record_email: str
    department: str
    timestamp: datetime = Field(default_factory=datetime.now, description="Emission time")
    source_service: str

    @classmethod
    def employee_created(cls, record, source_service: str = "user-service") -> "DomainEvent":
        """Build the event published after an employee insert."""
        return cls(
            event_type=EMPLOYEE_CREATED,
            event_id=new_event_id(EMPLOYEE_CREATED, record.id),
            record_id=record.id,
            record_name=record.name,
            record_email=record.email,
            department=record.department,
            source_service=source_service,
        )

    def to_wire(self) -> str:
        return self.model_dump_json()


def decode_event(raw: Union[str, bytes]) -> DomainEvent:
    """Decode a wire payload, raising DecodeError on anything malformed."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise DecodeError("Event payload is not JSON", {"error": str(e)}) from e

    if not isinstance(data, dict):
        raise DecodeError("Event payload is not an object", {"type": type(data).__name__})

    try:
        return DomainEvent.model_validate(data)
    except PydanticValidationError as e:
        raise DecodeError(
            "Event payload failed schema validation",
            {"event_type": data.get("event_type"), "errors": e.errors(include_url=False, include_context=False)}
        ) from e
