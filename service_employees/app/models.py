"""
Employee data models.
"""

from typing import Dict, Any, Optional, List
from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, Field


REQUIRED_FIELDS = ("name", "email", "department")


@dataclass(frozen=True)
class EmployeeRecord:
    """Employee row as stored in the record store."""
    id: int
    name: str
    email: str
    department: str
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "department": self.department,
            "created_at": self.created_at.isoformat() if self.created_at else None
        }


class EmployeeCreateRequest(BaseModel):
    """Request model for employee creation.

    Fields are optional here so missing values reach the writer's validation
    and come back as a structured VALIDATION_ERROR.
    """
    name: Optional[str] = Field(None, description="Full name")
    email: Optional[str] = Field(None, description="Unique email address")
    department: Optional[str] = Field(None, description="Department name")


class EmployeeCreateResponse(BaseModel):
    """Response model for employee creation."""
    message: str
    employee: Dict[str, Any]


class EmployeeListResponse(BaseModel):
    """Response model for the employee listing."""
    data: List[Dict[str, Any]]
    source: str
    count: int
    cached_at: Optional[str] = None
