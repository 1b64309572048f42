"""
Pydantic models for TaskHub API request/response validation.

Provides the task payload accepted by create/update, the task representation
returned to clients, and the small health/message/error bodies.
"""

from typing import Any
from pydantic import BaseModel, field_validator

DEFAULT_STATUS = "pending"

# Conventional status domain; other strings are stored as-is.
TASK_STATUSES = ("pending", "in_progress", "completed")


class TaskPayload(BaseModel):
    """
    Request body for creating or replacing a task.

    Every field is optional; absent or null values become empty strings.
    Title is not required to be non-empty.
    """

    title: str = ""
    description: str = ""
    status: str = ""

    @field_validator("title", "description", "status", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    def for_create(self) -> "TaskPayload":
        """Copy with an empty status defaulted to pending."""
        if self.status:
            return self
        return self.model_copy(update={"status": DEFAULT_STATUS})


class TaskResponse(BaseModel):
    """Task representation returned by every task endpoint."""

    id: int
    title: str
    description: str
    status: str
    created_at: str

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "TaskResponse":
        return cls(**row)


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    version: str
    timestamp: str


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""

    error: str
