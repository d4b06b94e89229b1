"""
Pydantic schemas for Task API.
"""
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field, model_validator

# Fields the server assigns itself; clients may send them but they are dropped
SERVER_ASSIGNED_FIELDS = ("id", "owner")

# Fields PATCH /tasks/{id} may change
ALLOWED_UPDATES = ("description", "completed")


class TaskCreate(BaseModel):
    """Schema for creating a task"""
    model_config = {"extra": "forbid", "str_strip_whitespace": True}

    description: str = Field(..., min_length=1, max_length=1000, description="Task description")
    completed: bool = Field(False, description="Whether the task is done")

    @model_validator(mode="before")
    @classmethod
    def drop_server_assigned(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if k not in SERVER_ASSIGNED_FIELDS}
        return data


class TaskUpdate(BaseModel):
    """Schema for updating a task; unset fields are left alone"""
    model_config = {"extra": "forbid", "str_strip_whitespace": True}

    # No Optional: an explicit null is rejected, an omitted field is skipped
    description: str = Field(None, min_length=1, max_length=1000, description="Task description")
    completed: bool = Field(None, description="Whether the task is done")


class TaskResponse(BaseModel):
    """Schema for task response"""
    model_config = {"from_attributes": True}

    id: str = Field(..., description="Task ID")
    description: str = Field(..., description="Task description")
    completed: bool = Field(..., description="Whether the task is done")
    owner: int = Field(..., description="User ID who owns the task")
    created_at: datetime = Field(..., description="Task creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Task update timestamp")


class ErrorResponse(BaseModel):
    """Schema for error bodies"""
    error: str
