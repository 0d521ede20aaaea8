from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class Todo(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(..., description="Server-generated identifier")
    user: str | None = None
    text: str
    completed: bool = False


class CreateTodo(BaseModel):
    text: str
    user: str | None = None
