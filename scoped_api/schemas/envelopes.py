from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ListOut(BaseModel):
    count: int
    page: int
    page_size: int
    data: list[dict[str, Any]] = Field(default_factory=list)


class ErrorOut(BaseModel):
    error: str
