from datetime import date, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, field_validator


def normalize(value: str) -> str:
    """Collapse every whitespace run (newlines included) into one space and trim."""
    return " ".join(value.split())


class RunOutcome(StrEnum):
    completed = "completed"
    expired = "expired"
    retry = "retry"
    failed = "failed"
    missing = "missing"
    skipped = "skipped"


class Query(BaseModel):
    id: int
    keywords: str
    location: str
    created_at: datetime
    queried_at: datetime
    updated_at: datetime | None = None

    @property
    def tag(self) -> tuple[str, str]:
        return (self.keywords, self.location)


class Offer(BaseModel):
    id: str
    title: str
    company: str = ""
    location: str = ""
    posted_at: date | None = None

    @field_validator("title", "company", "location", mode="before")
    @classmethod
    def _normalize(cls, v: Any) -> Any:
        if isinstance(v, str):
            return normalize(v)
        return v

    @property
    def row(self) -> tuple[str, str, str, str, str | None]:
        posted_at = self.posted_at.isoformat() if self.posted_at else None
        return (self.id, self.title, self.company, self.location, posted_at)
