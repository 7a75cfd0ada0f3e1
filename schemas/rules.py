"""Rule schemas and JSON helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, Field, field_validator

from schemas.conditions import Group

T = TypeVar("T", bound="_JsonMixin")


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


class _JsonMixin(BaseModel):
    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls: type[T], data: str) -> T:
        return cls.model_validate_json(data)


class Outcome(str, Enum):
    APPROVE = "approve"
    SPAM = "spam"
    TRASH = "trash"


class Rule(_JsonMixin):
    """A named moderation rule: one condition tree and the outcome it triggers.

    ``id`` stays ``None`` until the rule has been stored.
    """

    id: int | None = None
    name: str = Field(min_length=1)
    enabled: bool = True
    conditions: Group = Field(default_factory=Group)
    outcome: Outcome
    created: datetime = Field(default_factory=utcnow)
    updated: datetime = Field(default_factory=utcnow)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Rule name is required")
        return value

    @field_validator("conditions", mode="before")
    @classmethod
    def _decode_tree(cls, value: Any) -> Any:
        # Raw trees (JSON text or parsed mappings) go through the strict codec
        if isinstance(value, Group):
            return value
        from tools.tree_codec import decode, decode_data

        tree = decode(value) if isinstance(value, (str, bytes)) else decode_data(value)
        return tree if tree is not None else Group()

    def is_enabled(self) -> bool:
        return self.enabled


class Comment(BaseModel):
    """The comment attributes a condition can be evaluated against."""

    comment_content: str = ""
    comment_author: str = ""
    comment_author_email: str = ""
    comment_author_url: str = ""
    comment_author_ip: str = ""
    comment_agent: str = ""

    def attribute(self, name: str) -> str:
        return getattr(self, name)
