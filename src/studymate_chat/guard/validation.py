"""Request body validation."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from studymate_chat.errors import InputValidationError
from studymate_chat.types import ChatRequest

_UUID_VERSIONS = frozenset({1, 2, 3, 4, 5})


def is_uuid(value: str) -> bool:
    """Return True for canonical RFC 4122 UUID strings of versions 1 through 5."""
    try:
        parsed = UUID(value)
    except (AttributeError, TypeError, ValueError):
        return False
    return str(parsed) == value.lower() and parsed.version in _UUID_VERSIONS


class ChatBody(BaseModel):
    """Wire shape of a chat request."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    input: str
    session_id: UUID = Field(alias="sessionId")
    user_id: str | None = Field(default=None, alias="userId")

    @field_validator("input", mode="before")
    @classmethod
    def _strip_input(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("input must be a non-empty string")
        return value.strip()

    @field_validator("session_id", mode="before")
    @classmethod
    def _canonical_session(cls, value: Any) -> Any:
        if not isinstance(value, str) or not is_uuid(value):
            raise ValueError("sessionId must be a v1-v5 UUID")
        return value

    @field_validator("user_id", mode="before")
    @classmethod
    def _optional_user(cls, value: Any) -> str | None:
        return value if isinstance(value, str) and value else None


def validate_chat_request(body: Any) -> ChatRequest:
    """Normalize a raw JSON body into a `ChatRequest`.

    Raises:
        InputValidationError: `"Missing input"` when `input` is absent or blank
            (or the body is not an object), `"Invalid session"` when
            `sessionId` is not a v1-v5 UUID.
    """

    try:
        parsed = ChatBody.model_validate(body)
    except ValidationError as exc:
        failed = {str(error["loc"][0]) for error in exc.errors() if error["loc"]}
        if not failed or "input" in failed:
            raise InputValidationError("Missing input") from exc
        raise InputValidationError("Invalid session") from exc

    return ChatRequest(
        input=parsed.input,
        session_id=str(parsed.session_id),
        user_id=parsed.user_id,
    )
