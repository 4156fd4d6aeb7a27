import json
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from persona_gateway.core.errors import BadRequestError


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    persona_id: str = Field(alias="personaId", min_length=1)
    messages: list[ChatMessage] = Field(min_length=1)
    conversation_id: str | None = Field(default=None, alias="conversationId")
    deep_thinking: bool = Field(default=False, alias="deepThinking")
    skill_id: str | None = Field(default=None, alias="skillId")

    @field_validator("persona_id", mode="before")
    @classmethod
    def coerce_persona_id(cls, value: object) -> object:
        # Older clients send numeric ids.
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("messages")
    @classmethod
    def last_message_from_user(cls, messages: list[ChatMessage]) -> list[ChatMessage]:
        if messages and messages[-1].role != "user":
            raise ValueError("Last message must be from user")
        return messages

    def as_message_dicts(self) -> list[dict[str, str]]:
        return [{"role": m.role, "content": m.content} for m in self.messages]


def parse_chat_request(raw: bytes) -> ChatRequest:
    try:
        body = json.loads(raw or b"null")
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise BadRequestError("Request body must be valid JSON", code="invalid_json") from exc
    if not isinstance(body, dict):
        raise BadRequestError("Request body must be a JSON object", code="invalid_json")

    try:
        return ChatRequest.model_validate(body)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = str(first.get("msg", "invalid value")).removeprefix("Value error, ")
        raise BadRequestError(
            f"Invalid request: {location}: {message}" if location else f"Invalid request: {message}",
            code="request_validation_failed",
        ) from exc
