# chatrag/models.py
from __future__ import annotations

import uuid
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Sender = Literal["user", "assistant"]


class SourceContent(BaseModel):
    """One excerpt of a retrieved document."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    type: str
    text: str


class Source(BaseModel):
    """A retrieved document cited by an answer."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    file_id: str
    filename: str
    score: float | None = None
    attributes: dict[str, Any] | None = None
    content: list[SourceContent] | None = None

    @property
    def excerpt(self) -> str | None:
        """Text of the first content excerpt, if any."""
        if self.content and self.content[0].text:
            return self.content[0].text
        return None


class ConversationMessage(BaseModel):
    """
    A single transcript entry.

    Assistant messages start empty and grow as fragments arrive.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    sender: Sender
    text: str = ""
    sources: list[Source] | None = None


class ChatRequest(BaseModel):
    """Inbound proxy request body."""
    model_config = ConfigDict(extra="ignore")

    query: str
    # Forwarded as sent; upstream owns their validation
    model: Any = None
    rewrite_query: Any = None
    max_num_results: Any = None
    ranking_options: Any = None

    def upstream_body(self) -> dict[str, Any]:
        """
        Body for the upstream ai-search call.

        Streaming is always forced on; optional fields the caller did not
        send are left out entirely so upstream defaults apply.
        """
        optional = self.model_dump(
            exclude={"query"}, exclude_unset=True, exclude_none=True
        )
        return {"query": self.query, "stream": True, **optional}
