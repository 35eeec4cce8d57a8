"""Models for the generative-text call and for parsed model replies."""
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    """Single role-tagged message sent to or received from the model."""
    role: Literal["system", "user", "assistant"]
    content: str


class GenerationRequest(BaseModel):
    """Opaque request handed to a text generator."""
    model: str
    messages: list[ChatMessage]
    temperature: float = 0.6
    max_output_tokens: int = 3000


class GenerationResponse(BaseModel):
    """Candidate replies returned by a text generator."""
    candidates: list[ChatMessage] = Field(default_factory=list)

    @property
    def text(self) -> str:
        """Content of the first candidate, or an empty string."""
        return self.candidates[0].content if self.candidates else ""


class StructuredResponse(BaseModel):
    """Reply contained a JSON object."""
    kind: Literal["structured"] = "structured"
    plan: dict[str, Any]


class TextOnlyResponse(BaseModel):
    """Reply had no usable JSON; plain-text recommendations salvaged instead."""
    kind: Literal["text_only"] = "text_only"
    recommendations: list[str]


class EmptyResponse(BaseModel):
    """Nothing usable in the reply."""
    kind: Literal["empty"] = "empty"


ParsedResponse = Annotated[
    Union[StructuredResponse, TextOnlyResponse, EmptyResponse],
    Field(discriminator="kind"),
]
