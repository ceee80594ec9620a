"""
Data models for the copilot: transcript turns, tool declarations and the
HTTP/wire shapes exchanged with the model backend and the browser.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _new_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:24]}"


# ========== Transcript turns ==========

@dataclass
class FunctionCall:
    """A model-issued request to invoke one named tool."""
    name: str
    args: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=_new_call_id)


@dataclass
class WelcomeTurn:
    """The banner shown at the top of a fresh transcript. Never sent to the model."""
    text: str
    role = None


@dataclass
class UserText:
    """User-authored input, optionally with an image attachment as a data URL."""
    text: str
    image: Optional[str] = None
    role = "user"


@dataclass
class ModelText:
    """Accumulated model text for one turn."""
    text: str = ""
    is_analysis: bool = False
    role = "model"


@dataclass
class ModelFunctionCall:
    """The model's request to run one tool, plus the display the tool produced."""
    call: FunctionCall
    internal: bool = False
    display: Any = None
    role = "model"

    @property
    def label(self) -> str:
        if self.internal:
            return f"Internal Call: {self.call.name}"
        return self.call.name


@dataclass
class ToolFunctionResponse:
    """Compact tool output fed back to the model."""
    name: str
    content: str
    call_id: Optional[str] = None
    role = "user"


@dataclass
class ErrorTurn:
    """A failed exchange. Shown to the user, never sent to the model."""
    command: str
    message: str
    role = None

    @property
    def text(self) -> str:
        return f"An error occurred: {self.message}"


Turn = Union[WelcomeTurn, UserText, ModelText, ModelFunctionCall, ToolFunctionResponse, ErrorTurn]


@dataclass
class ToolResult:
    """Result of one tool invocation.

    ``display`` is what the user sees (plain text or a rich payload from
    ``copilot.display``); ``raw_data`` is the compact text for the model. A
    result without ``raw_data`` ends the turn without an analysis round trip.
    """
    display: Any
    raw_data: Optional[str] = None


@dataclass
class CompletionChunk:
    """One increment from a completion backend."""
    text: Optional[str] = None
    function_calls: List[FunctionCall] = field(default_factory=list)


# ========== Tool declarations ==========

class ParameterSchema(BaseModel):
    """Schema of a single tool parameter."""
    model_config = ConfigDict(frozen=True)

    type: Literal["STRING", "INTEGER", "NUMBER", "BOOLEAN"]
    description: str = ""


class ParametersSchema(BaseModel):
    """Object schema describing all parameters of a tool."""
    model_config = ConfigDict(frozen=True)

    type: Literal["OBJECT"] = "OBJECT"
    properties: Dict[str, ParameterSchema] = Field(default_factory=dict)
    required: List[str] = Field(default_factory=list)


class ToolDeclaration(BaseModel):
    """Declared tool schema, sent verbatim to the model backend."""
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    parameters: ParametersSchema = Field(default_factory=ParametersSchema)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()


# ========== Wire format (Gemini contents) ==========

class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class InlineData(_WireModel):
    mime_type: str = Field(alias="mimeType")
    data: str


class FunctionCallPart(_WireModel):
    name: str
    args: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("args", mode="before")
    @classmethod
    def null_args_as_empty(cls, v: Any) -> Any:
        return {} if v is None else v


class FunctionResponsePart(_WireModel):
    name: str
    response: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("response", mode="before")
    @classmethod
    def null_response_as_empty(cls, v: Any) -> Any:
        return {} if v is None else v


class Part(_WireModel):
    text: Optional[str] = None
    inline_data: Optional[InlineData] = Field(None, alias="inlineData")
    function_call: Optional[FunctionCallPart] = Field(None, alias="functionCall")
    function_response: Optional[FunctionResponsePart] = Field(None, alias="functionResponse")


class Content(_WireModel):
    role: Literal["user", "model"]
    parts: List[Part] = Field(default_factory=list)


# ========== HTTP ==========

class ChatRequest(_WireModel):
    """Request model for the server chat endpoint."""
    message: Optional[str] = None
    history: Optional[List[Content]] = None
    user_id: Optional[str] = Field(None, alias="userId")

    @field_validator("user_id", mode="before")
    @classmethod
    def stringify_user_id(cls, v: Any) -> Any:
        """Accept numeric user ids the browser may send."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class ChatResponse(_WireModel):
    """Response model for the server chat endpoint."""
    response: str
    history: List[Content]
