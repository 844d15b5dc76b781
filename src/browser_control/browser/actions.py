"""Closed action vocabulary, validated as a discriminated union on ``type``."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError


class _Action(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class NavigateAction(_Action):
    type: Literal["navigate"]
    url: str = Field(min_length=1)
    waitForIdle: bool = False


class ClickAction(_Action):
    type: Literal["click"]
    x: float
    y: float


class ClickElementAction(_Action):
    type: Literal["click_element"]
    selector: str = Field(min_length=1)


class TypeAction(_Action):
    type: Literal["type"]
    text: str


class TypeElementAction(_Action):
    type: Literal["type_element"]
    selector: str = Field(min_length=1)
    text: str
    clear: bool = True


class KeyAction(_Action):
    type: Literal["key"]
    key: str = Field(min_length=1)


class ScrollAction(_Action):
    type: Literal["scroll"]
    direction: Literal["up", "down", "left", "right"]
    amount: Optional[int] = Field(default=None, gt=0)


class ScrollToAction(_Action):
    type: Literal["scroll_to"]
    selector: str = Field(min_length=1)


class HoverAction(_Action):
    type: Literal["hover"]
    x: float
    y: float


class HoverElementAction(_Action):
    type: Literal["hover_element"]
    selector: str = Field(min_length=1)


class GetStateAction(_Action):
    type: Literal["get_state"]
    includeIframes: bool = False
    maxElements: Optional[int] = Field(default=None, gt=0)


class SimpleAction(_Action):
    type: Literal[
        "back",
        "forward",
        "refresh",
        "get_state_compact",
        "get_state_lite",
        "screenshot",
    ]


BrowserAction = Annotated[
    Union[
        NavigateAction,
        ClickAction,
        ClickElementAction,
        TypeAction,
        TypeElementAction,
        KeyAction,
        ScrollAction,
        ScrollToAction,
        HoverAction,
        HoverElementAction,
        GetStateAction,
        SimpleAction,
    ],
    Field(discriminator="type"),
]

_ACTION_ADAPTER: TypeAdapter = TypeAdapter(BrowserAction)

ACTION_TYPES = (
    "navigate",
    "click",
    "click_element",
    "type",
    "type_element",
    "key",
    "scroll",
    "scroll_to",
    "back",
    "forward",
    "refresh",
    "get_state",
    "get_state_compact",
    "get_state_lite",
    "screenshot",
    "hover",
    "hover_element",
)


def _format_errors(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item)
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts)


def parse_action(payload: Mapping[str, Any]) -> Any:
    """Validate ``payload`` into one action model or raise ``ValidationError``."""
    if not isinstance(payload, Mapping):
        raise ValidationError("Action payload must be an object")
    action_type = payload.get("type")
    if not action_type:
        raise ValidationError("Action type is required")
    if action_type not in ACTION_TYPES:
        raise ValidationError(
            f"Unknown action type: {action_type}",
            details={"supported": list(ACTION_TYPES)},
        )
    try:
        return _ACTION_ADAPTER.validate_python(dict(payload))
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid action: {_format_errors(exc)}") from exc
