"""Request payload models for catalog mutations."""

from __future__ import annotations

from typing import Any, List, Literal, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .catalog import NAME_PATTERN, parse_bool, parse_tags
from .errors import ValidationError

M = TypeVar("M", bound=BaseModel)


def _strip(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    return value


class ProductInput(BaseModel):
    """Fields accepted when creating a product."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(..., min_length=1, max_length=100)
    container_id: str = Field(..., min_length=1, alias="containerId")
    display_name: str = Field("", alias="displayName")
    enabled: Optional[bool] = None
    description: str = ""
    category: str = ""
    tags: List[str] = Field(default_factory=list)

    @field_validator("name", "container_id", "display_name", "description", "category", mode="before")
    @classmethod
    def strip_text(cls, value):
        if value is None:
            return ""
        return _strip(value)

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        if not NAME_PATTERN.match(value):
            raise ValueError("name may only contain letters, digits, '-' and '_'")
        return value

    @field_validator("enabled", mode="before")
    @classmethod
    def coerce_enabled(cls, value):
        if value is None or value == "":
            return None
        return parse_bool(value)

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, value):
        return list(parse_tags(value))


class ProductPatch(BaseModel):
    """Fields accepted when updating a product; omitted fields keep their value."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: Optional[str] = None
    container_id: Optional[str] = Field(None, min_length=1, alias="containerId")
    display_name: Optional[str] = Field(None, alias="displayName")
    enabled: Optional[bool] = None
    description: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None

    @field_validator("name", "container_id", "display_name", "description", "category", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)

    @field_validator("enabled", mode="before")
    @classmethod
    def coerce_enabled(cls, value):
        if value is None or value == "":
            return None
        return parse_bool(value)

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, value):
        if value is None:
            return None
        return list(parse_tags(value))


class BulkOperation(BaseModel):
    """One entry of a bulk request."""

    action: Literal["add", "update", "delete", "toggle"]
    name: str = ""
    data: dict = Field(default_factory=dict)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        if value is None:
            return ""
        return _strip(value)


class SourceUpdate(BaseModel):
    source_id: str = Field(..., min_length=1)
    create: bool = False

    @field_validator("source_id", mode="before")
    @classmethod
    def strip_source(cls, value):
        return _strip(value)


def describe_errors(err: PydanticValidationError) -> str:
    parts = []
    for item in err.errors():
        loc = ".".join(str(piece) for piece in item.get("loc", ()))
        parts.append(f"{loc}: {item['msg']}" if loc else item["msg"])
    return "; ".join(parts)


def parse_payload(model: Type[M], payload: Union[M, Mapping[str, Any], None]) -> M:
    """Validate ``payload`` into ``model``, raising the catalog ``ValidationError``."""

    if isinstance(payload, model):
        return payload
    if payload is not None and not isinstance(payload, Mapping):
        raise ValidationError("Expected a JSON object")
    try:
        return model.model_validate(dict(payload or {}))
    except PydanticValidationError as err:
        raise ValidationError(describe_errors(err)) from err
