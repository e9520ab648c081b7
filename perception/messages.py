"""Wire schemas for HTTP requests and frame forwarding."""

from __future__ import annotations

from typing import List, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

ANNOTATE_MESSAGE_VERSION = 1


class AnnotateMessage(BaseModel):
    """Request forwarded to embedded frames to annotate their own text.

    Delivery is best effort: there is no acknowledgement and no retry.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    action: Literal["highlight"] = "highlight"
    version: Literal[1] = ANNOTATE_MESSAGE_VERSION


class ChunkRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    chunks_seen: List[int] = Field(
        default_factory=list,
        validation_alias=AliasChoices("chunks_seen", "chunksSeen"),
    )

    @field_validator("chunks_seen")
    @classmethod
    def _non_negative(cls, value: List[int]) -> List[int]:
        if any(chunk < 0 for chunk in value):
            raise ValueError("chunk indices must be non-negative")
        return value


class BoundingBoxRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    locator: str = Field(min_length=1)


class RestoreRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    html: str = ""


class NavigateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    url: str = Field(min_length=1)


__all__ = [
    "ANNOTATE_MESSAGE_VERSION",
    "AnnotateMessage",
    "BoundingBoxRequest",
    "ChunkRequest",
    "NavigateRequest",
    "RestoreRequest",
]
