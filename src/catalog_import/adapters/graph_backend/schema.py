"""Pydantic models describing the graph backend JSON payloads."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class GraphBackendModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class LookupResponse(GraphBackendModel):
    element_id: str | None = Field(
        default=None, validation_alias=AliasChoices("elementId", "id", "element_id")
    )

    @field_validator("element_id", mode="before")
    @classmethod
    def blank_id_to_none(cls, value: object) -> object:
        return _blank_to_none(value)


class ElementPayload(GraphBackendModel):
    id: str
    element_type: str = Field(alias="elementType")
    attributes: dict[str, str | float | None] = Field(default_factory=dict)

    def scalar_attributes(self) -> dict[str, str | float]:
        return {key: value for key, value in self.attributes.items() if value is not None}


class UpsertRequest(GraphBackendModel):
    element_type: str = Field(serialization_alias="elementType")
    attributes: dict[str, str | float]


class UpsertResponse(GraphBackendModel):
    id: str


class ErrorResponse(GraphBackendModel):
    message: str | None = None
    error: str | None = None

    def describe(self, fallback: str) -> str:
        return self.message or self.error or fallback
