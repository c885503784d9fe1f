"""Registered entities and predictions."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from predictive_loader.models.enums import Priority


class RegisteredEntity(BaseModel):
    """A loadable unit known to the scheduler."""

    id: str
    size_kb: float = Field(default=0.0, ge=0.0)
    dependencies: set[str] = Field(default_factory=set)
    importance: float = Field(default=0.5, ge=0.0)
    locator: str | None = Field(default=None, description="URL or module path used for fetch and hints")

    @field_validator("dependencies", mode="before")
    @classmethod
    def _coerce_dependencies(cls, value: object) -> object:
        if value is None:
            return set()
        return value


class Prediction(BaseModel):
    """A ranked, confidence-scored guess that an entity is needed next."""

    entity_id: str
    probability: float = Field(..., ge=0.0, le=1.0)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    priority: Priority = Priority.LOW
    model_tag: str = Field(default="")
    order: int | None = Field(default=None, description="Markov order that produced the prediction")


def clamp_unit(value: float) -> float:
    """Clamp a score to [0, 1]."""
    return max(0.0, min(1.0, value))
