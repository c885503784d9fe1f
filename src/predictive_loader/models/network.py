"""Network condition snapshot."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from predictive_loader.models.enums import EffectiveType


class NetworkSnapshot(BaseModel):
    """
    Point-in-time network conditions.

    Frozen: a new snapshot replaces the old one wholesale.
    """

    model_config = ConfigDict(frozen=True)

    effective_type: EffectiveType = EffectiveType.FOUR_G
    downlink_mbps: float = Field(default=10.0, ge=0.0)
    rtt_ms: float = Field(default=50.0, ge=0.0)
    save_data: bool = False
    online: bool = True

    @field_validator("effective_type", mode="before")
    @classmethod
    def _unknown_type(cls, value: object) -> object:
        if value is None:
            return EffectiveType.UNKNOWN
        if isinstance(value, str) and value not in {t.value for t in EffectiveType}:
            return EffectiveType.UNKNOWN
        return value
