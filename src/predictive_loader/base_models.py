# predictive_loader/base_models.py
"""Base model with dict-style access and state loading."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from predictive_loader.exceptions import InvalidModelStateError


class DictCompatModel(BaseModel):
    """Base for report models that support dict-style access.

    Allows ``obj["key"]`` and ``"key" in obj`` so callers that consume
    metrics as plain mappings keep working.
    """

    def __getitem__(self, key: str) -> Any:
        return getattr(self, key)

    def __contains__(self, key: object) -> bool:
        if isinstance(key, str):
            return key in type(self).model_fields
        return False

    def __eq__(self, other: object) -> bool:
        if isinstance(other, dict):
            return self.model_dump() == other
        return super().__eq__(other)


StateT = TypeVar("StateT", bound=BaseModel)


def load_state(state_cls: type[StateT], data: Any, kind: str) -> StateT:
    """Validate serialized data into a state model, raising InvalidModelStateError."""
    if not isinstance(data, Mapping):
        raise InvalidModelStateError(kind, f"expected a mapping, got {type(data).__name__}")
    try:
        return state_cls.model_validate(data)
    except ValidationError as exc:
        raise InvalidModelStateError(kind, str(exc)) from exc
