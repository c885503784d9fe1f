# predictive_loader/exceptions.py
"""Exceptions raised by the predictive loader."""

from __future__ import annotations


class PredictiveLoaderError(Exception):
    """Base class for all predictive loader errors."""


class InvalidModelStateError(PredictiveLoaderError):
    """A serialized model or scheduler snapshot is malformed or incomplete."""

    def __init__(self, kind: str, detail: str) -> None:
        self.kind = kind
        self.detail = detail
        super().__init__(f"Invalid {kind} state: {detail}")


class UnknownModelTypeError(PredictiveLoaderError):
    """The requested prediction model type is not supported."""

    def __init__(self, model_type: object) -> None:
        self.model_type = model_type
        super().__init__(f"Unknown prediction model type: {model_type!r}")


class SchedulerNotRunningError(PredictiveLoaderError):
    """A load was requested while no asyncio event loop is running."""
