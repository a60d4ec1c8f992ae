"""Custom exception hierarchy for the augmentation engine.

Only generation failures cross the orchestrator boundary. Augmentation
failures are returned as values and never raised.
"""

from __future__ import annotations

from augment_engine.models.domain import ErrorKind, GenerationAttempt, describe_error


class AugmentEngineError(Exception):
    """Base exception for all augmentation engine errors."""


class ConfigurationError(AugmentEngineError):
    """Error in system configuration."""


class GenerationError(AugmentEngineError):
    """Error during artifact generation."""


class FallbackExhaustedError(GenerationError):
    """Every usable generation backend failed.

    The message is a generic description of the last error kind so that
    provider internals never reach the caller.
    """

    def __init__(self, kind: ErrorKind, attempts: list[GenerationAttempt]) -> None:
        super().__init__(describe_error(kind))
        self.kind = kind
        self.attempts = attempts
