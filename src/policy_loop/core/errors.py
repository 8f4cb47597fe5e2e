from __future__ import annotations


class PolicyLoopError(Exception):
    """Base class for errors raised by policy-loop."""


class RunNotFound(PolicyLoopError):
    def __init__(self, run_id: str) -> None:
        super().__init__(f"Run {run_id} not found")
        self.run_id = run_id


class ConfigurationError(PolicyLoopError):
    """Missing or invalid backend configuration (raised before any network call)."""


class GenerationError(PolicyLoopError):
    """The upstream completion call failed or returned no usable content."""


class InvalidJSONError(PolicyLoopError):
    def __init__(self, message: str, raw: str) -> None:
        super().__init__(message)
        self.raw = raw


class SchemaValidationError(PolicyLoopError):
    def __init__(self, message: str, payload: object = None) -> None:
        super().__init__(message)
        self.payload = payload


class EvaluationSchemaError(SchemaValidationError):
    pass


class PatchSchemaError(SchemaValidationError):
    pass
