# policyflow/errors.py
"""
Error taxonomy for the generation and validation pipeline.

Each error carries the HTTP status the API layer reports it with.
"""

from typing import Any, Dict, Optional


class PolicyFlowError(Exception):
    """Base exception for PolicyFlow errors."""
    status_code = 500
    retryable = False

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message}


class BadInputError(PolicyFlowError):
    """Raised when a request is missing a required field or has the wrong type."""
    status_code = 400


class PolicyNotFoundError(PolicyFlowError):
    """Raised when a policy id does not exist in the store."""
    status_code = 404

    def __init__(self, policy_id: str):
        self.policy_id = policy_id
        super().__init__(f'Policy with ID "{policy_id}" not found')


class LLMConfigError(PolicyFlowError):
    """Raised when the text-generation provider is not configured."""
    status_code = 503


class UpstreamError(PolicyFlowError):
    """Raised when the text-generation service fails for a non rate-limit reason."""
    status_code = 502


class RateLimitError(UpstreamError):
    """Raised when the text-generation service reports rate limiting or quota exhaustion."""
    status_code = 429
    retryable = True

    def __init__(self, message: str, retry_after: Optional[int] = None):
        self.retry_after = retry_after
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "retryable": True}


class MalformedOutputError(UpstreamError):
    """Raised when generation output is not parseable or not shape-valid JSON."""
    status_code = 502

    def __init__(self, message: str, raw_preview: str = ""):
        self.raw_preview = raw_preview
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "raw_preview": self.raw_preview}


class ExtractionParseError(PolicyFlowError):
    """Raised when case extraction output cannot be parsed into flat case data."""
    status_code = 422

    def __init__(self, raw_response: str):
        self.raw_response = raw_response
        super().__init__(
            "AI could not extract structured data from this PDF. "
            "Please check the document or use JSON input instead."
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "rawResponse": self.raw_response}


class StorageError(PolicyFlowError):
    """Raised when the policy store fails."""
    status_code = 500
