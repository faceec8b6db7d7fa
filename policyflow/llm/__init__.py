"""LLM client module."""

from .client import (
    LLMClient,
    LLMResponse,
    InlineDocument,
    UploadedDocument,
    DocumentStore,
    get_llm_client,
    get_document_store,
    is_rate_limit_error,
)
from .parsing import extract_json, JSONExtractionError

__all__ = [
    "LLMClient",
    "LLMResponse",
    "InlineDocument",
    "UploadedDocument",
    "DocumentStore",
    "get_llm_client",
    "get_document_store",
    "is_rate_limit_error",
    "extract_json",
    "JSONExtractionError",
]
