# policyflow/llm/client.py
"""
LLM Client - unified interface for OpenAI and Anthropic.

Two collaborators live here:
- LLMClient: prompt (plus optional PDF) in, raw text out
- DocumentStore: transient file storage on the provider side, used to
  reference uploaded case documents from a prompt

Provider errors are translated into RateLimitError (retryable) or
UpstreamError so callers never see SDK exception types.
"""

import base64
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, Union
from dataclasses import dataclass

from ..settings import settings
from ..errors import PolicyFlowError, LLMConfigError, RateLimitError, UpstreamError

ANTHROPIC_FILES_BETA = "files-api-2025-04-14"

RATE_LIMIT_KEYWORDS = (
    "rate limit",
    "rate_limit",
    "ratelimit",
    "quota",
    "resource exhausted",
    "resource_exhausted",
    "too many requests",
    "429",
)


@dataclass
class LLMResponse:
    """Response from LLM."""
    content: str
    raw_response: Any
    model: str
    usage: Dict[str, int]


@dataclass
class InlineDocument:
    """Binary document sent inline with a prompt."""
    data: bytes
    mime_type: str = "application/pdf"
    filename: str = "document.pdf"

    @classmethod
    def from_base64(cls, encoded: str, mime_type: str = "application/pdf") -> "InlineDocument":
        # Accept data URLs as produced by browser file readers
        if encoded.startswith("data:") and "," in encoded:
            encoded = encoded.split(",", 1)[1]
        return cls(data=base64.b64decode(encoded, validate=True), mime_type=mime_type)

    def as_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


@dataclass
class UploadedDocument:
    """Handle to a document held in the provider's transient file store."""
    handle: str
    uri: str
    mime_type: str = "application/pdf"
    display_name: str = "document.pdf"


Attachment = Union[InlineDocument, UploadedDocument]


def _status_of(exc: BaseException) -> Optional[int]:
    for attr in ("status_code", "status", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str) and value.isdigit():
            return int(value)
    return None


def is_rate_limit_error(exc: BaseException) -> bool:
    """
    Detect provider rate limiting.

    Providers report it inconsistently, so both the numeric status and
    keywords in the message are checked.
    """
    if _status_of(exc) == 429:
        return True
    message = str(exc).lower()
    return any(keyword in message for keyword in RATE_LIMIT_KEYWORDS)


def _retry_after(exc: BaseException) -> Optional[int]:
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    value = headers.get("retry-after")
    try:
        return int(float(value)) if value is not None else None
    except (TypeError, ValueError):
        return None


def classify_llm_error(exc: BaseException) -> PolicyFlowError:
    """Map an SDK/transport exception onto the pipeline error taxonomy."""
    if isinstance(exc, PolicyFlowError):
        return exc
    if is_rate_limit_error(exc):
        return RateLimitError(
            f"LLM rate limit exceeded: {exc}",
            retry_after=_retry_after(exc),
        )
    return UpstreamError(f"LLM API error: {exc}")


class LLMClient:
    """
    Unified LLM client supporting OpenAI and Anthropic.

    Usage:
        client = LLMClient()
        response = client.complete(
            "Convert this policy...",
            attachment=InlineDocument.from_base64(pdf_base64),
        )
    """

    def __init__(self, provider: Optional[str] = None):
        self.provider = provider or settings.llm_provider
        self._client = None
        self._init_client()

    def _init_client(self):
        """Initialize the appropriate client."""
        if self.provider == "anthropic":
            if not settings.anthropic_api_key:
                raise LLMConfigError(
                    "LLM API key is not configured. Set ANTHROPIC_API_KEY in your environment."
                )
            import anthropic
            self._client = anthropic.Anthropic(
                api_key=settings.anthropic_api_key,
                timeout=settings.llm_timeout_seconds,
            )
            self.model = settings.anthropic_model
        else:  # openai
            if not settings.openai_api_key:
                raise LLMConfigError(
                    "LLM API key is not configured. Set OPENAI_API_KEY in your environment."
                )
            import openai
            self._client = openai.OpenAI(
                api_key=settings.openai_api_key,
                timeout=settings.llm_timeout_seconds,
            )
            self.model = settings.openai_model

    def complete(
        self,
        prompt: str,
        attachment: Optional[Attachment] = None,
        temperature: float = 0.0,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        """
        Generate completion from LLM.

        Args:
            prompt: Full prompt text
            attachment: Optional inline or uploaded document
            temperature: Sampling temperature (0 = deterministic)
            max_tokens: Max response tokens

        Returns:
            LLMResponse with content and metadata

        Raises:
            RateLimitError: Provider rate limit or quota exceeded
            UpstreamError: Any other provider failure
        """
        max_tokens = max_tokens or settings.llm_max_tokens
        try:
            if self.provider == "anthropic":
                return self._complete_anthropic(prompt, attachment, temperature, max_tokens)
            return self._complete_openai(prompt, attachment, temperature, max_tokens)
        except Exception as exc:
            raise classify_llm_error(exc) from exc

    def _complete_anthropic(
        self,
        prompt: str,
        attachment: Optional[Attachment],
        temperature: float,
        max_tokens: int,
    ) -> LLMResponse:
        """Complete using Anthropic Claude."""
        content = []
        kwargs: Dict[str, Any] = {}
        if isinstance(attachment, InlineDocument):
            content.append({
                "type": "document",
                "source": {
                    "type": "base64",
                    "media_type": attachment.mime_type,
                    "data": attachment.as_base64(),
                },
            })
        elif isinstance(attachment, UploadedDocument):
            content.append({
                "type": "document",
                "source": {"type": "file", "file_id": attachment.uri},
            })
            kwargs["betas"] = [ANTHROPIC_FILES_BETA]
        content.append({"type": "text", "text": prompt})

        messages_api = self._client.beta.messages if kwargs else self._client.messages
        response = messages_api.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": content}],
            **kwargs,
        )

        return LLMResponse(
            content="".join(
                block.text for block in response.content if getattr(block, "type", "") == "text"
            ),
            raw_response=response,
            model=self.model,
            usage={
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            }
        )

    def _complete_openai(
        self,
        prompt: str,
        attachment: Optional[Attachment],
        temperature: float,
        max_tokens: int,
    ) -> LLMResponse:
        """Complete using OpenAI GPT."""
        if attachment is None:
            content: Any = prompt
        else:
            if isinstance(attachment, InlineDocument):
                file_part = {
                    "filename": attachment.filename,
                    "file_data": f"data:{attachment.mime_type};base64,{attachment.as_base64()}",
                }
            else:
                file_part = {"file_id": attachment.uri}
            content = [
                {"type": "file", "file": file_part},
                {"type": "text", "text": prompt},
            ]

        response = self._client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": content}],
            temperature=temperature,
            max_tokens=max_tokens,
        )

        return LLMResponse(
            content=response.choices[0].message.content or "",
            raw_response=response,
            model=self.model,
            usage={
                "input_tokens": response.usage.prompt_tokens,
                "output_tokens": response.usage.completion_tokens,
            }
        )

    def document_store(self) -> "DocumentStore":
        """Transient file store on the same provider account."""
        if self.provider == "anthropic":
            return AnthropicDocumentStore(self._client)
        return OpenAIDocumentStore(self._client)


class DocumentStore(ABC):
    """Provider-side transient storage for uploaded documents."""

    @abstractmethod
    def upload(self, data: bytes, mime_type: str, display_name: str) -> UploadedDocument: ...

    @abstractmethod
    def delete(self, handle: str) -> None: ...


class OpenAIDocumentStore(DocumentStore):
    def __init__(self, client):
        self._client = client

    def upload(self, data: bytes, mime_type: str, display_name: str) -> UploadedDocument:
        try:
            uploaded = self._client.files.create(
                file=(display_name, data, mime_type),
                purpose="user_data",
            )
        except Exception as exc:
            raise classify_llm_error(exc) from exc
        return UploadedDocument(
            handle=uploaded.id,
            uri=uploaded.id,
            mime_type=mime_type,
            display_name=display_name,
        )

    def delete(self, handle: str) -> None:
        self._client.files.delete(handle)


class AnthropicDocumentStore(DocumentStore):
    def __init__(self, client):
        self._client = client

    def upload(self, data: bytes, mime_type: str, display_name: str) -> UploadedDocument:
        try:
            uploaded = self._client.beta.files.upload(
                file=(display_name, data, mime_type),
            )
        except Exception as exc:
            raise classify_llm_error(exc) from exc
        return UploadedDocument(
            handle=uploaded.id,
            uri=uploaded.id,
            mime_type=mime_type,
            display_name=display_name,
        )

    def delete(self, handle: str) -> None:
        self._client.beta.files.delete(handle)


# Global client instance
_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """Get or create global LLM client."""
    global _client
    if _client is None:
        _client = LLMClient()
    return _client


def get_document_store() -> DocumentStore:
    """Document store sharing the global LLM client's credentials."""
    return get_llm_client().document_store()
