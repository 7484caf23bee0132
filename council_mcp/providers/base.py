"""Abstract base for provider request/response shapes."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from council_mcp.models import CallLimits, ModelSpec

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."


class ProviderError(Exception):
    """Raised when a request cannot be built for a model spec."""

    def __init__(self, spec_id: str, message: str) -> None:
        self.spec_id = spec_id
        super().__init__(f"[{spec_id}] {message}")


@dataclass
class PreparedRequest:
    url: str
    payload: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)


class ProviderAdapter(ABC):
    """Translate between the uniform call contract and one backend API."""

    name: str = ""

    def system_prompt(self, spec: ModelSpec, default: str = DEFAULT_SYSTEM_PROMPT) -> str:
        return spec.system_prompt or default

    @abstractmethod
    def prepare(self, spec: ModelSpec, prompt: str, limits: CallLimits, system_prompt: str) -> PreparedRequest:
        """Build the HTTP request for one call.

        Raises:
            ProviderError: When the model spec lacks a credential or URL the
                provider needs. No network call has been made.
        """
        ...

    @abstractmethod
    def extract_text(self, payload: Any) -> str | None:
        """Return the model text from a successful response body.

        Returns None when the body has no text in the expected shape.
        """
        ...


def join_text_fragments(items: Any) -> str | None:
    """Join the ``text`` fields of a list of content fragments."""
    if not isinstance(items, list):
        return None
    chunks = [item["text"] for item in items if isinstance(item, dict) and isinstance(item.get("text"), str)]
    text = "\n".join(chunks).strip()
    return text or None
