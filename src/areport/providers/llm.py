"""Language-model clients that turn fix prompts into suggestion text."""

from __future__ import annotations

import json
import os
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from ..classifier import FailureCategory, classify
from ..errors import ErrorKind, ProviderError

__all__ = [
    "FIX_SYSTEM_PROMPT",
    "LLMClient",
    "LLMRequest",
    "OfflineFixProvider",
    "OpenAIFixProvider",
]

FIX_SYSTEM_PROMPT = "You are a test engineer helping debug failing and flaky automated tests."

Transport = Callable[[Dict[str, Any]], str]


@dataclass(slots=True)
class LLMRequest:
    """Plain-text completion request sent to a model."""

    prompt: str
    system_prompt: Optional[str] = FIX_SYSTEM_PROMPT
    model: Optional[str] = None
    temperature: float = 0.7
    max_output_tokens: int = 1000
    metadata: Dict[str, str] = field(default_factory=dict)

    def to_payload(self, default_model: str) -> Dict[str, Any]:
        """Render a transport-ready payload for the Responses API."""

        def _message(role: str, text: str) -> Dict[str, Any]:
            return {"role": role, "content": [{"type": "input_text", "text": text}]}

        messages: list[Dict[str, Any]] = []
        if self.system_prompt:
            messages.append(_message("system", self.system_prompt))
        messages.append(_message("user", self.prompt))

        payload: Dict[str, Any] = {
            "model": self.model or default_model,
            "input": messages,
            "max_output_tokens": self.max_output_tokens,
        }
        if self.temperature not in (None, 0.0):
            payload["temperature"] = self.temperature
        if self.metadata:
            payload["metadata"] = {key: value[:512] for key, value in self.metadata.items()}
        return payload


class LLMClient:
    """Retrying base client; subclasses implement ``_raw_invoke``."""

    def __init__(self, model: str, *, max_attempts: int = 3, retry_delay: float = 0.5) -> None:
        self._model = model
        self._max_attempts = max(1, max_attempts)
        self._retry_delay = retry_delay

    @property
    def model(self) -> str:
        return self._model

    def complete(self, request: LLMRequest) -> str:
        """Return the model's text output, retrying transport failures only."""
        last_error: Optional[ProviderError] = None
        for attempt in range(1, self._max_attempts + 1):
            payload = request.to_payload(self._model)
            try:
                text = self._raw_invoke(payload)
            except ProviderError as error:
                if error.kind is not ErrorKind.TRANSPORT:
                    raise
                last_error = error
                if attempt >= self._max_attempts:
                    break
                time.sleep(self._retry_delay)
                continue
            if not text.strip():
                raise ProviderError("Model returned an empty response.", kind=ErrorKind.REJECTED)
            return text

        raise ProviderError(
            f"Model {request.model or self._model} failed after {self._max_attempts} attempt(s): {last_error}",
            kind=ErrorKind.TRANSPORT,
        ) from last_error

    def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        raise NotImplementedError("Subclasses must implement _raw_invoke().")


class OpenAIFixProvider(LLMClient):
    """Fix-suggestion collaborator backed by the OpenAI Responses API."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: str = "https://api.openai.com/v1/responses",
        model: str = "gpt-4o-mini",
        transport: Optional[Transport] = None,
        timeout: float = 60.0,
        max_attempts: int = 3,
        retry_delay: float = 0.5,
        temperature: float = 0.7,
        max_output_tokens: int = 1000,
    ) -> None:
        super().__init__(model=model, max_attempts=max_attempts, retry_delay=retry_delay)
        self._api_key = api_key or os.getenv("OPENAI_API_KEY")
        self._base_url = base_url
        self._timeout = timeout
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens
        self._transport = transport or self._http_transport

        if transport is None and not self._api_key:
            raise ProviderError(
                "An API key is required for the OpenAI provider (set OPENAI_API_KEY).",
                kind=ErrorKind.CONFIGURATION,
            )

    def generate_completion(self, prompt: str) -> str:
        request = LLMRequest(
            prompt=prompt,
            temperature=self._temperature,
            max_output_tokens=self._max_output_tokens,
        )
        return self.complete(request)

    def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        raw_response = self._transport(payload)
        text = self._extract_output_text(raw_response)
        if text is None:
            raise ProviderError("Response did not contain output text.", kind=ErrorKind.REJECTED)
        return text

    def _http_transport(self, payload: Dict[str, Any]) -> str:
        import urllib.error
        import urllib.request

        data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(
            self._base_url,
            data=data,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self._api_key}",
            },
            method="POST",
        )
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                raw = response.read()
        except TimeoutError as error:  # pragma: no cover - network-dependent
            raise ProviderError("Model response timed out.", kind=ErrorKind.TRANSPORT) from error
        except urllib.error.HTTPError as error:  # pragma: no cover - network-dependent
            message = error.read().decode("utf-8", errors="ignore")
            kind = ErrorKind.TRANSPORT if error.code >= 500 or error.code == 429 else ErrorKind.REJECTED
            raise ProviderError(f"HTTP {error.code}: {message}", kind=kind) from error
        except urllib.error.URLError as error:  # pragma: no cover - network-dependent
            raise ProviderError(f"Failed to reach model endpoint: {error.reason}", kind=ErrorKind.TRANSPORT) from error
        return raw.decode("utf-8")

    @staticmethod
    def _extract_output_text(raw_response: str) -> Optional[str]:
        """Pull the first text content out of a Responses API payload."""
        if not raw_response:
            return None
        try:
            data = json.loads(raw_response)
        except json.JSONDecodeError:
            return raw_response

        if not isinstance(data, dict):
            return None
        output_text = data.get("output_text")
        if isinstance(output_text, str) and output_text.strip():
            return output_text

        for item in data.get("output") or []:
            if not isinstance(item, dict):
                continue
            for content in item.get("content") or []:
                if isinstance(content, dict):
                    text = content.get("text")
                    if isinstance(text, str) and text.strip():
                        return text

        # Chat-completions style payloads.
        for choice in data.get("choices") or []:
            message = choice.get("message") if isinstance(choice, dict) else None
            if isinstance(message, dict):
                text = message.get("content")
                if isinstance(text, str) and text.strip():
                    return text
        return None


_OFFLINE_ADVICE: Dict[FailureCategory, str] = {
    FailureCategory.TIMEOUT: "Wait on an explicit condition instead of a fixed delay, or raise the timeout for this step.",
    FailureCategory.NETWORK: "Stub or retry the failing request, and confirm the service under test is reachable.",
    FailureCategory.SELECTOR: "Use a stable, role- or test-id based selector and wait for the element to be attached.",
    FailureCategory.ASSERTION: "Compare the expected value against current behaviour; update the assertion or the code.",
    FailureCategory.UNKNOWN: "Reproduce the failure locally with verbose output to narrow down the cause.",
}


class OfflineFixProvider:
    """Deterministic local collaborator used for dry runs and tests."""

    def generate_completion(self, prompt: str) -> str:
        error_section = _section(prompt, "# Error details")
        category = classify(error_section)
        return (
            "## Analysis\n\n"
            f"Failure category: {category.value}.\n\n"
            "## Suggested fix\n\n"
            f"{_OFFLINE_ADVICE[category]}\n"
        )


def _section(prompt: str, heading: str) -> str:
    start = prompt.find(heading)
    if start == -1:
        return prompt
    end = prompt.find("\n# ", start + len(heading))
    return prompt[start:end] if end != -1 else prompt[start:]
