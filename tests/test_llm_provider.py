from __future__ import annotations

import json

import pytest

from areport.errors import ErrorKind, ProviderError
from areport.providers.llm import FIX_SYSTEM_PROMPT, LLMRequest, OfflineFixProvider, OpenAIFixProvider


def _responses_payload(text: str) -> str:
    return json.dumps(
        {
            "id": "resp_mock",
            "object": "response",
            "status": "completed",
            "output": [
                {
                    "id": "msg_mock",
                    "type": "message",
                    "role": "assistant",
                    "content": [{"type": "output_text", "text": text}],
                }
            ],
        }
    )


def test_openai_provider_sends_prompt_and_extracts_text() -> None:
    payloads = []

    def transport(payload: dict) -> str:
        payloads.append(payload)
        return _responses_payload("Use a stable selector.")

    provider = OpenAIFixProvider(model="gpt-test", transport=transport, temperature=0.2, max_output_tokens=256)

    assert provider.generate_completion("# Instructions\nfix it") == "Use a stable selector."
    [payload] = payloads
    assert payload["model"] == "gpt-test"
    assert payload["max_output_tokens"] == 256
    assert payload["temperature"] == 0.2
    assert payload["input"][0]["content"][0]["text"] == FIX_SYSTEM_PROMPT
    assert payload["input"][1] == {"role": "user", "content": [{"type": "input_text", "text": "# Instructions\nfix it"}]}


def test_transport_failures_are_retried() -> None:
    responses = iter(
        [
            ProviderError("503", kind=ErrorKind.TRANSPORT),
            json.dumps({"output_text": "second time lucky"}),
        ]
    )

    def transport(_: dict) -> str:
        result = next(responses)
        if isinstance(result, Exception):
            raise result
        return result

    provider = OpenAIFixProvider(transport=transport, retry_delay=0)

    assert provider.generate_completion("prompt") == "second time lucky"


def test_retries_are_bounded_and_keep_transport_kind() -> None:
    calls = []

    def transport(_: dict) -> str:
        calls.append(1)
        raise ProviderError("connection reset", kind=ErrorKind.TRANSPORT)

    provider = OpenAIFixProvider(transport=transport, max_attempts=2, retry_delay=0)

    with pytest.raises(ProviderError) as excinfo:
        provider.generate_completion("prompt")

    assert excinfo.value.kind is ErrorKind.TRANSPORT
    assert len(calls) == 2


def test_rejections_are_not_retried() -> None:
    calls = []

    def transport(_: dict) -> str:
        calls.append(1)
        raise ProviderError("HTTP 400", kind=ErrorKind.REJECTED)

    provider = OpenAIFixProvider(transport=transport, retry_delay=0)

    with pytest.raises(ProviderError):
        provider.generate_completion("prompt")
    assert len(calls) == 1


@pytest.mark.parametrize("raw", ["", json.dumps({"output": []}), json.dumps({"output_text": "   "})])
def test_missing_or_empty_output_is_rejected(raw: str) -> None:
    provider = OpenAIFixProvider(transport=lambda _: raw, retry_delay=0)

    with pytest.raises(ProviderError) as excinfo:
        provider.generate_completion("prompt")

    assert excinfo.value.kind is ErrorKind.REJECTED


def test_chat_completion_payloads_are_understood() -> None:
    raw = json.dumps({"choices": [{"message": {"role": "assistant", "content": "chat answer"}}]})
    provider = OpenAIFixProvider(transport=lambda _: raw)

    assert provider.generate_completion("prompt") == "chat answer"


def test_missing_api_key_is_a_configuration_error(monkeypatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    with pytest.raises(ProviderError) as excinfo:
        OpenAIFixProvider()

    assert excinfo.value.kind is ErrorKind.CONFIGURATION


def test_request_payload_omits_zero_temperature_and_trims_metadata() -> None:
    request = LLMRequest(prompt="p", system_prompt=None, temperature=0.0, metadata={"test": "x" * 600})

    payload = request.to_payload("default-model")

    assert payload["model"] == "default-model"
    assert "temperature" not in payload
    assert len(payload["input"]) == 1
    assert len(payload["metadata"]["test"]) == 512


def test_offline_provider_advises_by_failure_category() -> None:
    prompt = "# Test info\n\n- Name: x\n\n# Error details\n\n```\nTimeoutError: waiting for selector\n```\n\n# Stack trace\n"

    suggestion = OfflineFixProvider().generate_completion(prompt)

    assert "Failure category: TimeoutError." in suggestion
    assert "```" not in suggestion
