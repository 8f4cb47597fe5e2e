from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from policy_loop.core.errors import GenerationError, InvalidJSONError
from policy_loop.llm import client as client_module
from policy_loop.llm.client import LLMClient, redact
from policy_loop.llm.parser import extract_json_text


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.fixture
def acompletion(monkeypatch):
    mock = AsyncMock()
    monkeypatch.setattr(client_module.litellm, "acompletion", mock)
    return mock


@pytest.fixture
def llm():
    return LLMClient(model="openai/test-model", api_key="sk-test", base_url="http://localhost:9999/v1")


class TestExtractJsonText:
    def test_fenced_json_block(self):
        assert extract_json_text('Here you go:\n```json\n{"a":1}\n```\n') == '{"a":1}'

    def test_fenced_block_without_language(self):
        assert extract_json_text('```\n{"a": 2}\n```') == '{"a": 2}'

    def test_embedded_object(self):
        assert extract_json_text('blah {"a":1} blah') == '{"a":1}'

    def test_first_brace_to_last_brace(self):
        text = 'prefix {"a": {"b": 1}} suffix'
        assert extract_json_text(text) == '{"a": {"b": 1}}'

    def test_passthrough(self):
        assert extract_json_text("  no json here  ") == "no json here"


class TestGenerate:
    @pytest.mark.asyncio
    async def test_returns_content_and_forwards_config(self, llm, acompletion):
        acompletion.return_value = completion("Hello")
        assert await llm.generate("sys", "user", temperature=0.4) == "Hello"

        kwargs = acompletion.call_args.kwargs
        assert kwargs["model"] == "openai/test-model"
        assert kwargs["api_key"] == "sk-test"
        assert kwargs["api_base"] == "http://localhost:9999/v1"
        assert kwargs["temperature"] == 0.4
        assert kwargs["messages"][0] == {"role": "system", "content": "sys"}

    @pytest.mark.asyncio
    async def test_empty_content_raises(self, llm, acompletion):
        acompletion.return_value = completion("   ")
        with pytest.raises(GenerationError, match="empty"):
            await llm.generate("sys", "user")

    @pytest.mark.asyncio
    async def test_upstream_error_is_wrapped_and_redacted(self, llm, acompletion):
        acompletion.side_effect = RuntimeError("401 bad key sk-abcdefghijklmnopqrstuvwxyz")
        with pytest.raises(GenerationError) as excinfo:
            await llm.generate("sys", "user")
        assert "sk-abcdefghijklmnopqrstuvwxyz" not in str(excinfo.value)
        assert "REDACTED" in str(excinfo.value)


class TestGenerateJson:
    @pytest.mark.asyncio
    async def test_parses_fenced_json(self, llm, acompletion):
        acompletion.return_value = completion('Here you go:\n```json\n{"a":1}\n```\n')
        assert await llm.generate_json("sys", "user") == {"a": 1}
        assert acompletion.await_count == 1

    @pytest.mark.asyncio
    async def test_retries_once_on_parse_failure(self, llm, acompletion):
        acompletion.side_effect = [completion("not json at all"), completion('{"ok": true}')]
        assert await llm.generate_json("sys", "user") == {"ok": True}
        assert acompletion.await_count == 2

    @pytest.mark.asyncio
    async def test_two_failures_raise_with_raw_prefix(self, llm, acompletion):
        garbage = "garbage " * 200
        acompletion.return_value = completion(garbage)
        with pytest.raises(InvalidJSONError) as excinfo:
            await llm.generate_json("sys", "user")
        assert acompletion.await_count == 2
        assert "garbage garbage" in str(excinfo.value)
        assert len(str(excinfo.value)) < len(garbage)
        assert excinfo.value.raw == garbage

    @pytest.mark.asyncio
    async def test_upstream_error_is_not_retried(self, llm, acompletion):
        acompletion.side_effect = RuntimeError("connection refused")
        with pytest.raises(GenerationError):
            await llm.generate_json("sys", "user")
        assert acompletion.await_count == 1


def test_redact_leaves_short_tokens():
    assert redact("sk-short") == "sk-short"
