"""
test_llm_client.py — Primary/fallback routing in the litellm wrapper.

litellm is never called: ``_acompletion`` is monkeypatched per test.
"""

import asyncio

import pytest

from app.services import llm_client
from app.services.errors import ProviderError


@pytest.fixture
def calls(monkeypatch):
    """Returns (recorded calls, per-model behaviour). Unset models answer "ok"."""
    recorded = []
    behaviour = {}

    async def fake_acompletion(model, **kwargs):
        recorded.append((model, kwargs))
        outcome = behaviour.get(model, "ok")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    monkeypatch.setattr(llm_client, "_acompletion", fake_acompletion)
    return recorded, behaviour


class TestComplete:

    def test_primary_used_when_healthy(self, calls):
        recorded, behaviour = calls
        behaviour[llm_client.LLM_PRIMARY_MODEL] = "primary answer"
        result = asyncio.run(llm_client.complete([{"role": "user", "content": "hi"}], json_mode=True))
        assert result == "primary answer"
        assert [m for m, _ in recorded] == [llm_client.LLM_PRIMARY_MODEL]
        assert recorded[0][1]["response_format"] == {"type": "json_object"}

    def test_falls_back_on_error(self, calls):
        recorded, behaviour = calls
        behaviour[llm_client.LLM_PRIMARY_MODEL] = RuntimeError("503")
        behaviour[llm_client.LLM_FALLBACK_MODEL] = "fallback answer"
        result = asyncio.run(llm_client.complete(
            [{"role": "system", "content": "Be brief."}, {"role": "user", "content": "hi"}],
            json_mode=True,
        ))
        assert result == "fallback answer"
        model, kwargs = recorded[1]
        assert model == llm_client.LLM_FALLBACK_MODEL
        assert "response_format" not in kwargs
        assert kwargs["messages"][0]["content"].endswith("Respond with valid JSON only.")

    def test_both_fail_raises_provider_error(self, calls):
        _, behaviour = calls
        behaviour[llm_client.LLM_PRIMARY_MODEL] = RuntimeError("down")
        behaviour[llm_client.LLM_FALLBACK_MODEL] = RuntimeError("also down")
        with pytest.raises(ProviderError, match="also down"):
            asyncio.run(llm_client.complete([{"role": "user", "content": "hi"}]))


class TestVisionMessages:

    def test_image_parts_and_system_prompt(self, calls):
        recorded, _ = calls
        asyncio.run(llm_client.complete_with_vision(
            ["QUJD"], "Check this.", system_prompt="sys", mime_type="image/png",
        ))
        messages = recorded[0][1]["messages"]
        assert messages[0] == {"role": "system", "content": "sys"}
        parts = messages[1]["content"]
        assert parts[0]["image_url"]["url"] == "data:image/png;base64,QUJD"
        assert parts[1] == {"type": "text", "text": "Check this."}

    def test_json_instruction_added_without_system_message(self):
        messages = llm_client._with_json_instruction([{"role": "user", "content": "x"}])
        assert messages[0]["role"] == "system"
        assert len(messages) == 2

    def test_unknown_role_falls_back_to_analyst_prompt(self):
        assert llm_client.get_system_prompt("nobody") == llm_client.get_system_prompt("analyst")
