import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from agents.meta.semantic_agent import SemanticAnalyzer
from exceptions.custom_exceptions import AIProcessingException

ANALYSIS = {
    "summary": "Lightweight trail running shoes",
    "keywords": ["trail shoes", "running"],
    "value_proposition": "Grip on any terrain",
    "category": "Footwear",
    "target_segments": [{"segment": "Trail runners", "pain_points": ["slipping"]}],
    "competitor_analysis": {"main_competitors": [{"name": "Salomon"}]},
}


def _llm_response(content: str) -> MagicMock:
    return MagicMock(choices=[MagicMock(message=MagicMock(content=content))])


@pytest.mark.asyncio
async def test_analyze_parses_fenced_json():
    content = "```json\n" + json.dumps(ANALYSIS) + "\n```"

    with patch(
        "agents.meta.semantic_agent.chat_completion", new=AsyncMock(return_value=_llm_response(content))
    ) as mock_llm:
        analysis = await SemanticAnalyzer(model="test-model").analyze("Trail shoes page", ["US"])

    assert analysis.category == "Footwear"
    assert analysis.target_segments[0].segment == "Trail runners"
    assert analysis.competitor_analysis.main_competitors[0].name == "Salomon"
    kwargs = mock_llm.await_args.kwargs
    assert kwargs["model"] == "test-model"
    assert kwargs["response_format"] == {"type": "json_object"}
    assert "US" in mock_llm.await_args.args[0][1]["content"]


@pytest.mark.asyncio
async def test_blank_text_is_rejected_without_calling_llm():
    with patch("agents.meta.semantic_agent.chat_completion", new=AsyncMock()) as mock_llm:
        with pytest.raises(AIProcessingException):
            await SemanticAnalyzer().analyze("   ")

    mock_llm.assert_not_awaited()


@pytest.mark.asyncio
async def test_llm_failure_is_wrapped():
    with patch("agents.meta.semantic_agent.chat_completion", new=AsyncMock(side_effect=TimeoutError())):
        with pytest.raises(AIProcessingException, match="semantic analysis failed"):
            await SemanticAnalyzer().analyze("Trail shoes page")


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["", "not json", json.dumps({"keywords": ["x"]})])
async def test_unusable_output_raises(content):
    with patch(
        "agents.meta.semantic_agent.chat_completion", new=AsyncMock(return_value=_llm_response(content))
    ):
        with pytest.raises(AIProcessingException):
            await SemanticAnalyzer().analyze("Trail shoes page")
