"""Tests for token usage extraction from execution payloads."""

from __future__ import annotations

import pytest

from elova.sync.ai_metrics import extract_ai_metrics, extract_token_usage


def _execution(run_data: dict) -> dict:
    return {"id": "1", "data": {"resultData": {"runData": run_data}}}


def _run(json: dict, connection: str = "main") -> dict:
    return {"data": {connection: [[{"json": json}]]}}


def test_openai_usage_gpt4o():
    payload = _execution(
        {
            "OpenAI": [
                _run(
                    {
                        "usage": {"prompt_tokens": 120, "completion_tokens": 80, "total_tokens": 200},
                        "model": "gpt-4o",
                    }
                )
            ]
        }
    )
    metrics = extract_ai_metrics(payload)
    assert metrics.input_tokens == 120
    assert metrics.output_tokens == 80
    assert metrics.total_tokens == 200
    assert metrics.ai_cost == pytest.approx(0.0011)
    assert metrics.ai_provider == "openai"
    assert metrics.ai_model == "gpt-4o"
    assert [n.node_name for n in metrics.node_breakdown] == ["OpenAI"]


def test_anthropic_usage_is_recognised_before_openai():
    usage = extract_token_usage(
        {"usage": {"input_tokens": 50, "output_tokens": 25}, "model": "claude-3-5-sonnet-20241022"}
    )
    assert usage is not None
    assert (usage.input, usage.output, usage.total) == (50, 25, 75)
    assert usage.provider == "anthropic"


def test_google_usage_metadata():
    usage = extract_token_usage(
        {
            "usageMetadata": {"promptTokenCount": 10, "candidatesTokenCount": 5, "totalTokenCount": 15},
            "model": "gemini-1.5-flash",
        }
    )
    assert usage is not None
    assert usage.total == 15
    assert usage.provider == "google"


def test_nested_response_token_usage_inherits_model():
    usage = extract_token_usage(
        {
            "model": "gpt-4o-mini",
            "response": {"tokenUsage": {"promptTokens": 7, "completionTokens": 3, "totalTokens": 10}},
        }
    )
    assert usage is not None
    assert usage.total == 10
    assert usage.model == "gpt-4o-mini"


def test_language_model_connection_and_accumulation():
    payload = _execution(
        {
            "Agent": [
                _run(
                    {"tokenUsage": {"promptTokens": 100, "completionTokens": 50}},
                    connection="ai_languageModel",
                )
            ],
            "Claude": [
                _run({"usage": {"input_tokens": 10, "output_tokens": 5}, "model": "claude-3-haiku"}),
                _run({"usage": {"input_tokens": 20, "output_tokens": 10}, "model": "claude-3-haiku"}),
            ],
        }
    )
    metrics = extract_ai_metrics(payload)
    assert metrics.total_tokens == 150 + 15 + 30
    assert metrics.input_tokens == 130
    assert metrics.ai_provider == "openai"
    assert metrics.ai_model == "claude-3-haiku"
    assert len(metrics.node_breakdown) == 3


def test_first_matching_item_per_run_wins():
    run = {
        "data": {
            "main": [
                [
                    {"json": {"text": "no usage here"}},
                    {"json": {"usage": {"prompt_tokens": 1, "completion_tokens": 1}}},
                    {"json": {"usage": {"prompt_tokens": 100, "completion_tokens": 100}}},
                ]
            ]
        }
    }
    metrics = extract_ai_metrics({"runData": {"Node": [run]}})
    assert metrics.total_tokens == 2


def test_accepts_data_block_and_bare_run_data():
    run_data = {"LLM": [_run({"usage": {"prompt_tokens": 3, "completion_tokens": 4}})]}
    assert extract_ai_metrics({"resultData": {"runData": run_data}}).total_tokens == 7
    assert extract_ai_metrics(run_data).total_tokens == 7


@pytest.mark.parametrize(
    "payload",
    [
        None,
        "not a dict",
        {},
        {"data": None},
        {"data": {"resultData": {"runData": "broken"}}},
        _execution({"Node": "not a list"}),
        _execution({"Node": [None, {"data": "x"}, {"data": {"main": "x"}}]}),
        _execution({"Node": [_run({"usage": "not a dict"})]}),
        _execution({"Node": [_run({"usage": {"prompt_tokens": "lots", "completion_tokens": None}})]}),
        _execution({"Node": [_run({"usage": {"prompt_tokens": "1e400", "completion_tokens": "NaN"}})]}),
        _execution({"Node": [_run({"usage": {"prompt_tokens": float("inf"), "completion_tokens": float("nan")}})]}),
        _execution({"Node": [_run({"tokenUsage": {"promptTokens": "-1e400", "totalTokens": float("-inf")}})]}),
    ],
)
def test_malformed_payloads_yield_zero_metrics(payload):
    metrics = extract_ai_metrics(payload)
    assert metrics.total_tokens == 0
    assert metrics.ai_cost == 0.0
    assert not metrics.has_usage
