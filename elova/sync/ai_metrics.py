"""Token usage and cost extraction from n8n execution payloads.

Execution data is third-party JSON whose shape depends on which AI node
produced it. Each known shape is a strategy: a predicate plus an extractor
that yields a normalized :class:`TokenUsage`. Strategies are tried in order on
every output item; anything unrecognised or malformed contributes nothing.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Callable

from .pricing import calculate_cost, normalize_model_name

MAX_NESTING = 4


@dataclass(frozen=True)
class TokenUsage:
    total: int
    input: int
    output: int
    model: str | None
    provider: str | None
    node_type: str


@dataclass
class NodeUsage:
    node_name: str
    node_type: str
    tokens: int
    cost: float
    model: str | None = None


@dataclass
class AIMetrics:
    total_tokens: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    ai_cost: float = 0.0
    ai_provider: str | None = None
    ai_model: str | None = None
    node_breakdown: list[NodeUsage] = field(default_factory=list)

    @property
    def has_usage(self) -> bool:
        return self.total_tokens > 0 or self.input_tokens > 0 or self.output_tokens > 0


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return 0
    if isinstance(value, float):
        # JSON NaN/Infinity, or a string such as "1e400"
        if not math.isfinite(value):
            return 0
        return max(int(value), 0)
    return 0


def _guess_provider(model: str | None, default: str) -> str:
    if not model:
        return default
    if model.startswith("claude") or model.startswith(("opus", "sonnet", "haiku")):
        return "anthropic"
    if model.startswith("gemini"):
        return "google"
    if model.startswith(("gpt", "o1", "chatgpt", "azure-gpt")):
        return "openai"
    return default


def _has_dict(json: dict, key: str) -> bool:
    return isinstance(json.get(key), dict)


def _is_anthropic_usage(json: dict) -> bool:
    usage = json.get("usage")
    return isinstance(usage, dict) and ("input_tokens" in usage or "output_tokens" in usage)


def _anthropic_usage(json: dict, model: str | None) -> TokenUsage:
    usage = json["usage"]
    input_tokens = _as_int(usage.get("input_tokens"))
    output_tokens = _as_int(usage.get("output_tokens"))
    return TokenUsage(
        total=input_tokens + output_tokens,
        input=input_tokens,
        output=output_tokens,
        model=model,
        provider=_guess_provider(model, "anthropic"),
        node_type="anthropic",
    )


def _openai_usage(json: dict, model: str | None) -> TokenUsage:
    usage = json["usage"]
    input_tokens = _as_int(usage.get("prompt_tokens"))
    output_tokens = _as_int(usage.get("completion_tokens"))
    total = _as_int(usage.get("total_tokens")) or input_tokens + output_tokens
    return TokenUsage(
        total=total,
        input=input_tokens,
        output=output_tokens,
        model=model,
        provider=_guess_provider(model, "openai"),
        node_type="openai",
    )


def _langchain_usage(json: dict, model: str | None) -> TokenUsage:
    usage = json["tokenUsage"]
    input_tokens = _as_int(usage.get("promptTokens"))
    output_tokens = _as_int(usage.get("completionTokens"))
    total = _as_int(usage.get("totalTokens")) or input_tokens + output_tokens
    return TokenUsage(
        total=total,
        input=input_tokens,
        output=output_tokens,
        model=model,
        provider=_guess_provider(model, "openai"),
        node_type="ai-agent",
    )


def _google_usage(json: dict, model: str | None) -> TokenUsage:
    usage = json["usageMetadata"]
    input_tokens = _as_int(usage.get("promptTokenCount"))
    output_tokens = _as_int(usage.get("candidatesTokenCount"))
    total = _as_int(usage.get("totalTokenCount")) or input_tokens + output_tokens
    return TokenUsage(
        total=total,
        input=input_tokens,
        output=output_tokens,
        model=model,
        provider=_guess_provider(model, "google"),
        node_type="google-ai",
    )


Strategy = tuple[Callable[[dict], bool], Callable[[dict, "str | None"], TokenUsage]]

# Anthropic must precede OpenAI: both live under ``usage``.
STRATEGIES: list[Strategy] = [
    (_is_anthropic_usage, _anthropic_usage),
    (lambda json: _has_dict(json, "usage"), _openai_usage),
    (lambda json: _has_dict(json, "tokenUsage"), _langchain_usage),
    (lambda json: _has_dict(json, "usageMetadata"), _google_usage),
]


def extract_token_usage(json: Any, *, _model: str | None = None, _depth: int = 0) -> TokenUsage | None:
    """Find token usage in one output item's ``json`` block."""
    if not isinstance(json, dict) or _depth > MAX_NESTING:
        return None

    raw_model = json.get("model") or json.get("modelName")
    model = normalize_model_name(raw_model) if isinstance(raw_model, str) else _model

    for predicate, extractor in STRATEGIES:
        if predicate(json):
            return extractor(json, model)

    for key in ("response", "data"):
        nested = json.get(key)
        if isinstance(nested, dict):
            found = extract_token_usage(nested, _model=model, _depth=_depth + 1)
            if found:
                return found
    return None


def _run_data(payload: Any) -> dict:
    """Locate the ``runData`` mapping in an execution, its data block, or itself."""
    if not isinstance(payload, dict):
        return {}
    data = payload.get("data")
    if isinstance(data, dict) and "resultData" in data:
        payload = data
    result_data = payload.get("resultData")
    if isinstance(result_data, dict):
        run_data = result_data.get("runData")
        return run_data if isinstance(run_data, dict) else {}
    if "runData" in payload:
        run_data = payload.get("runData")
        return run_data if isinstance(run_data, dict) else {}
    if "data" in payload:
        return {}
    return payload


def _output_items(run: dict) -> list:
    data = run.get("data")
    if not isinstance(data, dict):
        return []
    items: list = []
    for connection in ("main", "ai_languageModel"):
        outputs = data.get(connection)
        if isinstance(outputs, list) and outputs and isinstance(outputs[0], list):
            items.extend(outputs[0])
    return items


def _node_usage(run: dict) -> TokenUsage | None:
    for item in _output_items(run):
        if isinstance(item, dict):
            usage = extract_token_usage(item.get("json"))
            if usage:
                return usage
    return None


def extract_ai_metrics(payload: Any) -> AIMetrics:
    """Sum token usage and cost across every node run of one execution.

    Never raises; payloads without recognisable usage produce zeroed metrics.
    """
    metrics = AIMetrics()

    for node_name, node_runs in _run_data(payload).items():
        if not isinstance(node_runs, list):
            continue
        for run in node_runs:
            if not isinstance(run, dict):
                continue
            usage = _node_usage(run)
            if usage is None:
                continue

            cost = calculate_cost(usage.input, usage.output, usage.model)
            metrics.total_tokens += usage.total
            metrics.input_tokens += usage.input
            metrics.output_tokens += usage.output
            metrics.ai_cost += cost
            if metrics.ai_provider is None and usage.provider:
                metrics.ai_provider = usage.provider
            if metrics.ai_model is None and usage.model:
                metrics.ai_model = usage.model
            if usage.total > 0:
                metrics.node_breakdown.append(
                    NodeUsage(
                        node_name=str(node_name),
                        node_type=usage.node_type,
                        tokens=usage.total,
                        cost=cost,
                        model=usage.model,
                    )
                )

    return metrics
