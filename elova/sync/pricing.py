"""AI model pricing (USD per 1K tokens) and cost calculation."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PricingEntry:
    input: float
    output: float


AVERAGE_PRICING = PricingEntry(input=0.002, output=0.006)

AI_PRICING: dict[str, PricingEntry] = {
    # OpenAI GPT-4o
    "gpt-4o": PricingEntry(0.0025, 0.010),
    "gpt-4o-2024-11-20": PricingEntry(0.0025, 0.010),
    "gpt-4o-2024-08-06": PricingEntry(0.0025, 0.010),
    "gpt-4o-2024-05-13": PricingEntry(0.005, 0.015),
    "gpt-4o-audio-preview": PricingEntry(0.0025, 0.010),
    "chatgpt-4o-latest": PricingEntry(0.005, 0.015),
    "gpt-4o-mini": PricingEntry(0.00015, 0.0006),
    "gpt-4o-mini-2024-07-18": PricingEntry(0.00015, 0.0006),
    # OpenAI reasoning
    "o1": PricingEntry(0.015, 0.060),
    "o1-2024-12-17": PricingEntry(0.015, 0.060),
    "o1-preview": PricingEntry(0.015, 0.060),
    "o1-mini": PricingEntry(0.003, 0.012),
    # OpenAI GPT-4 / GPT-3.5
    "gpt-4-turbo": PricingEntry(0.01, 0.03),
    "gpt-4-turbo-preview": PricingEntry(0.01, 0.03),
    "gpt-4-vision-preview": PricingEntry(0.01, 0.03),
    "gpt-4": PricingEntry(0.03, 0.06),
    "gpt-4-0613": PricingEntry(0.03, 0.06),
    "gpt-4-32k": PricingEntry(0.06, 0.12),
    "gpt-3.5-turbo": PricingEntry(0.0005, 0.0015),
    "gpt-3.5-turbo-1106": PricingEntry(0.001, 0.002),
    "gpt-3.5-turbo-instruct": PricingEntry(0.0015, 0.002),
    # Anthropic
    "claude-opus-4.1": PricingEntry(0.015, 0.075),
    "claude-opus-4": PricingEntry(0.015, 0.075),
    "claude-sonnet-4.5": PricingEntry(0.003, 0.015),
    "claude-sonnet-4": PricingEntry(0.003, 0.015),
    "claude-haiku-4.5": PricingEntry(0.001, 0.005),
    "claude-3-5-sonnet": PricingEntry(0.003, 0.015),
    "claude-3-5-sonnet-20241022": PricingEntry(0.003, 0.015),
    "claude-3-5-sonnet-20240620": PricingEntry(0.003, 0.015),
    "claude-3-5-sonnet-latest": PricingEntry(0.003, 0.015),
    "claude-3-5-haiku": PricingEntry(0.0008, 0.004),
    "claude-3-5-haiku-20241022": PricingEntry(0.0008, 0.004),
    "claude-3-5-haiku-latest": PricingEntry(0.0008, 0.004),
    "claude-3-opus": PricingEntry(0.015, 0.075),
    "claude-3-opus-latest": PricingEntry(0.015, 0.075),
    "claude-3-sonnet": PricingEntry(0.003, 0.015),
    "claude-3-haiku": PricingEntry(0.00025, 0.00125),
    "claude-2.1": PricingEntry(0.008, 0.024),
    "claude-2": PricingEntry(0.008, 0.024),
    "claude-instant": PricingEntry(0.0008, 0.0024),
    # Google
    "gemini-2.0-flash-exp": PricingEntry(0.0, 0.0),
    "gemini-1.5-pro": PricingEntry(0.00125, 0.005),
    "gemini-1.5-flash": PricingEntry(0.000075, 0.0003),
    "gemini-1.0-pro": PricingEntry(0.0005, 0.0015),
    "gemini-pro": PricingEntry(0.0005, 0.0015),
    # Azure OpenAI
    "azure-gpt-4o": PricingEntry(0.0025, 0.010),
    "azure-gpt-4": PricingEntry(0.03, 0.06),
    "azure-gpt-35-turbo": PricingEntry(0.0005, 0.0015),
}

# Dated or aliased names folded onto a priced name.
MODEL_ALIASES: dict[str, str] = {
    "gpt-4-turbo-2024-04-09": "gpt-4-turbo",
    "gpt-4-0125-preview": "gpt-4-turbo-preview",
    "gpt-4-1106-preview": "gpt-4-turbo-preview",
    "gpt-3.5-turbo-0125": "gpt-3.5-turbo",
    "claude-3-opus-20240229": "claude-3-opus",
    "claude-3-sonnet-20240229": "claude-3-sonnet",
    "claude-3-haiku-20240307": "claude-3-haiku",
    "gemini-1.5-pro-latest": "gemini-1.5-pro",
    "gemini-1.5-flash-latest": "gemini-1.5-flash",
    "opus-4.1": "claude-opus-4.1",
    "sonnet-4.5": "claude-sonnet-4.5",
    "haiku-4.5": "claude-haiku-4.5",
}


def normalize_model_name(model: str | None) -> str | None:
    if not isinstance(model, str) or not model.strip():
        return None
    normalized = model.strip().lower()
    # LangChain and Google sometimes prefix the resource path.
    if normalized.startswith("models/"):
        normalized = normalized[len("models/"):]
    return MODEL_ALIASES.get(normalized, normalized)


def get_model_pricing(model: str | None) -> PricingEntry | None:
    normalized = normalize_model_name(model)
    if normalized is None:
        return None
    return AI_PRICING.get(normalized)


def calculate_cost(input_tokens: int, output_tokens: int, model: str | None) -> float:
    """Estimated USD cost; unpriced models fall back to the blended average."""
    pricing = get_model_pricing(model) or AVERAGE_PRICING
    return (input_tokens / 1000) * pricing.input + (output_tokens / 1000) * pricing.output
