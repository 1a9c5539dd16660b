"""Token cost estimation per model tier."""

from __future__ import annotations

import os
from dataclasses import dataclass

from agent_swarm.swarm.models import MODEL_TIERS, ModelTier

INPUT_TOKEN_SHARE = 0.6


@dataclass(slots=True)
class TierPricing:
    """Per-tier input/output pricing in USD per 1K tokens."""

    input_per_1k: float
    output_per_1k: float


def tier_pricing(tier: ModelTier) -> TierPricing:
    """Return pricing for a tier, honoring `AGENT_SWARM_TIER_PRICING` overrides."""

    override = _parse_pricing_mapping(os.getenv("AGENT_SWARM_TIER_PRICING", "")).get(tier)
    if override is not None:
        return override
    info = MODEL_TIERS[tier]
    return TierPricing(input_per_1k=info.input_per_1k, output_per_1k=info.output_per_1k)


def estimate_cost_usd(
    *,
    tier: ModelTier,
    input_tokens: int | None = None,
    output_tokens: int | None = None,
    total_tokens: int | None = None,
) -> float:
    """Estimate cost in USD for token usage at the given tier.

    Explicit input/output counts win; a bare total is split 60/40 between
    input and output.
    """

    pricing = tier_pricing(tier)
    if input_tokens is not None and output_tokens is not None:
        prompt, completion = float(input_tokens), float(output_tokens)
    else:
        total = float(total_tokens or 0)
        prompt = total * INPUT_TOKEN_SHARE
        completion = total - prompt
    return (prompt / 1_000) * pricing.input_per_1k + (completion / 1_000) * pricing.output_per_1k


def _parse_pricing_mapping(raw: str) -> dict[ModelTier, TierPricing]:
    """Parse `AGENT_SWARM_TIER_PRICING` mapping.

    Format:
    - `tier:input_per_1k:output_per_1k`
    - multiple entries separated by `,`
    - unknown tiers, negative prices and malformed entries are ignored
    """

    parsed: dict[ModelTier, TierPricing] = {}
    if not raw.strip():
        return parsed

    for entry in raw.split(","):
        value = entry.strip()
        if not value:
            continue
        parts = [part.strip() for part in value.split(":")]
        if len(parts) != 3:
            continue
        tier_name, input_price, output_price = parts
        try:
            tier = ModelTier(tier_name.upper())
            input_per_1k = float(input_price)
            output_per_1k = float(output_price)
        except ValueError:
            continue
        if input_per_1k < 0 or output_per_1k < 0:
            continue
        parsed[tier] = TierPricing(input_per_1k=input_per_1k, output_per_1k=output_per_1k)
    return parsed
