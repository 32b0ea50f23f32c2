"""
Pricing calculations and rate management.

Maps model identifiers to per-million-token rates and display names.
"""

from dataclasses import dataclass
from typing import Tuple

from .records import TokenUsage

TOKENS_PER_MILLION = 1_000_000


@dataclass(frozen=True)
class ModelPricing:
    """USD rates per million tokens for one model family."""
    input_per_mtok: float
    output_per_mtok: float
    cache_read_per_mtok: float
    cache_write_per_mtok: float

    def as_tuple(self) -> Tuple[float, float, float, float]:
        """Rates as (input, output, cache_read, cache_write)."""
        return (
            self.input_per_mtok,
            self.output_per_mtok,
            self.cache_read_per_mtok,
            self.cache_write_per_mtok,
        )


@dataclass(frozen=True)
class PricingEntry:
    """Pricing row matched by model-identifier prefix."""
    prefix: str
    pricing: ModelPricing


@dataclass(frozen=True)
class PricingTable:
    """Ordered pricing table; the first matching prefix wins."""
    entries: Tuple[PricingEntry, ...]
    default: ModelPricing

    def get_pricing(self, model: str) -> ModelPricing:
        """Get pricing for a model, falling back to the default rates.

        Args:
            model: Model identifier, e.g. ``claude-sonnet-4-5-20250929``

        Returns:
            ModelPricing of the first entry whose prefix matches
        """
        for entry in self.entries:
            if model.startswith(entry.prefix):
                return entry.pricing
        return self.default


SONNET_PRICING = ModelPricing(3.00, 15.00, 0.30, 3.75)

# Order matters: more specific prefixes must come before their family prefix
PRICING_TABLE = PricingTable(
    entries=(
        PricingEntry("claude-opus-4", ModelPricing(5.00, 25.00, 0.50, 6.25)),
        PricingEntry("claude-sonnet-4", SONNET_PRICING),
        PricingEntry("claude-haiku-4", ModelPricing(1.00, 5.00, 0.10, 1.25)),
        PricingEntry("claude-haiku-3", ModelPricing(0.25, 1.25, 0.03, 0.30)),
    ),
    default=SONNET_PRICING,
)

# (substring, label), point releases before their parent family
DISPLAY_NAMES: Tuple[Tuple[str, str], ...] = (
    ("opus-4-6", "Opus 4.6"),
    ("opus-4-5", "Opus 4.5"),
    ("opus-4", "Opus 4.5"),
    ("sonnet-4-5", "Sonnet 4.5"),
    ("sonnet-4", "Sonnet 4.5"),
    ("haiku-4", "Haiku 4.5"),
    ("haiku-3", "Haiku 3.5"),
)


def rates_for(model: str) -> Tuple[float, float, float, float]:
    """Rates for a model as (input, output, cache_read, cache_write) USD/MTok."""
    return PRICING_TABLE.get_pricing(model).as_tuple()


def display_name_for(model: str) -> str:
    """Short human label for a model; unknown identifiers are returned as-is."""
    for fragment, label in DISPLAY_NAMES:
        if fragment in model:
            return label
    return model


def calculate_cost(model: str, usage: TokenUsage) -> float:
    """Calculate the USD cost of a token usage for a model.

    No rounding is applied; callers format for display.

    Args:
        model: Model identifier
        usage: Token counts to price

    Returns:
        Sum over the four token kinds of count / 1M * rate
    """
    pricing = PRICING_TABLE.get_pricing(model)
    return (
        usage.input_tokens / TOKENS_PER_MILLION * pricing.input_per_mtok
        + usage.output_tokens / TOKENS_PER_MILLION * pricing.output_per_mtok
        + usage.cache_read_tokens / TOKENS_PER_MILLION * pricing.cache_read_per_mtok
        + usage.cache_creation_tokens / TOKENS_PER_MILLION * pricing.cache_write_per_mtok
    )
