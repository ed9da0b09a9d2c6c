"""FinOps module: model pricing and the usage ledger."""

from .ledger import InMemoryUsageStore, UsageEntry, UsageLedger, UsageStore
from .pricing import DEFAULT_PRICING_TABLE, ModelPricingTable, PricingRule

__all__ = [
    "DEFAULT_PRICING_TABLE",
    "InMemoryUsageStore",
    "ModelPricingTable",
    "PricingRule",
    "UsageEntry",
    "UsageLedger",
    "UsageStore",
]
