"""External data and execution providers."""
from .dexscreener import DexScreenerAnalyst
from .helius import HeliusClient
from .jupiter import JupiterClient

__all__ = ["DexScreenerAnalyst", "HeliusClient", "JupiterClient"]
