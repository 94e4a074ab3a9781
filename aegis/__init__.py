"""Risk-gated orchestration engine for wallet actions."""

__version__ = "0.1.0"
