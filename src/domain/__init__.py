"""Domain models and types for the bullion pricing engine.

This package contains in-memory (Pydantic) models describing quotes, series
and derived rate tables. They are independent from cache persistence so that
provider adapters and the resolution engine can evolve without DB coupling.
"""

__all__ = [
    "assets",
    "pricing",
]
