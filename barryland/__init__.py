"""BarryLand marketplace client core: favorites reconciliation and API services."""

__version__ = "0.1.0"
