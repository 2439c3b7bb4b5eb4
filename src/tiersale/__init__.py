"""tiersale - tiered token sale engine with timelocked governance."""

__version__ = "0.1.0"
