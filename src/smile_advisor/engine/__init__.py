"""Deterministic decision engine: tags, drivers, scenarios, tone and content selection."""
