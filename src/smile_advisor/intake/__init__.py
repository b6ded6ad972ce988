"""Intake payload validation."""
