"""Structural check categories run by the composition validator."""
