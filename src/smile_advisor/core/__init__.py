"""Core configuration and startup checks."""
