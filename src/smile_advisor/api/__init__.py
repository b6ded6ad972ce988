"""HTTP API for report generation."""
