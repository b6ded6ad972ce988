"""Report composition and placeholder resolution."""
