"""Pipeline orchestration and audit records."""
