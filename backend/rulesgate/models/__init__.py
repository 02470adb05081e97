"""Aggregate model imports for Alembic auto-detection."""

from rulesgate.models.agreement import Agreement  # noqa: F401
