"""HTTP API for PlanMatch."""
