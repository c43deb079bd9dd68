"""Structure record persistence and ingestion."""
