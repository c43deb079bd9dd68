"""Similarity search over floor and room structure records."""
