"""Floor-plan documents, geometry extraction and structure record building."""
