"""Services for the report evaluation and plan generation pipeline."""
