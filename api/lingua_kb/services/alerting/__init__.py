"""Alert delivery for orchestration failures."""
