"""Services: pipeline, coordinator, triggers and lifecycle."""
