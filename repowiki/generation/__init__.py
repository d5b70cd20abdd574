"""Documentation generation stages: planning, writing and post-processing."""
