"""Pipeline agents: ingestion, profiling, insights, narrative and charts."""
