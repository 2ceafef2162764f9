"""bracket_pool: scoring and statistics engine for single-elimination bracket pools."""
