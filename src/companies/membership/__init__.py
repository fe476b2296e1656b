"""Company membership roster."""
