"""External collaborators: world registrar, rosters, pipeline, messaging, scheduling."""
