"""Version-control host integration (REST client, workflow commands)."""
