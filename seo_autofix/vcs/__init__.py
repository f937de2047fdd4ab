"""Version-control adapter and the structured commit-message envelope."""
