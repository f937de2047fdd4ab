"""Site crawler: robots policy, navigation session, signal and link extraction."""
