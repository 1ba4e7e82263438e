"""Gate data models: tab states, actions and persisted records."""
