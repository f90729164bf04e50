"""Domain layer: entities, store contracts and services."""
