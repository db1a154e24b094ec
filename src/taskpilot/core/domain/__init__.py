"""Domain models, events and orchestration state machines."""
