"""Application layer: settings and dependency wiring."""
