"""Retrieval over stored session entries."""
