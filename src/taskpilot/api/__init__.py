"""Outer API surfaces."""
