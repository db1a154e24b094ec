"""Prompt builders for THINK, classification and planning calls."""
