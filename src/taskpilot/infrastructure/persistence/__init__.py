"""File-backed plan and session stores."""
