"""Protocol seams between the core domain and infrastructure adapters."""
