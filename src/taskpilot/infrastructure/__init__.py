"""Infrastructure adapters: persistence, retrieval, LLM access and tools."""
