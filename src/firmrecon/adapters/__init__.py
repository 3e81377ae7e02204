"""Infrastructure adapters: HTTP sources, the tax registry and SQL persistence."""
