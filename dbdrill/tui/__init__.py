"""Terminal user interface (Textual + Rich)."""
