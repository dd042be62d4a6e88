"""Top-level servectl commands (auto-discovered)."""
