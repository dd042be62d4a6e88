"""Core library: configuration, process capabilities and server lifecycle."""
