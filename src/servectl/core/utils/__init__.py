"""Shared utilities for servectl core modules."""
