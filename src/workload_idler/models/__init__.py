"""Data models for owner resolution."""
