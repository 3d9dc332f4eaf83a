"""Data models for Lychee Notes."""
