"""Service layer for Lychee Notes."""
