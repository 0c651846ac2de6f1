"""Persistence layer: ORM models and repository implementations."""
