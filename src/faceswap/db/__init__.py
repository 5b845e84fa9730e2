"""Database helpers and ORM models."""
