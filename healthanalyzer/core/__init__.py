"""Relational core: configuration, errors, entities, schema and data access."""
