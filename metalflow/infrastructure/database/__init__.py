"""
Database Infrastructure

Contains the SQLModel schema for the production network and the repositories
that persist it.

Components:
- models: table definitions, unique indexes and foreign keys
- repositories/: generic and entity-specific repositories
- unit_of_work: transactions spanning several repositories
"""
