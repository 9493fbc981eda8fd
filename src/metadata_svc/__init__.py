"""
Metadata Service - Server Contextualization

Produces a compact snapshot of a SQL Server catalog for context-consuming
features:
- Hierarchy of databases, schemas, tables/views, columns and foreign keys
- Built-in and configurable exclusions per level, optional pruning of empty nodes
- Deterministic on-disk cache per server and exclusion settings, with TTL
"""

__version__ = "0.1.0"
