"""
Persistence adapters.

These modules encapsulate how activity types and users are stored and
retrieved. Services depend on these repositories instead of issuing
SQLAlchemy statements themselves.
"""
