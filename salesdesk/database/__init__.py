"""
Database package initialization.

The package follows a modular structure:
- base: declarative base and common mixins
- connection: async engine and session management
- models: SQLAlchemy ORM models for customers, inventory, orders,
  sale records, installments and audit entries
"""

__all__ = []
