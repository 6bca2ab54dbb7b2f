# portal/models/__init__.py
"""
Database models module initialization.
Exports all Tortoise ORM models for convenient imports.

Models exported:
- Account: Registered identity with credentials, session counters and verification state
"""
from .account import Account
