# portal/core/__init__.py
"""
Core application modules.
Contains essential infrastructure components:
- db: Tortoise configuration, connection lifecycle and shared query helpers
- errors: Typed failures raised by the account layer
- security: Password hashing, session tokens and signed restore cookies
- timeutil: Date-time arithmetic used by statistics
"""
