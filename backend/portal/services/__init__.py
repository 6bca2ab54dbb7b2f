# portal/services/__init__.py
"""
Service layer: password policy, account store, auth coordination and the
outbound email collaborator.
"""
