"""
Service layer for StudySphere.

Services own transactions and business rules; routes reach them through
``api.dependencies.services``.
"""
