"""
Configuration, ORM models and document persistence.
"""
