"""
JSON route blueprints.
"""
