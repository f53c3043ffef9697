"""
PocketLegal web shell.
"""
