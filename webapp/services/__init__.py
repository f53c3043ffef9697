"""
External collaborator clients: payments, recording storage, script
generation, geocoding and client media capture.
"""
