"""
Warranty Routes
===============

API route handlers for the Warranty Claim Service.
"""

from services.warranty.routes import admin, claims, evidence, realtime


__all__ = ["admin", "claims", "evidence", "realtime"]
