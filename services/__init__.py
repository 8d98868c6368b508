"""
Canvango Services
=================

Backend services for the Canvango storefront.

Services:
- warranty: Warranty claim lifecycle for purchased accounts
"""

__all__ = [
    "warranty",
]
