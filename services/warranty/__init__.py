"""
Warranty Claim Service
======================

Owns the warranty-claim lifecycle for purchased accounts:
- Eligibility of purchases for new claims
- Claim submission with one open claim per purchase
- Admin review workflow
- Exactly-once refund settlement to member balances
- Realtime claim updates for members and admins

Port: 8010
"""

__version__ = "0.1.0"
