"""
Tunnel Backoff Engine.

Decides how long to wait before retrying a failed IPsec tunnel bring-up
for a given APN, driven by carrier-supplied error policies:
- Carrier/default policy tables loaded from JSON
- Most-specific policy matching per (APN, error)
- Per-APN, per-cause retry bookkeeping
- Event-driven early unthrottling

Architecture: multi-stage config loader + policy matcher + retry ledger behind a per-slot facade
"""

__version__ = "0.1.0"
