"""
Billing Kernel - document lineage core

Persistence, records and read paths for the Quote -> Purchase Order ->
Delivery Note -> Invoice chain:
- Deterministic content fingerprints for staleness detection
- Row-oriented record store over SQLAlchemy
- Canonical line-item records with per-kind normalization
- Structured JSON logging
"""

__version__ = "0.1.0"
