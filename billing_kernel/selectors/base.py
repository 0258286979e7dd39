"""
Module: billing_kernel.selectors.base
Responsibility: Abstract base class for the read-only selectors.
Architecture position: Kernel > Selectors.  May import from store, domain/
    and utils/.  MUST NOT import from billing_engines or billing_services.

Invariants enforced:
    - Read-only access: selectors receive a RecordStore from the caller and
      only ever call its find_* methods.
    - Record return convention: selectors return frozen domain records
      (Document, SyncCheck, Lineage), never raw rows.
"""

from abc import ABC

from billing_kernel.store import RecordStore


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a RecordStore from the caller, perform read-only
        lookups, and return domain records.  They MUST NOT write.
    """

    def __init__(self, store: RecordStore):
        self.store = store
