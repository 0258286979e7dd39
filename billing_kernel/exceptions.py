"""
Typed exception hierarchy for the billing kernel.

Every error carries a machine-readable ``code`` class attribute and its
context as attributes, so callers catch by type and log structured data
instead of parsing messages.

    BillingKernelError (base)
    |
    +-- DocumentError
    |   +-- DocumentNotFoundError
    |   +-- UnknownDocumentKindError
    |   +-- LineageEdgeError
    |
    +-- StoreError
    |   +-- UnknownTableError
    |   +-- StoreWriteError
    |
    +-- ConfigError

Outcomes that are part of normal operation are NOT exceptions:

    - "already generated" (idempotent cascade) is CascadeStatus.ALREADY_PROCESSED
    - a failed cascade stage is CascadeStatus.DOCUMENT_CREATION_FAILED
    - a failed reconciliation is SyncStatus.SYNC_FAILED

The orchestrator and the reconciler catch the store errors below and turn
them into those result values, naming the stage that failed.

Code            | When Raised
----------------|--------------------------------------------------------
DOCUMENT_NOT_FOUND   | Document id does not exist in its table
UNKNOWN_DOCUMENT_KIND| Kind name is not quote/purchase_order/...
LINEAGE_EDGE_INVALID | Document kind has no upstream of the requested type
UNKNOWN_TABLE        | Store asked for a table with no mapped model
STORE_WRITE_FAILED   | Insert/update/delete rejected by the database
CONFIG_INVALID       | YAML configuration failed validation
"""

from typing import Any


class BillingKernelError(Exception):
    """
    Base exception for all billing kernel errors.

    All subclasses must define a ``code`` class attribute.
    """

    code: str = "BILLING_KERNEL_ERROR"


# Document-related exceptions


class DocumentError(BillingKernelError):
    """Base exception for document-related errors."""

    code: str = "DOCUMENT_ERROR"


class DocumentNotFoundError(DocumentError):
    """Document with given ID was not found."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, kind: str, document_id: Any):
        self.kind = kind
        self.document_id = str(document_id)
        super().__init__(f"{kind} not found: {document_id}")


class UnknownDocumentKindError(DocumentError):
    """Document kind name is not recognised."""

    code: str = "UNKNOWN_DOCUMENT_KIND"

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"Unknown document kind: {kind!r}")


class LineageEdgeError(DocumentError):
    """Requested lineage edge does not exist for this document kind."""

    code: str = "LINEAGE_EDGE_INVALID"

    def __init__(self, kind: str, reason: str):
        self.kind = kind
        self.reason = reason
        super().__init__(f"Invalid lineage edge for {kind}: {reason}")


# Store-related exceptions


class StoreError(BillingKernelError):
    """Base exception for record store errors."""

    code: str = "STORE_ERROR"


class UnknownTableError(StoreError):
    """No ORM model is mapped to the requested table name."""

    code: str = "UNKNOWN_TABLE"

    def __init__(self, table: str):
        self.table = table
        super().__init__(f"No model mapped to table {table!r}")


class StoreWriteError(StoreError):
    """
    A write against the store failed.

    The failed statement has already been rolled back to its savepoint;
    earlier writes in the same session are untouched.
    """

    code: str = "STORE_WRITE_FAILED"

    def __init__(self, table: str, operation: str, reason: str):
        self.table = table
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation} on {table} failed: {reason}")


# Configuration


class ConfigError(BillingKernelError, ValueError):
    """Configuration failed validation.  Also a ValueError, like any parse failure."""

    code: str = "CONFIG_INVALID"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid configuration for {field}: {reason}")
