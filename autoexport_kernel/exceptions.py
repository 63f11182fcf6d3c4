"""
Typed exception hierarchy for the autoexport ledger core.

Every error raised by the core is a subclass of ``AutoExportError`` and
carries a machine-readable ``code`` class attribute plus structured
attributes, so the HTTP layer can map failures to responses without
parsing messages.

    AutoExportError (base)
    |
    +-- ValidationError
    |   +-- MissingFieldError
    |   +-- MissingVendorError
    |   +-- EmptyVehicleListError
    |   +-- DuplicateVehicleError
    |   +-- UnknownVehicleError
    |   +-- InvalidAmountError
    |   +-- SharedInvoiceTypeError
    |
    +-- NotFoundError
    |   +-- InvoiceNotFoundError
    |   +-- SharedInvoiceNotFoundError
    |   +-- ContainerInvoiceNotFoundError
    |   +-- AllocationSourceNotFoundError
    |   +-- TransactionNotFoundError
    |   +-- CostItemNotFoundError
    |
    +-- WorkflowError
    |   +-- InvalidStatusTransitionError
    |   +-- InvoiceCancelledError
    |   +-- InvoiceLockedError
    |   +-- SharedInvoiceInUseError
    |
    +-- NumberingError
    |   +-- InvoiceNumberCollisionError
    |
    +-- ConcurrencyError
        +-- OptimisticLockError

Handling pattern:

    try:
        service.create(...)
    except ValidationError as e:
        return {"error": e.code, "message": str(e)}, 400
    except NotFoundError as e:
        return {"error": e.code}, 404
    except (InvoiceNumberCollisionError, OptimisticLockError) as e:
        return {"error": e.code}, 409

Validation errors are always raised before any row is written.
"""

from decimal import Decimal


class AutoExportError(Exception):
    """Base exception for all ledger-core errors."""

    code: str = "AUTOEXPORT_ERROR"


# Validation errors


class ValidationError(AutoExportError):
    """Base exception for rejected input."""

    code: str = "VALIDATION_ERROR"


class MissingFieldError(ValidationError):
    """A required field was absent or empty."""

    code: str = "MISSING_FIELD"

    def __init__(self, field: str, entity_type: str):
        self.field = field
        self.entity_type = entity_type
        super().__init__(f"{entity_type}: '{field}' is required")


class MissingVendorError(ValidationError):
    """A shared invoice has no vendor, or an edit tried to clear it."""

    code: str = "MISSING_VENDOR"

    def __init__(self, shared_invoice_id: str | None = None):
        self.shared_invoice_id = shared_invoice_id
        target = f" on shared invoice {shared_invoice_id}" if shared_invoice_id else ""
        super().__init__(f"Vendor is required{target}")


class EmptyVehicleListError(ValidationError):
    """An allocation was requested over zero vehicles."""

    code: str = "EMPTY_VEHICLE_LIST"

    def __init__(self, entity_type: str = "SharedInvoice"):
        self.entity_type = entity_type
        super().__init__(f"{entity_type}: at least one vehicle is required")


class DuplicateVehicleError(ValidationError):
    """The same vehicle appears twice in one allocation."""

    code: str = "DUPLICATE_VEHICLE"

    def __init__(self, vehicle_id: str):
        self.vehicle_id = vehicle_id
        super().__init__(f"Vehicle {vehicle_id} listed more than once")


class UnknownVehicleError(ValidationError):
    """One or more referenced vehicles do not exist."""

    code: str = "UNKNOWN_VEHICLE"

    def __init__(self, vehicle_ids: list[str]):
        self.vehicle_ids = vehicle_ids
        super().__init__(f"Vehicles not found: {', '.join(vehicle_ids)}")


class InvalidAmountError(ValidationError):
    """An amount is negative, zero where positive is required, or malformed."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, amount: Decimal | str | None, reason: str):
        self.field = field
        self.amount = str(amount) if amount is not None else None
        self.reason = reason
        super().__init__(f"Invalid {field} {self.amount}: {reason}")


class SharedInvoiceTypeError(ValidationError):
    """A container invoice referenced a shared invoice of the wrong type."""

    code: str = "SHARED_INVOICE_TYPE_MISMATCH"

    def __init__(self, shared_invoice_id: str, expected: str, actual: str):
        self.shared_invoice_id = shared_invoice_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Shared invoice {shared_invoice_id} has type {actual}, expected {expected}"
        )


# Lookup errors


class NotFoundError(AutoExportError):
    """Base exception for missing rows."""

    code: str = "NOT_FOUND"
    entity_type: str = "Entity"

    def __init__(self, entity_id: str):
        self.entity_id = str(entity_id)
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class InvoiceNotFoundError(NotFoundError):
    code: str = "INVOICE_NOT_FOUND"
    entity_type = "Invoice"


class SharedInvoiceNotFoundError(NotFoundError):
    code: str = "SHARED_INVOICE_NOT_FOUND"
    entity_type = "SharedInvoice"


class ContainerInvoiceNotFoundError(NotFoundError):
    code: str = "CONTAINER_INVOICE_NOT_FOUND"
    entity_type = "ContainerInvoice"


class AllocationSourceNotFoundError(NotFoundError):
    """Neither a shared invoice nor a container invoice has this id."""

    code: str = "ALLOCATION_SOURCE_NOT_FOUND"
    entity_type = "Allocation source"


class TransactionNotFoundError(NotFoundError):
    code: str = "TRANSACTION_NOT_FOUND"
    entity_type = "Transaction"


class CostItemNotFoundError(NotFoundError):
    code: str = "COST_ITEM_NOT_FOUND"
    entity_type = "CostItem"


# Workflow errors


class WorkflowError(AutoExportError):
    """Base exception for invalid lifecycle moves."""

    code: str = "WORKFLOW_ERROR"


class InvalidStatusTransitionError(WorkflowError):
    """The approval workflow does not allow this status change."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, invoice_id: str, from_status: str, to_status: str):
        self.invoice_id = invoice_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invoice {invoice_id}: cannot move from {from_status} to {to_status}"
        )


class InvoiceCancelledError(WorkflowError):
    """The invoice is cancelled and can no longer be edited."""

    code: str = "INVOICE_CANCELLED"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice {invoice_id} is cancelled")


class InvoiceLockedError(WorkflowError):
    """The invoice is finalized or locked; only an unlock re-opens it."""

    code: str = "INVOICE_LOCKED"

    def __init__(self, invoice_id: str, status: str):
        self.invoice_id = invoice_id
        self.status = status
        super().__init__(f"Invoice {invoice_id} is locked ({status})")


class SharedInvoiceInUseError(WorkflowError):
    """A shared invoice still backs one or more container invoices."""

    code: str = "SHARED_INVOICE_IN_USE"

    def __init__(self, shared_invoice_id: str, container_invoice_numbers: list[str]):
        self.shared_invoice_id = shared_invoice_id
        self.container_invoice_numbers = container_invoice_numbers
        super().__init__(
            f"Shared invoice {shared_invoice_id} is referenced by "
            f"{', '.join(container_invoice_numbers)}"
        )


# Numbering errors


class NumberingError(AutoExportError):
    code: str = "NUMBERING_ERROR"


class InvoiceNumberCollisionError(NumberingError):
    """Two writers derived the same document number; the unique index won."""

    code: str = "INVOICE_NUMBER_COLLISION"

    def __init__(self, invoice_number: str, entity_type: str):
        self.invoice_number = invoice_number
        self.entity_type = entity_type
        super().__init__(
            f"{entity_type} number {invoice_number} is already taken; retry the request"
        )


# Concurrency errors


class ConcurrencyError(AutoExportError):
    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )
