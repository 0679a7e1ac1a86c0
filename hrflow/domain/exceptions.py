"""Domain exceptions for the approval engine.

Each exception carries a machine-readable error_code; the presentation layer
maps codes to HTTP status in hrflow.core.exception_handlers. Escalation
outcomes (timeouts, unsatisfiable steps at submission) are recorded on the
instance and never raised.
"""

from typing import Any


class HRFlowException(Exception):
    """Base exception for all approval engine errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. instance_id, step_index).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON error body used by the API."""
        body: dict[str, Any] = {"error": self.error_code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationException(HRFlowException):
    """Raised when input validation fails (e.g. invalid flow definition)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        details = {"field": field} if field else {}
        super().__init__(message, "VALIDATION_ERROR", details)


class TenantRequiredException(HRFlowException):
    """Raised when a tenant-scoped request carries no (or a malformed) tenant id."""

    def __init__(self, header_name: str = "X-Tenant-ID") -> None:
        super().__init__(
            f"A valid {header_name} header is required",
            "TENANT_REQUIRED",
            {"header": header_name},
        )


class ResourceNotFoundException(HRFlowException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource_type: str, resource_id: str) -> None:
        """Initialize with resource type and id.

        Args:
            resource_type: Type of resource (e.g. 'flow_definition', 'flow_instance').
            resource_id: The ID that was not found.
        """
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            "RESOURCE_NOT_FOUND",
            {"resource_type": resource_type, "resource_id": resource_id},
        )


# ---- Configuration errors ----


class NoApplicableFlowError(HRFlowException):
    """Raised when no active definition matches a document and no default exists."""

    def __init__(self, tenant_id: str, document_type: str) -> None:
        super().__init__(
            f"No applicable approval flow for {document_type}",
            "NO_APPLICABLE_FLOW",
            {"tenant_id": tenant_id, "document_type": document_type},
        )


class UnsatisfiableStepError(HRFlowException):
    """Raised when a step can never reach its quorum from its approver specs.

    Only statically detectable cases (literal user approvers) are raised at
    definition time; at submission an unsatisfiable step is escalated instead.
    """

    def __init__(self, step_number: int, available: int, required: int) -> None:
        super().__init__(
            f"Step {step_number} requires {required} approvals but only "
            f"{available} approver(s) can be resolved",
            "UNSATISFIABLE_STEP",
            {"step_number": step_number, "available": available, "required": required},
        )


class DefaultFlowDeletionError(HRFlowException):
    """Raised when deleting the default definition for a document type."""

    def __init__(self, definition_id: str, document_type: str) -> None:
        super().__init__(
            "The default approval flow cannot be deleted; promote another flow first",
            "DEFAULT_FLOW_DELETION",
            {"definition_id": definition_id, "document_type": document_type},
        )


# ---- Authorization and ordering errors ----


class UnauthorizedApproverError(HRFlowException):
    """Raised when the decider is neither a resolved approver nor an active delegate of one."""

    def __init__(self, instance_id: str, step_index: int, approver_id: str) -> None:
        super().__init__(
            f"User {approver_id} may not decide step {step_index} of instance {instance_id}",
            "UNAUTHORIZED_APPROVER",
            {"instance_id": instance_id, "step_index": step_index, "approver_id": approver_id},
        )


class OutOfOrderDecisionError(HRFlowException):
    """Raised when a decision targets a step or serial slot that is not yet current."""

    def __init__(
        self,
        instance_id: str,
        step_index: int,
        message: str = "Decision is out of order",
        **details_extra: Any,
    ) -> None:
        super().__init__(
            message,
            "OUT_OF_ORDER_DECISION",
            {"instance_id": instance_id, "step_index": step_index, **details_extra},
        )


class StaleStateError(HRFlowException):
    """Raised when a decision arrives for state that has already moved on."""

    def __init__(
        self,
        instance_id: str,
        message: str = "Instance state has changed; reload and retry",
        error_code: str = "STALE_STATE",
        **details_extra: Any,
    ) -> None:
        super().__init__(message, error_code, {"instance_id": instance_id, **details_extra})


class InstanceVersionConflictError(StaleStateError):
    """Raised when a conditional save lost the optimistic version race."""

    def __init__(self, instance_id: str, expected_version: int) -> None:
        super().__init__(
            instance_id,
            "Instance was updated by another request; retry.",
            "INSTANCE_VERSION_CONFLICT",
            expected_version=expected_version,
        )


class DuplicateSubmissionError(HRFlowException):
    """Raised when a document already has a pending approval instance."""

    def __init__(self, document_type: str, document_id: str, instance_id: str) -> None:
        super().__init__(
            f"{document_type} {document_id} already has a pending approval",
            "DUPLICATE_SUBMISSION",
            {
                "document_type": document_type,
                "document_id": document_id,
                "instance_id": instance_id,
            },
        )


# ---- Delegation errors ----


class DelegationConflictError(HRFlowException):
    """Raised when a delegation is invalid or overlaps an existing active one."""

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message, "DELEGATION_CONFLICT", details)


class SqlNotConfiguredException(HRFlowException):
    """Raised when an operation requires Postgres but DATABASE_URL is not set."""

    def __init__(self) -> None:
        super().__init__(
            message="This operation requires a SQL database that is not configured.",
            error_code="SQL_NOT_CONFIGURED",
        )
