"""Tests for domain exceptions (error_code, message, details) and their HTTP mapping."""

import pytest

from hrflow.core.exception_handlers import status_for_error_code
from hrflow.domain.exceptions import (
    DefaultFlowDeletionError,
    DelegationConflictError,
    DuplicateSubmissionError,
    HRFlowException,
    InstanceVersionConflictError,
    NoApplicableFlowError,
    OutOfOrderDecisionError,
    ResourceNotFoundException,
    SqlNotConfiguredException,
    StaleStateError,
    TenantRequiredException,
    UnauthorizedApproverError,
    UnsatisfiableStepError,
    ValidationException,
)


def test_base_exception_to_dict_omits_empty_details() -> None:
    exc = HRFlowException("Something failed", "CUSTOM")
    assert exc.to_dict() == {"error": "CUSTOM", "message": "Something failed"}


def test_validation_exception_carries_field() -> None:
    exc = ValidationException("Invalid", field="steps")
    assert exc.error_code == "VALIDATION_ERROR"
    assert exc.to_dict()["details"] == {"field": "steps"}


def test_version_conflict_is_a_stale_state_error() -> None:
    exc = InstanceVersionConflictError("i1", 3)
    assert isinstance(exc, StaleStateError)
    assert exc.error_code == "INSTANCE_VERSION_CONFLICT"
    assert exc.details == {"instance_id": "i1", "expected_version": 3}


def test_out_of_order_merges_extra_details() -> None:
    exc = OutOfOrderDecisionError("i1", 0, "wait", expected_approver_id="lead")
    assert exc.details == {"instance_id": "i1", "step_index": 0, "expected_approver_id": "lead"}


@pytest.mark.parametrize(
    ("exc", "status"),
    [
        (ValidationException("x"), 400),
        (TenantRequiredException(), 400),
        (ResourceNotFoundException("flow_instance", "i1"), 404),
        (NoApplicableFlowError("t", "leave_request"), 422),
        (UnsatisfiableStepError(1, 0, 1), 422),
        (UnauthorizedApproverError("i1", 0, "bob"), 403),
        (OutOfOrderDecisionError("i1", 1), 409),
        (StaleStateError("i1"), 409),
        (InstanceVersionConflictError("i1", 1), 409),
        (DuplicateSubmissionError("leave_request", "d1", "i1"), 409),
        (DelegationConflictError("overlap"), 409),
        (DefaultFlowDeletionError("f1", "leave_request"), 409),
        (SqlNotConfiguredException(), 503),
    ],
)
def test_error_codes_map_to_http_status(exc: HRFlowException, status: int) -> None:
    assert status_for_error_code(exc.error_code) == status


def test_unmapped_error_code_is_bad_request() -> None:
    assert status_for_error_code("SOMETHING_ELSE") == 400
