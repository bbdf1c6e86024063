"""
Client-facing error messages and the HTTPException builders that carry them.

Every route raises through these helpers so the same condition always
produces the same status code and ``detail`` text. Messages never name
the storage engine or the identity provider; those details go to the logs.

    from dailytest.core.error_responses import ErrorMessages, raise_conflict

    if ledger.exists(key):
        raise_conflict(ErrorMessages.ALREADY_SUBMITTED)
"""

from typing import NoReturn, Optional

from fastapi import HTTPException, status


class ErrorMessages:
    """Message constants grouped by status code. Static methods build messages
    that need an argument.
    """

    # ==========================================================================
    # Authentication Errors (401)
    # ==========================================================================
    MISSING_TOKEN = "No authentication token provided."
    INVALID_TOKEN = "Invalid authentication token."

    # ==========================================================================
    # Not Found Errors (404)
    # ==========================================================================
    TEST_NOT_FOUND = "Test not found."
    NO_TEST_TODAY = "No test is scheduled for today."
    SUBMISSION_NOT_FOUND = "No submission found for this phase."
    COMBINED_RANK_NOT_AVAILABLE = (
        "Combined rank requires on-time submissions for both phases."
    )

    # ==========================================================================
    # Conflict Errors (409)
    # ==========================================================================
    # Also used when the storage-level uniqueness constraint catches a
    # concurrent duplicate (the app-level check passed for both requests).
    ALREADY_SUBMITTED = "Answers for this phase have already been submitted."

    # ==========================================================================
    # Bad Request Errors (400)
    # ==========================================================================
    TEST_NOT_STARTED = "This test has not started yet."
    TEST_NOT_ENDED = "Statistics are available once the test window has ended."
    NOT_A_DUAL_PHASE_TEST = "This test does not have a combined ranking."
    NOT_A_FREE_TEST = "This test is not a free test."
    FREE_TEST_REQUIRES_FREE_ENDPOINT = "Free tests are submitted through the free tier."

    # ==========================================================================
    # Server Errors (500 / 503)
    # ==========================================================================
    IDENTITY_UNAVAILABLE = "Authentication service not available."
    SUBMISSION_FAILED = "Failed to record submission. Please try again later."

    # ==========================================================================
    # Template Methods for Dynamic Messages
    # ==========================================================================
    @staticmethod
    def phase_not_offered(phase: str, test_id: int) -> str:
        """Message when a phase is requested that the test does not have."""
        return f"Phase {phase} is not part of this test (ID: {test_id})."

    @staticmethod
    def test_not_found(test_id: int) -> str:
        """Message when a specific test is not found."""
        return f"Test {test_id} not found."

    @staticmethod
    def database_operation_failed(operation: str) -> str:
        """Generic message for database operation failures."""
        return f"Failed to {operation}. Please try again later."


# ==============================================================================
# HTTPException Builder Functions
# ==============================================================================


def raise_bad_request(detail: str) -> NoReturn:
    """Raise a 400 Bad Request exception.

    Use for client errors where the request is well-formed but not allowed
    in the current state (e.g., submitting before the window opens).

    Args:
        detail: User-facing error message

    Raises:
        HTTPException: 400 Bad Request
    """
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=detail,
    )


def raise_unauthorized(
    detail: str,
    include_www_authenticate: bool = True,
) -> NoReturn:
    """Raise a 401 Unauthorized exception.

    Use for authentication failures (invalid/missing credentials).

    Args:
        detail: User-facing error message
        include_www_authenticate: Whether to include WWW-Authenticate header

    Raises:
        HTTPException: 401 Unauthorized
    """
    headers = {"WWW-Authenticate": "Bearer"} if include_www_authenticate else None
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers=headers,
    )


def raise_not_found(detail: str) -> NoReturn:
    """Raise a 404 Not Found exception.

    Args:
        detail: User-facing error message

    Raises:
        HTTPException: 404 Not Found
    """
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=detail,
    )


def raise_conflict(detail: str) -> NoReturn:
    """Raise a 409 Conflict exception.

    Use when the request conflicts with current state (e.g., duplicate submission).

    Args:
        detail: User-facing error message

    Raises:
        HTTPException: 409 Conflict
    """
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=detail,
    )


def raise_server_error(
    detail: str,
    error_id: Optional[str] = None,
) -> NoReturn:
    """Raise a 500 Internal Server Error exception.

    Always use user-friendly messages; log technical details separately.

    Args:
        detail: User-facing error message (should be generic and friendly)
        error_id: Optional error tracking ID to include in response

    Raises:
        HTTPException: 500 Internal Server Error
    """
    if error_id:
        detail = f"{detail} (Error ID: {error_id})"

    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail,
    )


def raise_service_unavailable(detail: str) -> NoReturn:
    """Raise a 503 Service Unavailable exception.

    Use when a dependency (e.g., the identity provider) failed to initialize
    and the capability is degraded rather than the whole process.

    Args:
        detail: User-facing error message

    Raises:
        HTTPException: 503 Service Unavailable
    """
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=detail,
    )
