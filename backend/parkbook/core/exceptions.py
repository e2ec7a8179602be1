# backend/parkbook/core/exceptions.py
"""
Domain-specific exceptions for the ParkBook backend.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        """Convert to an HTTPException carrying the domain payload."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when input validation fails (malformed time range, missing fields)."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class UnauthorizedException(DomainException):
    """Raised when the caller has no identity."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenException(DomainException):
    """Raised when the actor lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class InvalidStateException(DomainException):
    """Raised when a lifecycle transition is not allowed from the current state."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        *,
        current: Optional[str] = None,
        target: Optional[str] = None,
    ) -> None:
        details: Dict[str, Any] = {}
        if current is not None:
            details["current"] = current
        if target is not None:
            details["target"] = target
        super().__init__(message=message, code="INVALID_STATE", details=details)


class InvalidSignatureException(DomainException):
    """Raised when a payment provider event fails signature verification."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Invalid signature") -> None:
        super().__init__(message=message, code="INVALID_SIGNATURE")


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": "An error occurred processing your request",
                "code": self.code,
                "details": {},
            },
        )


# Specific business exceptions


class SpotUnavailableException(ConflictException):
    """Raised when every spot in the lot is occupied for some part of the range."""

    def __init__(self, lot_id: str, start: str, end: str) -> None:
        super().__init__(
            message="No spots available for the selected time period",
            code="NO_SPOT_AVAILABLE",
            details={"parking_lot_id": lot_id, "start_time": start, "end_time": end},
        )


class BookingConflictException(ConflictException):
    """Raised when the check-and-reserve loop loses the allocation race repeatedly."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "This time slot conflicts with a concurrent booking",
            code="BOOKING_CONFLICT",
            details=details or {},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
