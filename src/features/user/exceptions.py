"""User-related exceptions."""

from fastapi import HTTPException, status


class UserException(HTTPException):
    """Base user exception."""

    def __init__(self, detail: str = "User operation failed", status_code: int = status.HTTP_400_BAD_REQUEST):
        super().__init__(status_code=status_code, detail=detail)


class PhoneAlreadyRegistered(UserException):
    """Raised when trying to create a user for a phone number that already has an account."""

    def __init__(self):
        super().__init__(
            detail="User already registered with this phone number", status_code=status.HTTP_409_CONFLICT
        )
