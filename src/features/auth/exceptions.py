"""HTTP exceptions raised by the bearer-token dependencies."""

from fastapi import HTTPException, status


class InvalidTokenException(HTTPException):
    """Access token missing its signature, issuer, audience or lifetime checks, or user unknown."""

    def __init__(self, detail: str = "Invalid or expired access token"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class UserInactiveException(HTTPException):
    """Token is valid but the account has been deactivated."""

    def __init__(self):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail="User account is deactivated")


class InsufficientRoleException(HTTPException):
    """User holds none of the marketplace roles an endpoint accepts."""

    def __init__(self, required_roles: list[str]):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Requires one of the roles: {', '.join(required_roles)}",
        )
