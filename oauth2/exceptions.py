"""
Error taxonomy of the OAuth2 provider.

Each error is an HTTPException so FastAPI renders it as {"detail": message}
with the matching status code.
"""

from fastapi import HTTPException, status


class OAuth2Error(HTTPException):
    """Base class; subclasses pin the status code"""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(status_code=self.status_code, detail=detail)


class BadRequestError(OAuth2Error):
    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedError(OAuth2Error):
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(OAuth2Error):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(OAuth2Error):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(OAuth2Error):
    status_code = status.HTTP_409_CONFLICT
