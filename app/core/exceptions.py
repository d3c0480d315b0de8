from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def bad_request(message: str) -> ServiceError:
    return ServiceError(message, status.HTTP_400_BAD_REQUEST)


def unauthorized(message: str) -> ServiceError:
    return ServiceError(message, status.HTTP_401_UNAUTHORIZED)


def forbidden(message: str = "Access denied") -> ServiceError:
    return ServiceError(message, status.HTTP_403_FORBIDDEN)


def not_found(message: str) -> ServiceError:
    return ServiceError(message, status.HTTP_404_NOT_FOUND)


def conflict(message: str) -> ServiceError:
    return ServiceError(message, status.HTTP_409_CONFLICT)
