"""Exception types shared by the HTTP routes, handlers and tools."""

from __future__ import annotations


class AppError(Exception):
    """Base error carrying the HTTP status it should be reported with."""

    status = 500

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        if status is not None:
            self.status = status


class BadRequestError(AppError):
    status = 400


class NotFoundError(AppError):
    status = 404


class WeatherServiceError(AppError):
    """Raised when the weather or geocoding API cannot be used."""

    status = 502


class LocationNotFoundError(WeatherServiceError):
    status = 404


def error_message(error: BaseException, fallback: str = "Unknown error") -> str:
    """Return the message of ``error`` or ``fallback`` when it has none."""
    message = str(error)
    return message if message else fallback
