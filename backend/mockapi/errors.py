"""Domain errors raised by the simulated backend."""
from __future__ import annotations


class MockAPIError(Exception):
    """Base class for rejected calls; carries an HTTP-like status code."""

    status_code = 400

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def to_payload(self) -> dict:
        return {"error": self.detail, "status": self.status_code}


class NotFoundError(MockAPIError):
    """The call targets an id that does not exist."""

    status_code = 404


class ValidationFailedError(MockAPIError):
    """A required field is missing or references something that does not exist."""

    status_code = 422


class PreconditionFailedError(MockAPIError):
    """The record is still referenced and cannot be changed this way."""

    status_code = 409


class UnroutedRequestError(MockAPIError):
    """No route matches the method and path; the router degrades to ``{}``."""

    status_code = 404
