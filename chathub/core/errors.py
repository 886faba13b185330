"""
Domain exceptions shared by repositories, services and routers.
"""
from typing import Optional


class ChathubError(Exception):
    """Base class for application errors."""


class StoreUnavailableError(ChathubError):
    """Raised when a repository is used without a database session."""

    def __init__(self, message: str = "Database is not available"):
        super().__init__(message)


class DuplicateInstanceNameError(ChathubError):
    """An instance with the requested name already exists."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"An instance named '{name}' already exists.")


class DuplicateEmailError(ChathubError):
    """A user with the requested email already exists."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"A user with email '{email}' already exists.")


class ProviderError(ChathubError):
    """A call to the messaging provider failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
