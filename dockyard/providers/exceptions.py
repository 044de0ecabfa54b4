"""Provider-agnostic exceptions for cloud API failures."""

from __future__ import annotations

from dockyard.exceptions import DockyardError


class ProviderError(DockyardError):
    """Base class for failures reported by the cloud provider."""


class ProviderCredentialsError(ProviderError):
    """Cloud credentials are missing or incomplete."""


class ProviderConnectionError(ProviderError):
    """The provider endpoint could not be reached."""


class ProviderAPIError(ProviderError):
    """The provider rejected or failed an API call.

    Parameters
    ----------
    message : str
        Error message, prefixed with the operation when one is known
    error_code : str | None
        Provider error code (e.g. ``"InvalidGroup.NotFound"``)
    operation : str | None
        Gateway operation that was being attempted
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        operation: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.operation = operation
