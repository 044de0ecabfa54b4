"""Translation of botocore exceptions into provider exceptions."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from botocore.exceptions import (
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    PartialCredentialsError,
)

from dockyard.providers.exceptions import (
    ProviderAPIError,
    ProviderConnectionError,
    ProviderCredentialsError,
)

logger = logging.getLogger(__name__)


@contextmanager
def handle_aws_errors(operation: str | None = None) -> Iterator[None]:
    """Convert botocore errors raised in the block to provider errors.

    Parameters
    ----------
    operation : str | None
        Name of the gateway operation, used to prefix error messages

    Raises
    ------
    ProviderCredentialsError
        If credentials are missing or incomplete
    ProviderConnectionError
        If the EC2 endpoint cannot be reached
    ProviderAPIError
        If the EC2 API returns an error response
    """
    prefix = f"{operation}: " if operation else ""

    try:
        yield
    except (NoCredentialsError, PartialCredentialsError) as e:
        raise ProviderCredentialsError(f"{prefix}{e}") from e
    except (EndpointConnectionError, ConnectTimeoutError) as e:
        raise ProviderConnectionError(f"{prefix}{e}") from e
    except ClientError as e:
        error = e.response.get("Error", {})
        code = error.get("Code")
        message = error.get("Message") or str(e)
        logger.debug("%s failed with %s: %s", operation or "EC2 call", code, message)
        raise ProviderAPIError(
            f"{prefix}{message}", error_code=code, operation=operation
        ) from e
