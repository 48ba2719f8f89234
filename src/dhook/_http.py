"""
HTTP transport abstraction for the dhook client.

The webhook executor only needs a synchronous "POST a body, get a response"
capability. It does not manage connections or TLS itself: that is the
responsibility of the HttpClient implementation.

Available implementations:
    - RequestsHttpClient: Sends requests with the `requests` library. Default.

Example:
    >>> from dhook._http import RequestsHttpClient
    >>> client = RequestsHttpClient()
    >>> response = client.post(
    ...     "https://discord.com/api/webhooks/123/abc",
    ...     data=b'{"content": "Hello"}',
    ...     headers={"Content-Type": "application/json"},
    ...     timeout=30.0,
    ... )
"""

from abc import ABC, abstractmethod
from typing import override

import requests


# =============================================================================
# Abstract Base Class
# =============================================================================


class HttpClient(ABC):
    """
    Abstract base class for HTTP clients.

    All HTTP calls of the dhook client go through this interface, which makes
    it easy to plug in a custom session, a proxy setup or a fake for testing.

    Example:
        >>> class MyHttpClient(HttpClient):
        ...     def post(self, url, data=None, headers=None, timeout=30.0):
        ...         return requests.post(url, data=data, headers=headers, timeout=timeout)
    """

    @abstractmethod
    def post(
        self,
        url: str,
        data: bytes | None = None,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
    ) -> requests.Response:
        """
        Execute a POST request with a raw body.

        Args:
            url: The full URL to request.
            data: Raw request body.
            headers: Headers to include.
            timeout: Request timeout in seconds.

        Returns:
            The HTTP response. Error status codes are returned, not raised.

        Raises:
            requests.RequestException: If the request could not be completed
                (e.g. connection error or timeout).
        """
        pass


# =============================================================================
# Requests Implementation
# =============================================================================


class RequestsHttpClient(HttpClient):
    """
    HTTP client using the `requests` library.

    Example:
        >>> from dhook._http import RequestsHttpClient
        >>> client = RequestsHttpClient()
        >>> response = client.post(url, data=b"{}", timeout=10.0)
    """

    @override
    def post(
        self,
        url: str,
        data: bytes | None = None,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
    ) -> requests.Response:
        """
        Execute a POST request using `requests.post`.

        Raises:
            AssertionError: If url is empty or timeout is invalid.
            requests.RequestException: If the HTTP request fails.
        """
        assert url, "URL cannot be empty."
        assert timeout is not None, "Timeout cannot be None."
        assert timeout > 0, "Timeout must be greater than 0."

        return requests.post(
            url,
            data=data,
            headers=headers,
            timeout=timeout,
        )
