"""
Discord webhook and the execution of webhook requests.

`Webhook.execute()` sends one message while respecting all rate limits that
apply to it, in this order:

1. Global cooldown: Discord reported a global rate limit (HTTP 429 with "global")
2. Webhook cooldown: Discord rate limited this webhook (HTTP 429)
3. Global limit: requests of all webhooks of the client (50/s by default)
4. Per-route limit: taken from the "X-RateLimit-*" headers of previous responses
5. Webhook limit: requests of this webhook (30/min by default)

Cooldowns fail fast with TooManyRequestsError. Limits block the calling
thread until a request may be sent.
"""

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

import requests

from dhook._message import InvalidMessageError, Message
from dhook._rate_limit import (
    CooldownState,
    DynamicHeaderLimiter,
    RateLimitHeaderError,
    SlidingWindowLimiter,
    parse_int,
)

if TYPE_CHECKING:
    from dhook._client import Client

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================


class TooManyRequestsError(Exception):
    """
    Raised when a webhook is rate limited by Discord (HTTP 429).

    Also raised without any request being sent while a cooldown from a
    previous HTTP 429 response is still active.

    Attributes:
        retry_after: Seconds until requests may be sent again.
        is_global: True if the global rate limit of the client was exceeded.
        body: Body of the 429 response, or None if no request was sent.

    Example:
        >>> try:
        ...     webhook.execute(Message(content="Hello"))
        ... except TooManyRequestsError as e:
        ...     print(f"Rate limited. Retry after {e.retry_after:.1f}s")
    """

    def __init__(self, retry_after: float, is_global: bool = False, body: bytes | None = None):
        self.retry_after = retry_after
        self.is_global = is_global
        self.body = body
        super().__init__("global rate limit exceeded" if is_global else "rate limit exceeded")


class WebhookHTTPError(Exception):
    """
    Raised when Discord responds with an HTTP status code of 400 or above (except 429).

    Attributes:
        status: The HTTP status code.
        message: The HTTP status line, e.g. "400 Bad Request".
    """

    def __init__(self, status: int, message: str):
        self.status = status
        self.message = message
        super().__init__(message)


class WebhookTransportError(Exception):
    """
    Raised when a request could not be completed, e.g. on connection errors or timeouts.

    No rate limiter state is changed when this error occurs.

    Attributes:
        cause: The original exception raised by the HTTP client.
    """

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause

    @property
    def is_timeout(self) -> bool:
        """Returns True if the request timed out."""
        return isinstance(self.cause, requests.Timeout)


class WebhookNotInitializedError(RuntimeError):
    """Raised when executing a webhook that was not created from a Client."""

    pass


# =============================================================================
# Webhook
# =============================================================================


@dataclass(frozen=True)
class ExecuteOptions:
    """
    Options for executing a webhook.

    Attributes:
        wait: Waits for Discord to confirm the message before responding,
            so the created message is returned by `Webhook.execute()`.
    """
    wait: bool = False


# Fallback for the webhook ID shown in log messages
_UNKNOWN_ID = "-"


def _webhook_id(url: str) -> str:
    """Returns the ID of a webhook URL, so that the token is kept out of the logs."""
    parts = urlsplit(url).path.strip("/").split("/")
    if "webhooks" in parts:
        i = parts.index("webhooks")
        if i + 1 < len(parts):
            return parts[i + 1]
    return _UNKNOWN_ID


class Webhook:
    """
    A Discord webhook.

    Webhooks are created with `Client.new_webhook()` and are safe for
    concurrent use by multiple threads. Requests to the same webhook are
    sent one at a time, requests to different webhooks only contend for the
    global limit of their client.

    Example:
        >>> client = Client()
        >>> webhook = client.new_webhook("https://discord.com/api/webhooks/123/abc")
        >>> webhook.execute(Message(content="Hello"))

    Attributes:
        url: The URL of the webhook.
        client: The client this webhook sends its requests through.
        rate_limited: Cooldown set when Discord rate limits this webhook.
        limiter_api: Limiter fed by the rate limit headers of responses.
        limiter_webhook: Fixed rate limit of this webhook.
    """

    def __init__(self, url: str, client: "Client | None" = None):
        assert url, "Webhook URL cannot be empty."

        self.url = url
        self.client = client
        self.rate_limited = CooldownState()
        self._lock = threading.Lock()
        self._id = _webhook_id(url)
        self.limiter_api = DynamicHeaderLimiter(name=f"webhook({self._id})")
        self.limiter_webhook: SlidingWindowLimiter | None = None
        if client is not None:
            assert client.options.webhook_max_requests is not None, \
                "🌀 Sanity check | webhook_max_requests must be set after with_defaults_from()"
            assert client.options.webhook_time_window is not None, \
                "🌀 Sanity check | webhook_time_window must be set after with_defaults_from()"
            self.limiter_webhook = SlidingWindowLimiter(
                max_requests=client.options.webhook_max_requests,
                time_window=client.options.webhook_time_window,
                name=f"webhook({self._id})",
            )

    def execute(self, message: Message, options: ExecuteOptions | None = None) -> bytes:
        """
        Post a message to the webhook.

        Waits until a request may be sent without exceeding any of Discord's
        rate limits. Only checks that the message is not empty; other
        problems with the message are reported by Discord as HTTP 400.

        Args:
            message: The message to post.
            options: Options for this execution. If None, uses defaults.

        Returns:
            The response body. Only contains the created message when the
            `wait` option is enabled.

        Raises:
            WebhookNotInitializedError: If the webhook was not created from a Client.
            InvalidMessageError: If the message has neither content nor embeds.
            MessageSerializationError: If the message can not be serialized.
            TooManyRequestsError: If Discord responded with HTTP 429, or a cooldown is active.
            WebhookHTTPError: If Discord responded with HTTP 400 or above (except 429).
            WebhookTransportError: If the request failed, e.g. on a timeout.
        """
        client = self.client
        if client is None or self.limiter_webhook is None:
            raise WebhookNotInitializedError(
                f"{self._id} | Webhook | Webhook not initialized. Create webhooks with `Client.new_webhook()`."
            )

        logger.debug(f"{self._id} | Webhook | Message: {message}")
        if message.is_empty():
            raise InvalidMessageError("Message must have content or embeds.")
        data = message.to_json_bytes()

        is_active, retry_after = client.rate_limited.get_or_reset()
        if is_active:
            logger.warning(
                f"{self._id} | Webhook | ⚠️ Global rate limit active. Retry after {retry_after:.1f}s"
            )
            raise TooManyRequestsError(retry_after=retry_after, is_global=True)

        with self._lock:
            is_active, retry_after = self.rate_limited.get_or_reset()
            if is_active:
                logger.warning(
                    f"{self._id} | Webhook | ⚠️ Rate limit active. Retry after {retry_after:.1f}s"
                )
                raise TooManyRequestsError(retry_after=retry_after)

            client.limiter_global.wait()
            self.limiter_api.wait()
            self.limiter_webhook.wait()

            return self._send(client, data, options or ExecuteOptions())

    def _send(self, client: "Client", data: bytes, options: ExecuteOptions) -> bytes:
        """
        Send the request and process the response (caller must hold the webhook lock).

        Raises:
            TooManyRequestsError: On HTTP 429.
            WebhookHTTPError: On HTTP 400 or above.
            WebhookTransportError: If the request failed.
        """
        assert client.options.http_timeout is not None, \
            "🌀 Sanity check | http_timeout must be set after with_defaults_from()"

        url = self.url
        if options.wait:
            url += "&wait=1" if "?" in url else "?wait=1"

        logger.debug(f"{self._id} | Webhook | Request body: {data.decode('utf-8')}")
        try:
            response = client.http_client.post(
                url=url,
                data=data,
                headers={"Content-Type": "application/json"},
                timeout=client.options.http_timeout,
            )
        except requests.RequestException as e:
            logger.error(
                f"{self._id} | Webhook | ❌ Request failed: {e}",
                exc_info=logger.isEnabledFor(logging.DEBUG)
            )
            raise WebhookTransportError(f"Request to webhook failed: {e}", cause=e) from e

        try:
            self.limiter_api.update_from_headers(response.headers)
        except RateLimitHeaderError as e:
            logger.error(f"{self._id} | Webhook | ❌ Failed to update API limiter from headers: {e}")

        body = response.content
        status_line = f"{response.status_code} {response.reason or ''}".strip()
        logger.debug(
            f"{self._id} | Webhook | Response: {status_line} headers={dict(response.headers)} body={body!r}"
        )
        if response.status_code >= 400:
            logger.warning(f"{self._id} | Webhook | ⚠️ Response: {status_line}")
        else:
            logger.info(f"{self._id} | Webhook | ✅ Response: {status_line}")

        if response.status_code == 429:
            retry_after, is_global = self._parse_too_many_requests(response, client)
            self.rate_limited.set(retry_after)
            if is_global:
                client.rate_limited.set(retry_after)
            raise TooManyRequestsError(retry_after=retry_after, is_global=is_global, body=body)

        if response.status_code >= 400:
            raise WebhookHTTPError(status=response.status_code, message=status_line)

        return body

    def _parse_too_many_requests(self, response: requests.Response, client: "Client") -> tuple[float, bool]:
        """
        Extract the retry duration and the global flag from a 429 response.

        The Retry-After header takes precedence over "retry_after" in the body.

        Returns:
            A tuple (retry_after seconds, is_global).
        """
        assert client.options.retry_after_default is not None, \
            "🌀 Sanity check | retry_after_default must be set after with_defaults_from()"

        is_global = False
        try:
            payload = response.json()
            if isinstance(payload, dict):
                is_global = payload.get("global") is True
        except ValueError as e:
            logger.warning(f"{self._id} | Webhook | ⚠️ Failed to parse 429 response body: {e}")

        retry_after = client.options.retry_after_default
        header = response.headers.get("Retry-After")
        if header:
            try:
                retry_after = float(parse_int(header))
            except ValueError as e:
                logger.warning(
                    f"{self._id} | Webhook | ⚠️ Failed to parse Retry-After header. "
                    f"Assuming default of {retry_after:.0f}s: {e}"
                )

        return retry_after, is_global
