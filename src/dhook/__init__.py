"""
Discord webhook client for Python.

A client for sending a high volume of messages to Discord webhooks without
being rate limited by the Discord API (i.e. HTTP 429 responses).

It respects the following rate limits before a request is sent:
    - Global rate limit: Requests of all webhooks of a client (50 per second)
    - Per-route rate limit: Taken from the "X-RateLimit-*" response headers
    - Webhook rate limit: Undocumented limit of each webhook (30 per minute)

Should a webhook still become rate limited, further requests fail fast with
TooManyRequestsError until the rate limit expires, to prevent escalation.

Quick Start:
    >>> from dhook import Client, Message
    >>> client = Client()
    >>> webhook = client.new_webhook("https://discord.com/api/webhooks/123/abc")
    >>> webhook.execute(Message(content="Hello"))

Global Configuration:
    >>> from dhook import DHOOK
    >>> DHOOK.configure(
    ...     webhook={"http_timeout": 10.0},
    ...     rate_limit={"global_max_requests": 25},
    ... )

Main Classes:
    - Client: Shared client holding the HTTP transport and the global rate limit.
    - ClientOptions: Options for the Client.
    - Webhook: A Discord webhook. Created with Client.new_webhook().
    - ExecuteOptions: Options for Webhook.execute().
    - Message, Embed (and embed parts): The payload of a webhook request.

Errors:
    - TooManyRequestsError: Rate limited by Discord (HTTP 429) or cooldown active.
    - WebhookHTTPError: Discord returned HTTP 400 or above (except 429).
    - WebhookTransportError: The request failed (connection error, timeout).
    - WebhookNotInitializedError: The webhook was not created from a Client.
    - InvalidMessageError: The message has neither content nor embeds.
    - MessageSerializationError: The message can not be serialized to JSON.
    - RateLimitHeaderError: Malformed "X-RateLimit-*" response headers (logged only).

Rate Limiting:
    - SlidingWindowLimiter: Fixed "N requests per period" rate limiter.
    - DynamicHeaderLimiter: Rate limiter fed by "X-RateLimit-*" response headers.
    - CooldownState: Sticky flag set after an HTTP 429 response.

HTTP Client:
    - HttpClient: Abstract base class for HTTP clients.
    - RequestsHttpClient: HTTP client using the requests library. Default.
"""

from importlib.metadata import version as _get_version

__version__ = _get_version("dhook")

from dhook._client import Client, ClientOptions
from dhook._config import (
    DHOOK,
    ConfigEnvVarError,
    ConfigValidationError,
    DhookConfig,
    RateLimitConfig,
    WebhookConfig,
)
from dhook._http import HttpClient, RequestsHttpClient
from dhook._message import (
    Embed,
    EmbedAuthor,
    EmbedField,
    EmbedFooter,
    EmbedImage,
    EmbedProvider,
    EmbedThumbnail,
    InvalidMessageError,
    Message,
    MessageSerializationError,
)
from dhook._rate_limit import (
    CooldownState,
    DynamicHeaderLimiter,
    RateLimitHeaderError,
    RateLimitInfo,
    SlidingWindowLimiter,
)
from dhook._webhook import (
    ExecuteOptions,
    TooManyRequestsError,
    Webhook,
    WebhookHTTPError,
    WebhookNotInitializedError,
    WebhookTransportError,
)

__all__ = [
    "__version__",
    # Configuration
    "DHOOK",
    "DhookConfig",
    "WebhookConfig",
    "RateLimitConfig",
    "ConfigEnvVarError",
    "ConfigValidationError",
    # Client
    "Client",
    "ClientOptions",
    "Webhook",
    "ExecuteOptions",
    "TooManyRequestsError",
    "WebhookHTTPError",
    "WebhookTransportError",
    "WebhookNotInitializedError",
    # Message
    "Message",
    "Embed",
    "EmbedAuthor",
    "EmbedField",
    "EmbedFooter",
    "EmbedImage",
    "EmbedProvider",
    "EmbedThumbnail",
    "InvalidMessageError",
    "MessageSerializationError",
    # Rate Limiting
    "SlidingWindowLimiter",
    "DynamicHeaderLimiter",
    "RateLimitInfo",
    "RateLimitHeaderError",
    "CooldownState",
    # HTTP Client
    "HttpClient",
    "RequestsHttpClient",
]
