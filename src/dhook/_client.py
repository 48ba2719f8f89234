"""
Shared client for Discord webhooks.

A Client holds everything that is shared by all webhooks of an application:
the HTTP transport, the request timeout, the global rate limiter and the
global cooldown set when Discord reports a global rate limit.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from dhook._http import HttpClient
from dhook._rate_limit import CooldownState, SlidingWindowLimiter

if TYPE_CHECKING:
    from dhook._config import DhookConfig
    from dhook._webhook import Webhook

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientOptions:
    """
    Configuration options for the Client.

    Fields set to None will use values from global config (DHOOK.config).

    Attributes:
        http_timeout: Timeout in seconds for a single HTTP request.
        retry_after_default: Cooldown in seconds after an HTTP 429 response
            without a valid Retry-After header.
        global_max_requests: Requests allowed per global time window (all webhooks).
        global_time_window: Global time window in seconds.
        webhook_max_requests: Requests allowed per webhook time window.
        webhook_time_window: Webhook time window in seconds.

    Example:
        >>> # Use all defaults from config
        >>> client = Client()
        >>>
        >>> # Customize timeout and the per-webhook limit
        >>> options = ClientOptions(http_timeout=10.0, webhook_max_requests=5, webhook_time_window=2.0)
        >>> client = Client(options=options)
    """
    http_timeout: float | None = None
    retry_after_default: float | None = None
    global_max_requests: int | None = None
    global_time_window: float | None = None
    webhook_max_requests: int | None = None
    webhook_time_window: float | None = None

    def with_defaults_from(self, cfg: "DhookConfig") -> "ClientOptions":
        """
        Returns a new ClientOptions with None values filled from config.

        Args:
            cfg: The DhookConfig to use for default values.

        Returns:
            A new ClientOptions with all fields resolved (no None values).
        """
        def pick(value, default):
            return value if value is not None else default

        return ClientOptions(
            http_timeout=pick(self.http_timeout, cfg.webhook.http_timeout),
            retry_after_default=pick(self.retry_after_default, cfg.webhook.retry_after_default),
            global_max_requests=pick(self.global_max_requests, cfg.rate_limit.global_max_requests),
            global_time_window=pick(self.global_time_window, cfg.rate_limit.global_time_window),
            webhook_max_requests=pick(self.webhook_max_requests, cfg.rate_limit.webhook_max_requests),
            webhook_time_window=pick(self.webhook_time_window, cfg.rate_limit.webhook_time_window),
        )


class Client:
    """
    Client shared by all webhooks to access the Discord API.

    Sharing one client between webhooks makes them respect the global rate
    limit together, and share the HTTP transport.

    Example:
        >>> from dhook import Client, Message
        >>> client = Client()
        >>> webhook = client.new_webhook("https://discord.com/api/webhooks/123/abc")
        >>> webhook.execute(Message(content="Hello"))

    Attributes:
        http_client: HTTP client used for all requests.
        options: Resolved configuration options.
        limiter_global: Rate limiter shared by all webhooks of this client.
        rate_limited: Cooldown set when Discord reports a global rate limit.
    """

    def __init__(
        self,
        http_client: HttpClient | None = None,
        options: ClientOptions | None = None,
    ):
        """
        Initialize the client.

        Args:
            http_client: Custom HTTP client implementation for API calls.
                If None, uses RequestsHttpClient.
            options: Configuration options for the client.
                If None, uses defaults from global config (DHOOK.config).
                Partial options are merged with config defaults via with_defaults_from().

        Raises:
            AssertionError: If any option is invalid.
        """
        from dhook._config import DHOOK

        resolved_options = (options or ClientOptions()).with_defaults_from(DHOOK.config)

        if not http_client:
            from dhook._http import RequestsHttpClient
            http_client = RequestsHttpClient()

        assert resolved_options.http_timeout is not None and resolved_options.http_timeout > 0, \
            "http_timeout must be greater than 0."
        assert resolved_options.retry_after_default is not None and resolved_options.retry_after_default > 0, \
            "retry_after_default must be greater than 0."
        assert resolved_options.global_max_requests is not None and resolved_options.global_max_requests > 0, \
            "global_max_requests must be greater than 0."
        assert resolved_options.global_time_window is not None and resolved_options.global_time_window > 0, \
            "global_time_window must be greater than 0."
        assert resolved_options.webhook_max_requests is not None and resolved_options.webhook_max_requests > 0, \
            "webhook_max_requests must be greater than 0."
        assert resolved_options.webhook_time_window is not None and resolved_options.webhook_time_window > 0, \
            "webhook_time_window must be greater than 0."

        self.http_client: HttpClient = http_client
        self.options = resolved_options
        self.limiter_global = SlidingWindowLimiter(
            max_requests=resolved_options.global_max_requests,
            time_window=resolved_options.global_time_window,
            name="global",
        )
        self.rate_limited = CooldownState()
        logger.debug(f"Client | Created with {resolved_options}")

    def new_webhook(self, url: str) -> "Webhook":
        """
        Create a webhook that sends its requests through this client.

        Args:
            url: The URL of the Discord webhook.

        Returns:
            A new Webhook.
        """
        from dhook._webhook import Webhook

        return Webhook(url=url, client=self)
