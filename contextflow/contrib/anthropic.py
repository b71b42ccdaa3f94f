"""
Anthropic SDK transport for contextflow.

Connects a StreamCoordinator to the Anthropic Messages API through the
official async client. The client owns authentication, retries and
timeouts; this module only opens the event stream.

Note:
    The Anthropic SDK is an optional dependency. Install with:
    pip install contextflow[anthropic]

Example:
    >>> from anthropic import AsyncAnthropic
    >>> from contextflow import CoordinatorConfig, create_coordinator
    >>> from contextflow.contrib.anthropic import AnthropicTransport
    >>>
    >>> transport = AnthropicTransport(AsyncAnthropic())
    >>> coordinator = create_coordinator(transport, CoordinatorConfig())
    >>> async for chunk in coordinator.dispatch(history, system_prompt="Be brief."):
    ...     ...
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

logger = logging.getLogger(__name__)


class AnthropicTransport:
    """
    Transport that streams Messages API events with the Anthropic SDK.

    Attributes:
        client: An anthropic.AsyncAnthropic (or compatible) client.
        extra_params: Extra request fields merged into every call
            (metadata, stop_sequences, tools).
    """

    def __init__(
        self,
        client: Any | None = None,
        extra_params: dict[str, Any] | None = None,
        **client_kwargs: Any,
    ) -> None:
        """
        Create a transport.

        Args:
            client: Pre-built async client. When omitted, one is created
                from client_kwargs (api_key, base_url, max_retries, timeout).
            extra_params: Extra request fields merged into every call.
            **client_kwargs: Passed to anthropic.AsyncAnthropic.

        Raises:
            ImportError: If no client is given and the SDK is not installed.
        """
        if client is None:
            client = self._create_client(**client_kwargs)
        self.client = client
        self.extra_params = dict(extra_params or {})

    @staticmethod
    def _create_client(**client_kwargs: Any) -> Any:
        try:
            from anthropic import AsyncAnthropic
        except ImportError:
            raise ImportError(
                "anthropic library required. Install with: pip install contextflow[anthropic]"
            ) from None
        return AsyncAnthropic(**client_kwargs)

    async def __call__(self, request: dict[str, Any]) -> AsyncIterator[Any]:
        """
        Open a streaming Messages API call.

        Args:
            request: Request body built by the coordinator.

        Returns:
            The SDK's async event stream.
        """
        params = {**self.extra_params, **request, "stream": True}
        logger.debug(
            f"Opening Anthropic stream: model={params.get('model')}, "
            f"messages={len(params.get('messages', []))}"
        )
        return await self.client.messages.create(**params)
