"""Clients for the RabbitMQ HTTP Management API.

Every operation maps to exactly one HTTP request against ``{uri}/api/``:
path segments are percent-encoded, the request is sent with basic auth, and
the raw ``httpx.Response`` is handed back. Nothing is retried or cached; the
broker owns the semantics of each endpoint.

Usage example:
    >>> with RabbitStats("http://localhost:15672", "guest", "guest") as rabbit:
    ...     depth = rabbit.get_vhost_queue("/", "org.demo.requests.q").json()["messages"]

The async flavour exposes the same operations as awaitables:
    >>> async with AsyncRabbitStats() as rabbit:
    ...     overview = (await rabbit.get_overview()).json()
"""

from __future__ import annotations

import json
import ssl
import time
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional, Union
from urllib.parse import quote

import httpx

from rabbit_stats.config import Settings
from rabbit_stats.errors import ManagementAPIError
from rabbit_stats.metrics import observe_request
from rabbit_stats.utils.logging import get_logger


logger = get_logger(__name__)

DEFAULT_HEADERS = {"content-type": "application/json"}

Query = Union[Mapping[str, Any], str, None]
Body = Union[Mapping[str, Any], list, str, bytes, None]


def encode_segment(value: str) -> str:
    """Percent-encode one path segment the way ``encodeURIComponent`` does.

    >>> encode_segment("/")
    '%2F'
    >>> encode_segment("orders.v1 (eu)")
    'orders.v1%20(eu)'

    Dot-only segments are escaped too; left bare, httpx would resolve them
    as relative path steps and the request would hit another endpoint.

    >>> encode_segment("..")
    '%2E%2E'
    """
    encoded = quote(str(value), safe="!~*'()")
    if encoded in (".", ".."):
        return "%2E" * len(encoded)
    return encoded


def _path(*parts: str) -> str:
    return "/".join(parts)


def _request_kwargs(query: Query, body: Body) -> dict[str, Any]:
    kwargs: dict[str, Any] = {}
    if isinstance(query, str):
        query = query.lstrip("?")
    if query:
        kwargs["params"] = query
    if isinstance(body, (str, bytes)):
        kwargs["content"] = body
    elif body is not None:
        kwargs["content"] = json.dumps(body)
    return kwargs


class ManagementAPI(ABC):
    """Endpoint catalogue shared by the sync and async clients.

    Subclasses supply ``request``; each operation below returns whatever
    ``request`` returns (a response, or an awaitable of one).
    """

    @abstractmethod
    def request(self, method: str, path: str, query: Query = None, body: Body = None) -> Any:
        ...

    # Cluster

    def get_overview(self):
        return self.request("GET", "overview")

    def get_extensions(self):
        return self.request("GET", "extensions")

    def get_nodes(self):
        return self.request("GET", "nodes")

    def get_node(self, name: str):
        return self.request("GET", _path("nodes", encode_segment(name)))

    # Connections and channels

    def get_connections(self):
        return self.request("GET", "connections")

    def get_connection(self, name: str):
        return self.request("GET", _path("connections", encode_segment(name)))

    def delete_connection(self, name: str):
        """Force-close a client connection."""
        return self.request("DELETE", _path("connections", encode_segment(name)))

    def get_connection_channels(self, name: str):
        return self.request("GET", _path("connections", encode_segment(name), "channels"))

    def get_channels(self):
        return self.request("GET", "channels")

    def get_channel(self, name: str):
        return self.request("GET", _path("channels", encode_segment(name)))

    # Consumers

    def get_consumers(self):
        return self.request("GET", "consumers")

    def get_vhost_consumers(self, vhost: str):
        return self.request("GET", _path("consumers", encode_segment(vhost)))

    # Exchanges

    def get_exchanges(self):
        return self.request("GET", "exchanges")

    def get_vhost_exchanges(self, vhost: str):
        return self.request("GET", _path("exchanges", encode_segment(vhost)))

    def get_vhost_exchange(self, vhost: str, name: str):
        return self.request("GET", _path("exchanges", encode_segment(vhost), encode_segment(name)))

    def put_vhost_exchange(self, vhost: str, name: str, data: Body):
        """Declare an exchange, e.g. ``{"type": "direct", "durable": True}``."""
        return self.request(
            "PUT", _path("exchanges", encode_segment(vhost), encode_segment(name)), body=data
        )

    def delete_vhost_exchange(self, vhost: str, name: str):
        return self.request("DELETE", _path("exchanges", encode_segment(vhost), encode_segment(name)))

    # Queues

    def get_queues(self, query: Query = None):
        return self.request("GET", "queues", query=query)

    def get_vhost_queues(self, vhost: str, query: Query = None):
        """List queues in a vhost.

        ``query`` is forwarded as-is, e.g. ``{"columns": "name,messages"}``.
        """
        return self.request("GET", _path("queues", encode_segment(vhost)), query=query)

    def get_vhost_queue(self, vhost: str, name: str):
        return self.request("GET", _path("queues", encode_segment(vhost), encode_segment(name)))

    def put_vhost_queue(self, vhost: str, name: str, data: Body):
        """Declare a queue, e.g. ``{"durable": True, "arguments": {"x-max-priority": 10}}``."""
        return self.request(
            "PUT", _path("queues", encode_segment(vhost), encode_segment(name)), body=data
        )

    def delete_vhost_queue(self, vhost: str, name: str):
        return self.request("DELETE", _path("queues", encode_segment(vhost), encode_segment(name)))

    def delete_vhost_queue_contents(self, vhost: str, name: str):
        """Purge all ready messages from a queue."""
        return self.request(
            "DELETE", _path("queues", encode_segment(vhost), encode_segment(name), "contents")
        )

    # Bindings

    def get_bindings(self):
        return self.request("GET", "bindings")

    def get_vhost_bindings(self, vhost: str):
        return self.request("GET", _path("bindings", encode_segment(vhost)))

    # Virtual hosts

    def get_vhosts(self):
        return self.request("GET", "vhosts")

    def get_vhost(self, vhost: str):
        return self.request("GET", _path("vhosts", encode_segment(vhost)))

    def put_vhost(self, vhost: str, body: Body = None):
        return self.request("PUT", _path("vhosts", encode_segment(vhost)), body=body)

    def delete_vhost(self, vhost: str):
        return self.request("DELETE", _path("vhosts", encode_segment(vhost)))

    # Users and permissions

    def get_users(self):
        return self.request("GET", "users")

    def get_user(self, name: str):
        return self.request("GET", _path("users", encode_segment(name)))

    def put_user(self, name: str, body: Body):
        """Create or update a user, e.g. ``{"password": "...", "tags": ""}``."""
        return self.request("PUT", _path("users", encode_segment(name)), body=body)

    def delete_user(self, name: str):
        return self.request("DELETE", _path("users", encode_segment(name)))

    def get_user_permissions(self, name: str):
        return self.request("GET", _path("users", encode_segment(name), "permissions"))

    def set_user_permissions(self, user: str, vhost: str, body: Body):
        """Grant ``{"configure": ..., "write": ..., "read": ...}`` regexes on a vhost."""
        return self.request(
            "PUT", _path("permissions", encode_segment(vhost), encode_segment(user)), body=body
        )

    def get_policies(self):
        return self.request("GET", "policies")

    def get_current_user(self):
        return self.request("GET", "whoami")


class _ClientConfig:
    """Resolves constructor arguments against ``Settings`` for both clients."""

    def _configure(
        self,
        uri: Optional[str],
        user: Optional[str],
        password: Optional[str],
        timeout: Optional[float],
        verify: Union[bool, ssl.SSLContext, None],
        raise_for_status: Optional[bool],
    ) -> dict[str, Any]:
        settings = Settings.from_env()
        self.uri = f"{(uri or settings.mgmt_url).rstrip('/')}/api/"
        self.user = user if user is not None else settings.user
        self.raise_for_status = (
            settings.raise_for_status if raise_for_status is None else raise_for_status
        )
        return {
            "base_url": self.uri,
            "auth": httpx.BasicAuth(self.user, password if password is not None else settings.password),
            "headers": DEFAULT_HEADERS,
            "timeout": settings.timeout if timeout is None else timeout,
            "verify": settings.ssl_verify() if verify is None else verify,
        }

    def _on_response(self, response: httpx.Response, started: float) -> httpx.Response:
        elapsed = time.perf_counter() - started
        method = response.request.method
        observe_request(method, response.status_code, elapsed)
        logger.debug("%s %s -> %s (%.3fs)", method, response.request.url.path, response.status_code, elapsed)
        if self.raise_for_status and response.is_error:
            logger.warning(
                "management API error %s on %s %s", response.status_code, method, response.request.url.path
            )
            raise ManagementAPIError.from_response(response)
        return response

    def _on_transport_error(self, exc: httpx.HTTPError, method: str, path: str, started: float) -> ManagementAPIError:
        observe_request(method, "error", time.perf_counter() - started)
        url = f"{self.uri}{path}"
        logger.warning("management API request %s %s failed: %s", method, url, exc)
        return ManagementAPIError.from_transport(exc, method, url)


class RabbitStats(_ClientConfig, ManagementAPI):
    """Blocking client backed by ``httpx.Client``.

    Args:
        uri: Management host, e.g. ``http://localhost:15672`` (env ``RABBITMQ_MGMT_URL``).
        user: Basic-auth user (env ``RABBITMQ_USER``, default ``guest``).
        password: Basic-auth password (env ``RABBITMQ_PASS``, default ``guest``).
        timeout: Per-request timeout in seconds.
        verify: TLS verification flag or an ``ssl.SSLContext``.
        raise_for_status: Raise ``ManagementAPIError`` on 4xx/5xx responses.
        transport: Optional ``httpx`` transport, mainly for tests.
    """

    def __init__(
        self,
        uri: Optional[str] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        verify: Union[bool, ssl.SSLContext, None] = None,
        raise_for_status: Optional[bool] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        options = self._configure(uri, user, password, timeout, verify, raise_for_status)
        self._client = httpx.Client(transport=transport, **options)

    def request(self, method: str, path: str, query: Query = None, body: Body = None) -> httpx.Response:
        started = time.perf_counter()
        try:
            response = self._client.request(method, path, **_request_kwargs(query, body))
        except httpx.HTTPError as exc:
            raise self._on_transport_error(exc, method, path, started) from exc
        return self._on_response(response, started)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "RabbitStats":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class AsyncRabbitStats(_ClientConfig, ManagementAPI):
    """Asyncio client backed by ``httpx.AsyncClient``; same arguments as ``RabbitStats``."""

    def __init__(
        self,
        uri: Optional[str] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        verify: Union[bool, ssl.SSLContext, None] = None,
        raise_for_status: Optional[bool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        options = self._configure(uri, user, password, timeout, verify, raise_for_status)
        self._client = httpx.AsyncClient(transport=transport, **options)

    async def request(self, method: str, path: str, query: Query = None, body: Body = None) -> httpx.Response:
        started = time.perf_counter()
        try:
            response = await self._client.request(method, path, **_request_kwargs(query, body))
        except httpx.HTTPError as exc:
            raise self._on_transport_error(exc, method, path, started) from exc
        return self._on_response(response, started)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "AsyncRabbitStats":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
