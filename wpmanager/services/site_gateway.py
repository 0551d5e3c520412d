"""WordPress REST API gateway.

All outbound communication with a connected site goes through
``WordPressGateway``. Each call builds a fresh ``httpx.AsyncClient`` with
basic authentication from the site's username and the decrypted secret,
so the secret lives only as long as the call.

Failure semantics:
    - ``test_connection`` and ``probe_status`` never raise; failures are
      returned as result values.
    - ``execute_action`` and the list helpers raise ``ActionExecutionError``
      / ``SiteGatewayError`` carrying the remote API's own error message
      when one is available.
"""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from typing import Any
from urllib.parse import quote

import httpx

from wpmanager.db.models import Site
from wpmanager.services.action_types import (
    ContentUpdateAction,
    DeclaredAction,
    PluginActivateAction,
    PluginInstallAction,
    SettingsUpdateAction,
    ThemeChangeAction,
    ThemeCustomizeAction,
)
from wpmanager.utils.redaction import sanitize_error_message

logger = logging.getLogger(__name__)

USER_AGENT = "WP-AI-Manager/1.0"
API_PREFIX = "/wp-json/wp/v2/"

CONNECTION_REFUSED_MESSAGE = (
    "Connection refused. Please check the URL and ensure the site is accessible."
)


def _route(*segments: object) -> str:
    """Join REST route segments, percent-encoding each one.

    A segment may itself hold a single "/" (plugin ids like
    ``akismet/akismet``); every other reserved character is escaped.
    """
    parts: list[str] = []
    for segment in segments:
        for piece in str(segment).split("/"):
            if piece in ("", ".", ".."):
                raise ActionExecutionError(f"Invalid REST route segment: {segment!r}")
            parts.append(quote(piece, safe=""))
    return "/".join(parts)


class SiteGatewayError(Exception):
    """Raised when a WordPress REST call fails.

    Attributes:
        message: Human-readable description, safe to show to the user.
        status_code: HTTP status returned by the site, if any.
        remote_message: The REST API's own ``message`` field, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        remote_message: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.remote_message = remote_message


class ActionExecutionError(SiteGatewayError):
    """Raised when a declared action cannot be carried out on the site."""


@dataclass
class SiteTarget:
    """Connection details for one outbound call.

    Holds the decrypted secret; build it right before the call and let it
    go out of scope afterwards.
    """

    url: str
    username: str
    secret: str
    wp_version: str | None = None
    active_theme: str | None = None
    plugin_count: int = 0

    @classmethod
    def from_site(cls, site: Site, secret: str) -> "SiteTarget":
        return cls(
            url=site.url,
            username=site.username,
            secret=secret,
            wp_version=site.wp_version,
            active_theme=site.active_theme,
            plugin_count=site.plugin_count or 0,
        )

    def __repr__(self) -> str:
        return f"SiteTarget(url={self.url!r}, username={self.username!r})"


@dataclass
class ConnectionTestResult:
    """Outcome of a live connection test.

    ``error_kind`` is one of ``connection_refused``, ``timeout``,
    ``http_error`` or ``unknown`` when ``success`` is False.
    """

    success: bool
    error: str | None = None
    error_kind: str | None = None
    status_code: int | None = None
    wp_version: str | None = None
    active_theme: str | None = None
    plugin_count: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SiteStatus:
    """Liveness and refreshed metadata from a status probe."""

    is_online: bool
    response_time_ms: int = 0
    wp_version: str | None = None
    active_theme: str | None = None
    plugin_count: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def api_base_url(site_url: str) -> str:
    """Return the wp/v2 REST base for a site URL (always ends with '/')."""
    return site_url.rstrip("/") + API_PREFIX


def _remote_message(response: httpx.Response) -> str | None:
    """Extract the REST API's ``message`` field from an error response."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, str) and message.strip():
            return message.strip()
    return None


def _json_result(response: httpx.Response) -> dict[str, Any]:
    """Return a response body as a dict suitable for a result payload."""
    try:
        body = response.json()
    except ValueError:
        return {"status_code": response.status_code}
    if isinstance(body, dict):
        return body
    return {"items": body}


def _active_theme_name(themes: list[Any]) -> str | None:
    for theme in themes:
        if isinstance(theme, dict) and theme.get("status") == "active":
            name = theme.get("name")
            if isinstance(name, dict):
                return name.get("rendered") or name.get("raw")
            return name
    return None


class WordPressGateway:
    """Thin async client over a WordPress site's REST API.

    Args:
        timeout: Timeout in seconds for general site operations.
        probe_timeout: Shorter timeout for connection tests and status probes.
        transport: Optional httpx transport (tests inject ``httpx.MockTransport``).
    """

    def __init__(
        self,
        timeout: float = 30.0,
        probe_timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._probe_timeout = probe_timeout
        self._transport = transport

    def _client(self, url: str, username: str, secret: str, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=api_base_url(url),
            auth=httpx.BasicAuth(username, secret),
            timeout=timeout,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            follow_redirects=True,
            transport=self._transport,
        )

    async def _best_effort_list(self, client: httpx.AsyncClient, path: str) -> list[Any] | None:
        """GET a collection, returning None on any failure."""
        try:
            response = await client.get(path)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.debug("Optional GET %s failed: %s", path, e)
            return None
        return body if isinstance(body, list) else None

    # --- Connection test / status probe ---

    async def test_connection(
        self,
        url: str,
        username: str,
        secret: str,
        auth_method: str = "app-password",
    ) -> ConnectionTestResult:
        """Authenticate against the API root and collect site metadata.

        Themes and plugins are fetched best-effort; their failure does not
        fail the test. Never raises.

        Args:
            url: Site base URL.
            username: REST API username.
            secret: Application password or token.
            auth_method: 'app-password' or 'token' (both use basic auth).

        Returns:
            ConnectionTestResult with success flag and metadata or error.
        """
        try:
            async with self._client(url, username, secret, self._probe_timeout) as client:
                response = await client.get("")
                response.raise_for_status()
                themes, plugins = await asyncio.gather(
                    self._best_effort_list(client, "themes"),
                    self._best_effort_list(client, "plugins"),
                )
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            detail = _remote_message(e.response) or e.response.reason_phrase
            logger.info("Connection test for %s failed with HTTP %d", url, status)
            return ConnectionTestResult(
                success=False,
                error=f"HTTP {status}: {detail}",
                error_kind="http_error",
                status_code=status,
            )
        except httpx.TimeoutException:
            logger.info("Connection test for %s timed out", url)
            return ConnectionTestResult(
                success=False,
                error=f"Connection timed out after {self._probe_timeout:g} seconds.",
                error_kind="timeout",
            )
        except httpx.ConnectError:
            logger.info("Connection test for %s: connection refused", url)
            return ConnectionTestResult(
                success=False,
                error=CONNECTION_REFUSED_MESSAGE,
                error_kind="connection_refused",
            )
        except Exception as e:
            logger.warning("Connection test for %s failed: %s", url, e, exc_info=True)
            return ConnectionTestResult(
                success=False,
                error=sanitize_error_message(str(e)) or "Unknown connection error",
                error_kind="unknown",
            )

        return ConnectionTestResult(
            success=True,
            wp_version=response.headers.get("x-wp-version") or "Unknown",
            active_theme=_active_theme_name(themes or []) or "Unknown",
            plugin_count=len(plugins) if plugins is not None else 0,
        )

    async def probe_status(self, target: SiteTarget) -> SiteStatus:
        """Check liveness and refresh cached metadata.

        Any failure reports ``is_online=False`` with zero metrics. Fields
        the probe cannot read fall back to the target's cached values.
        """
        try:
            async with self._client(
                target.url, target.username, target.secret, self._probe_timeout
            ) as client:
                started = time.monotonic()
                response = await client.get("")
                response.raise_for_status()
                response_time_ms = int((time.monotonic() - started) * 1000)
                themes, plugins = await asyncio.gather(
                    self._best_effort_list(client, "themes"),
                    self._best_effort_list(client, "plugins"),
                )
        except Exception as e:
            logger.warning(
                "Status probe for %s failed: %s",
                target.url, sanitize_error_message(str(e)) or type(e).__name__,
            )
            return SiteStatus(is_online=False, response_time_ms=0)

        active_theme = _active_theme_name(themes) if themes is not None else None
        return SiteStatus(
            is_online=True,
            response_time_ms=response_time_ms,
            wp_version=response.headers.get("x-wp-version") or target.wp_version,
            active_theme=active_theme or target.active_theme,
            plugin_count=len(plugins) if plugins is not None else target.plugin_count,
        )

    # --- Action execution ---

    async def execute_action(self, target: SiteTarget, action: DeclaredAction) -> dict[str, Any]:
        """Carry out one declared action against the site.

        Args:
            target: Site connection details including the decrypted secret.
            action: Typed action declaration.

        Returns:
            Result payload from the REST API.

        Raises:
            ActionExecutionError: If the action is unsupported or the site
                rejects it.
        """
        if isinstance(action, ThemeChangeAction):
            # No stable core REST endpoint switches the active theme.
            raise ActionExecutionError(
                "Theme switching is not supported through the WordPress REST API. "
                "Change the theme from the WordPress admin dashboard."
            )

        async with self._client(
            target.url, target.username, target.secret, self._timeout
        ) as client:
            if isinstance(action, ThemeCustomizeAction):
                return await self._customize_theme(client, action.params.settings)
            if isinstance(action, PluginInstallAction):
                return await self._post(
                    client,
                    "plugins",
                    {"slug": action.params.slug, "status": action.params.status},
                    "Plugin installation failed",
                )
            if isinstance(action, PluginActivateAction):
                return await self._post(
                    client,
                    _route("plugins", action.params.plugin),
                    {"status": "active"},
                    "Plugin activation failed",
                )
            if isinstance(action, ContentUpdateAction):
                params = action.params
                if params.id is None:
                    path = _route(params.content_type)
                else:
                    path = _route(params.content_type, params.id)
                return await self._post(client, path, params.data, "Content update failed")
            if isinstance(action, SettingsUpdateAction):
                return await self._post(
                    client, "settings", action.params.settings, "Settings update failed"
                )

        raise ActionExecutionError(f"Unsupported action type: {action.type}")

    async def _post(
        self,
        client: httpx.AsyncClient,
        path: str,
        payload: dict[str, Any],
        failure_prefix: str,
    ) -> dict[str, Any]:
        try:
            response = await client.post(path, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            remote = _remote_message(e.response)
            detail = remote or f"HTTP {status} {e.response.reason_phrase}".strip()
            raise ActionExecutionError(
                f"{failure_prefix}: {detail}", status_code=status, remote_message=remote
            ) from e
        except httpx.TimeoutException as e:
            raise ActionExecutionError(
                f"{failure_prefix}: request timed out after {self._timeout:g} seconds"
            ) from e
        except httpx.ConnectError as e:
            raise ActionExecutionError(f"{failure_prefix}: {CONNECTION_REFUSED_MESSAGE}") from e
        except httpx.HTTPError as e:
            detail = sanitize_error_message(str(e)) or type(e).__name__
            raise ActionExecutionError(f"{failure_prefix}: {detail}") from e
        return _json_result(response)

    async def _customize_theme(
        self, client: httpx.AsyncClient, settings: dict[str, Any]
    ) -> dict[str, Any]:
        """Apply customizer settings, falling back to per-setting theme mods.

        The ``customize`` route only exists when a customizer plugin is
        installed; without it each setting is written through ``theme-mods``.
        """
        try:
            return await self._post(
                client, "customize", {"settings": settings}, "Theme customization failed"
            )
        except ActionExecutionError as e:
            logger.info("Customizer endpoint unavailable (%s), using theme-mods", e.message)

        updated: list[str] = []
        failed: list[str] = []
        last_error: ActionExecutionError | None = None
        for key, value in settings.items():
            try:
                await self._post(
                    client, "theme-mods", {key: value}, "Theme customization failed"
                )
            except ActionExecutionError as e:
                failed.append(key)
                last_error = e
                continue
            updated.append(key)

        if not updated and last_error is not None:
            raise last_error
        return {"updated": len(updated), "failed": failed, "method": "theme-mods"}

    # --- Read helpers ---

    async def _get_list(
        self,
        target: SiteTarget,
        path: str,
        what: str,
        params: dict[str, Any] | None = None,
    ) -> list[Any]:
        async with self._client(
            target.url, target.username, target.secret, self._timeout
        ) as client:
            try:
                response = await client.get(path, params=params)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                remote = _remote_message(e.response)
                raise SiteGatewayError(
                    f"Failed to list {what}: {remote or f'HTTP {status}'}",
                    status_code=status,
                    remote_message=remote,
                ) from e
            except httpx.HTTPError as e:
                raise SiteGatewayError(
                    f"Failed to list {what}: {sanitize_error_message(str(e)) or type(e).__name__}"
                ) from e
        body = _json_result(response)
        return body.get("items", []) if "items" in body else [body]

    async def list_posts(self, target: SiteTarget, limit: int = 10) -> list[Any]:
        """Return the site's most recent posts."""
        return await self._get_list(target, "posts", "posts", params={"per_page": int(limit)})

    async def list_plugins(self, target: SiteTarget) -> list[Any]:
        """Return installed plugins."""
        return await self._get_list(target, "plugins", "plugins")

    async def list_themes(self, target: SiteTarget) -> list[Any]:
        """Return installed themes."""
        return await self._get_list(target, "themes", "themes")
