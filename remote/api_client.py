"""Cider control API client.

Stateless request/response calls against
``http://<host>:<port>/api/v1/playback/<endpoint>``.

  - Every request carries the device token in the ``apptoken`` header
  - No retries here; callers decide what to do with a failure
  - Timeout follows the platform network default, never shorter
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from playback.models import DeviceDescriptor, NowPlayingInfo
from remote.config import Settings, get_settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ControlAPIError(Exception):
    """Base class for control API failures."""


class InvalidEndpoint(ControlAPIError):
    """The request URL could not be built."""


class Unreachable(ControlAPIError):
    """Network or connection failure talking to the device."""


class ServerError(ControlAPIError):
    """The device answered with a non-2xx status."""

    def __init__(self, status_code: int, detail: str = ""):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Server responded with status code {status_code}")


class MalformedResponse(ControlAPIError):
    """The response body is not a JSON object (or lacks an expected field)."""


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class ControlAPIClient:
    """Request/response caller for one device."""

    def __init__(
        self,
        device: DeviceDescriptor,
        *,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.device = device
        self._settings = settings or get_settings()
        self._transport = transport

    def url_for(self, endpoint: str) -> httpx.URL:
        """Build the absolute URL for *endpoint* or raise ``InvalidEndpoint``."""
        if not endpoint or any(ch.isspace() for ch in endpoint):
            raise InvalidEndpoint(f"Invalid endpoint: {endpoint!r}")
        raw = f"http://{self.device.host}:{self.device.port}{self._settings.api_prefix}{endpoint}"
        try:
            url = httpx.URL(raw)
        except httpx.InvalidURL as exc:
            raise InvalidEndpoint(f"Invalid URL {raw!r}: {exc}") from exc
        if not url.host:
            raise InvalidEndpoint(f"Invalid URL {raw!r}: missing host")
        return url

    async def _request(self, endpoint: str, method: str, body: dict[str, Any] | None) -> Any:
        url = self.url_for(endpoint)
        headers = {self._settings.token_header: self.device.token}
        kwargs: dict[str, Any] = {"headers": headers}
        if body is not None:
            kwargs["json"] = body

        logger.debug("%s %s body=%s", method, url, body)
        timeout = httpx.Timeout(self._settings.request_timeout)
        async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
            try:
                resp = await client.request(method, url, **kwargs)
            except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
                raise InvalidEndpoint(str(exc)) from exc
            except httpx.TransportError as exc:
                logger.warning("%s %s failed: %s", method, endpoint, exc)
                raise Unreachable(f"Could not reach {self.device.host}: {exc}") from exc

        if not 200 <= resp.status_code < 300:
            logger.warning("%s %s -> %d", method, endpoint, resp.status_code)
            raise ServerError(resp.status_code, resp.text)

        if resp.status_code == 204 or not resp.content:
            if resp.status_code == 204:
                return {}
            raise MalformedResponse(f"{endpoint}: empty response body")

        try:
            return resp.json()
        except ValueError as exc:
            raise MalformedResponse(f"{endpoint}: response is not valid JSON") from exc

    async def send(
        self,
        endpoint: str,
        method: str = "GET",
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make one authenticated request and return the JSON object body.

        Raises
        ------
        InvalidEndpoint, Unreachable, ServerError, MalformedResponse
        """
        data = await self._request(endpoint, method, body)
        if not isinstance(data, dict):
            raise MalformedResponse(f"{endpoint}: expected a JSON object")
        return data

    # ── Typed helpers ───────────────────────────────────────────

    async def now_playing(self) -> NowPlayingInfo:
        data = await self.send("now-playing")
        info = data.get("info")
        if not isinstance(info, dict):
            raise MalformedResponse("now-playing: missing info object")
        try:
            return NowPlayingInfo.model_validate(info)
        except ValueError as exc:
            raise MalformedResponse(f"now-playing: {exc}") from exc

    async def get_volume(self) -> float:
        return _read_volume(await self.send("volume"))

    async def set_volume(self, volume: float) -> float:
        """Commit *volume* and return the device's authoritative value."""
        return _read_volume(await self.send("volume", "POST", {"volume": volume}))

    async def play_pause(self) -> None:
        await self.send("playpause", "POST")

    async def next_track(self) -> None:
        await self.send("next", "POST")

    async def previous_track(self) -> None:
        await self.send("previous", "POST")

    async def seek(self, position: float) -> None:
        await self.send("seek", "POST", {"position": position})

    async def set_rating(self, rating: int) -> None:
        await self.send("set-rating", "POST", {"rating": rating})

    async def add_to_library(self) -> None:
        await self.send("add-to-library", "POST")

    async def queue(self) -> list[NowPlayingInfo]:
        """Return the upcoming queue; unparseable items are skipped."""
        data = await self._request("queue", "GET", None)
        if isinstance(data, dict):
            data = data.get("items", data.get("queue"))
        if not isinstance(data, list):
            raise MalformedResponse("queue: expected a list of items")

        items: list[NowPlayingInfo] = []
        for raw in data:
            if not isinstance(raw, dict):
                continue
            try:
                items.append(NowPlayingInfo.from_queue_item(raw))
            except ValueError:
                logger.debug("Skipping unparseable queue item: %r", raw)
        return items

    async def ping(self) -> bool:
        """True if the device answers a now-playing request."""
        try:
            await self.send("now-playing")
        except ControlAPIError as exc:
            logger.info("Device %s inactive: %s", self.device.host, exc)
            return False
        return True


def _read_volume(data: dict[str, Any]) -> float:
    volume = data.get("volume")
    if isinstance(volume, bool) or not isinstance(volume, (int, float)):
        raise MalformedResponse("volume: missing numeric volume")
    return float(volume)
