import re
import logging
from typing import List, Optional
import httpx
from together.models.sync import VideoRef

logger = logging.getLogger(__name__)

ROOM_CODE_RE = re.compile(r"^[A-Z0-9]{6}$")


class RoomRequestError(Exception):
    pass


def normalize_room_code(code: Optional[str]) -> Optional[str]:
    """Upper-cased room code, or None when it is not 6 letters/numbers."""
    cleaned = (code or "").strip().upper()
    if not ROOM_CODE_RE.match(cleaned):
        return None
    return cleaned


def _error_message(response: httpx.Response, default: str) -> str:
    try:
        data = response.json()
    except ValueError:
        return default
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return default


class RoomApi:
    """HTTP side of the room backend: room creation/lookup and video search."""

    def __init__(self, base_url: str, timeout: float = 10.0, client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.strip().rstrip("/")
        self.client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise RoomRequestError(f"Could not reach server ({e.__class__.__name__})") from e

    async def create_room(self, video_id: str) -> str:
        response = await self._request("POST", "/api/rooms/create", json={"videoId": video_id})
        if response.is_error:
            raise RoomRequestError(_error_message(response, "Room creation failed"))
        try:
            data = response.json()
        except ValueError as e:
            raise RoomRequestError("Malformed server response") from e
        code = normalize_room_code(data.get("roomCode") if isinstance(data, dict) else None)
        if not code:
            raise RoomRequestError("Malformed server response")
        logger.info(f"Created room {code} for video {video_id}")
        return code

    async def room_exists(self, code: str) -> bool:
        response = await self._request("GET", f"/api/rooms/{code}")
        if response.status_code == 404:
            return False
        if response.is_error:
            raise RoomRequestError(_error_message(response, "Room lookup failed"))
        return True

    async def _videos(self, path: str, params: dict, default_error: str) -> List[VideoRef]:
        response = await self._request("GET", path, params=params)
        try:
            data = response.json()
        except ValueError as e:
            raise RoomRequestError(default_error) from e
        if response.is_error:
            raise RoomRequestError(_error_message(response, default_error))
        items = data.get("results") if isinstance(data, dict) else None
        return [VideoRef.from_item(item) for item in (items or []) if isinstance(item, dict)]

    async def search(self, query: str) -> List[VideoRef]:
        return await self._videos("/api/youtube/search", {"q": query}, "YouTube search failed")

    async def related(self, video_id: str, channel_id: str = "") -> List[VideoRef]:
        params = {"videoId": video_id}
        if channel_id:
            params["channelId"] = channel_id
        return await self._videos("/api/youtube/related", params, "Failed to fetch related videos")

    async def aclose(self):
        await self.client.aclose()
