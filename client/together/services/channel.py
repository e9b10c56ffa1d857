import logging
from typing import Awaitable, Callable, Optional
import socketio
from together.models.messages import INBOUND_MESSAGES, Outbound

logger = logging.getLogger(__name__)

MessageHandler = Callable[[str, dict], Awaitable[None]]


class RoomChannel:
    """socket.io connection to the room server."""

    def __init__(self, url: str, on_message: MessageHandler, on_disconnect: Optional[Callable[[], Awaitable[None]]] = None):
        self.url = url
        self.on_message = on_message
        self.on_disconnect = on_disconnect
        # A reconnect gets a fresh sid that is not in any room, so the session resets instead
        self.sio = socketio.AsyncClient(reconnection=False)
        self.sio.on("connect", self._connected)
        self.sio.on("disconnect", self._disconnected)
        for event in INBOUND_MESSAGES:
            self.sio.on(event, self._forwarder(event))

    def _forwarder(self, event: str):
        async def forward(data=None):
            await self.on_message(event, data if isinstance(data, dict) else {})
        return forward

    async def _connected(self):
        logger.info(f"Connected to {self.url} as {self.sid}")

    async def _disconnected(self, *args):
        logger.info(f"Disconnected from {self.url}")
        if self.on_disconnect:
            await self.on_disconnect()

    @property
    def connected(self) -> bool:
        return self.sio.connected

    @property
    def sid(self) -> Optional[str]:
        return self.sio.get_sid()

    async def connect(self):
        if self.sio.connected:
            return
        await self.sio.connect(self.url, transports=["websocket", "polling"])

    async def emit(self, message: Outbound):
        logger.debug(f"-> {message.event} {message.payload()}")
        await self.sio.emit(message.event, message.payload())

    async def close(self):
        if self.sio.connected:
            await self.sio.disconnect()
