import os
import logging
from contextlib import asynccontextmanager
from typing import Optional
import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from together.config import SyncSettings
from together.models.sync import VideoRef
from together.services import media
from together.services.api import RoomApi
from together.services.player import ClockPlayer
from together.services.session import SessionController

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class JoinRequest(BaseModel):
    username: str = ""
    room_code: str = Field("", alias="roomCode")


class CreateRequest(BaseModel):
    username: str = ""


class ChatRequest(BaseModel):
    text: str = ""


def build_controller(settings: SyncSettings) -> SessionController:
    controller = SessionController(
        settings,
        RoomApi(settings.backend_url, timeout=settings.request_timeout_s),
        resolver=media.resolve_video if settings.resolve_metadata else None,
    )
    controller.attach_player(ClockPlayer())
    return controller


def session_view(controller: SessionController) -> dict:
    session = controller.session
    return {
        "state": controller.state.value,
        "status": controller.status,
        "roomCode": session.room_code if session else None,
        "isHost": controller.is_host,
        "joined": controller.joined,
        "canTerminate": controller.can_terminate,
        "currentVideo": controller.current_video.model_dump(by_alias=True),
        "messages": [msg.model_dump() for msg in controller.messages],
    }


def create_app(controller: Optional[SessionController] = None, settings: Optional[SyncSettings] = None) -> FastAPI:
    settings = settings or SyncSettings.from_env()
    controller = controller or build_controller(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await controller.close()

    app = FastAPI(lifespan=lifespan)
    app.state.controller = controller

    origins = settings.allowed_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def result(ok: bool) -> dict:
        if not ok:
            raise HTTPException(status_code=400, detail=controller.status)
        return session_view(controller)

    @app.get("/api/session")
    async def get_session():
        return session_view(controller)

    @app.post("/api/session/create")
    async def create_room(body: CreateRequest):
        return result(await controller.create_room(body.username))

    @app.post("/api/session/join")
    async def join_room(body: JoinRequest):
        return result(await controller.join_room(body.username, body.room_code))

    @app.post("/api/session/exit")
    async def exit_room():
        return result(await controller.exit_room())

    @app.post("/api/session/terminate")
    async def terminate_room():
        # Client-side gate only; the server decides
        return result(await controller.terminate_room())

    @app.post("/api/chat")
    async def send_chat(body: ChatRequest):
        if not await controller.send_chat(body.text):
            raise HTTPException(status_code=400, detail="Join a room and enter a message")
        return session_view(controller)

    @app.get("/api/videos/search")
    async def search_videos(q: str):
        results = await controller.search_videos(q)
        return {"status": controller.status, "results": [v.model_dump(by_alias=True) for v in results]}

    @app.get("/api/videos/related")
    async def related_videos():
        return {"results": [v.model_dump(by_alias=True) for v in controller.related_results]}

    @app.post("/api/videos/select")
    async def select_video(video: VideoRef):
        return result(await controller.select_video(video))

    @app.post("/api/player/{action}")
    async def player_action(action: str, seconds: Optional[float] = None):
        """
        Acts on the local player the way a viewer would. The observer picks the
        change up on its next tick and broadcasts it.
        """
        player = controller.player
        if player is None:
            raise HTTPException(status_code=409, detail="No player attached")
        if action == "play":
            player.play()
        elif action == "pause":
            player.pause()
        elif action == "seek":
            if seconds is None or seconds < 0:
                raise HTTPException(status_code=400, detail="seconds must be >= 0")
            player.seek(seconds)
        else:
            raise HTTPException(status_code=404, detail=f"Unknown player action {action}")
        return {"time": player.get_time(), "state": player.get_state().value}

    return app


def run():
    uvicorn.run(create_app(), host=os.getenv("HOST", "127.0.0.1"), port=int(os.getenv("PORT", "5000")))


if __name__ == "__main__":
    run()
