import os
import logging
import asyncio
from typing import Optional, Dict, Any
from yt_dlp import YoutubeDL
from together.models.sync import VideoRef

logger = logging.getLogger(__name__)

WATCH_URL = "https://www.youtube.com/watch?v={}"


def _extract_info(video_id: str) -> Optional[Dict[str, Any]]:
    proxy_url = os.getenv('PROXY_URL')

    ydl_opts = {
        'quiet': True,
        'no_warnings': True,
        'skip_download': True,
        'noplaylist': True,
        'extract_flat': False,
    }
    if proxy_url:
        ydl_opts['proxy'] = proxy_url

    with YoutubeDL(ydl_opts) as ydl:
        try:
            info = ydl.extract_info(WATCH_URL.format(video_id), download=False)
        except Exception as e:
            logger.error(f"yt-dlp lookup error for {video_id}: {e}")
            return None

    if not info:
        return None
    return {
        "videoId": info.get('id') or video_id,
        "channelId": info.get('channel_id'),
        "title": info.get('title'),
        "channelTitle": info.get('channel') or info.get('uploader'),
        "thumbnail": info.get('thumbnail'),
    }


async def resolve_video(video_id: str) -> Optional[VideoRef]:
    """
    Looks up title/channel/thumbnail for a bare video id.
    yt-dlp is blocking, so it runs in the default executor.
    """
    if not video_id:
        return None
    loop = asyncio.get_running_loop()
    info = await loop.run_in_executor(None, _extract_info, video_id)
    if not info:
        return None
    return VideoRef.from_item(info)
