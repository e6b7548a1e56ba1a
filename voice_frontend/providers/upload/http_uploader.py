"""
HTTP round trip to the remote assistant.

POSTs the recording as multipart form data and saves the spoken reply.
Reply metadata travels in response headers.
"""

import asyncio
import tempfile
from pathlib import Path
from typing import Dict, Any, Optional

import aiohttp

from ...interfaces.uploader import AudioUploader
from ...models.data_models import UploadResult
from ...utils.error_handling import UploadFailed, describe_network_error
from ...utils.logging_config import get_logger

logger = get_logger("upload")

DEFAULT_HEADERS = {
    'transcription': 'X-Transcription',
    'response_text': 'X-Response-Text',
    'continue': 'X-Continue-Conversation',
}


class HttpUploader(AudioUploader):
    """Single-attempt multipart upload with bounded timeouts."""

    def __init__(self, config: Dict[str, Any]):
        self.url: str = str(config.get('url') or '')
        self.field_name: str = str(config.get('field_name', 'file'))
        self.content_type: str = str(config.get('content_type', 'audio/wav'))
        self.connect_timeout: float = float(config.get('connect_timeout', 60))
        self.read_timeout: float = float(config.get('read_timeout', 120))
        self.headers: Dict[str, str] = {**DEFAULT_HEADERS, **config.get('headers', {})}
        self.response_dir: Optional[str] = config.get('response_dir')
        self.response_suffix: str = str(config.get('response_suffix', '.mp3'))
        self._session: Optional[aiohttp.ClientSession] = None

    def _timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(
            total=None,
            connect=self.connect_timeout,
            sock_connect=self.connect_timeout,
            sock_read=self.read_timeout,
        )

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout())
        return self._session

    async def upload(self, file_path: str) -> UploadResult:
        if not self.url:
            raise UploadFailed("No upload URL configured", user_message="Upload not configured")

        path = Path(file_path)
        if not path.exists():
            raise UploadFailed(f"Recording not found: {file_path}", user_message="Recording not found")

        session = await self._get_session()
        logger.info("Uploading %s (%d bytes) to %s", path.name, path.stat().st_size, self.url)

        try:
            with path.open('rb') as audio:
                form = aiohttp.FormData()
                form.add_field(self.field_name, audio, filename=path.name,
                               content_type=self.content_type)
                async with session.post(self.url, data=form) as response:
                    if response.status < 200 or response.status >= 300:
                        raise UploadFailed(
                            f"Server returned {response.status}",
                            status_code=response.status,
                            user_message=f"Server error: {response.status}",
                        )
                    body = await response.read()
                    headers = response.headers
                    reply_type = response.headers.get('Content-Type', '')
        except UploadFailed:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            message = describe_network_error(e)
            logger.warning("Upload failed: %s (%s)", message, e)
            raise UploadFailed(str(e) or message, user_message=message) from e

        if not body:
            raise UploadFailed("Empty response body", user_message="Empty response from server")
        if reply_type and not reply_type.startswith('audio/'):
            logger.warning("Unexpected response content type: %s", reply_type)

        audio_path = await asyncio.to_thread(self._save_reply, body)
        should_continue = headers.get(self.headers['continue'], '').strip().lower() == 'true'
        result = UploadResult(
            audio_path=audio_path,
            should_continue=should_continue,
            transcription=headers.get(self.headers['transcription']),
            response_text=headers.get(self.headers['response_text']),
            content_type=reply_type or None,
        )
        logger.info("Reply saved: %s (%d bytes, continue=%s)", audio_path, len(body), should_continue)
        return result

    def _save_reply(self, body: bytes) -> str:
        if self.response_dir:
            Path(self.response_dir).mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(prefix="response_", suffix=self.response_suffix,
                                         dir=self.response_dir, delete=False) as out:
            out.write(body)
            return out.name

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
