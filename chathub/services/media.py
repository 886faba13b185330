"""
Download and storage of message attachments.
"""
import base64
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import httpx

from chathub.core.logging import get_logger
from chathub.services.provider import EvolutionClient

logger = get_logger(__name__)

# Subdirectory of the media root per message type
MEDIA_DIRS = {
    "imageMessage": "images",
    "videoMessage": "videos",
    "audioMessage": "audios",
    "documentMessage": "documents",
    "stickerMessage": "images",
}

# Extension used when the original file name has none
FILE_EXTENSIONS = {
    "imageMessage": ".jpg",
    "videoMessage": ".mp4",
    "audioMessage": ".ogg",
    "documentMessage": ".pdf",
    "stickerMessage": ".webp",
}

DEFAULT_EXTENSION = ".bin"

_DATA_URI_PREFIX = re.compile(r"^data:[^;]+;base64,")
_UNSAFE_CHARS = re.compile(r"[^\w.-]+")


@dataclass
class MediaDescriptor:
    type: str
    filename: str
    web_path: str
    size: int
    mimetype: str
    caption: Optional[str]
    local_path: Path

    def as_message_fields(self) -> Dict[str, Any]:
        """Columns stored on the Message row (the local path is not one of them)."""
        return {
            "media_type": self.type,
            "media_filename": self.filename,
            "media_path": self.web_path,
            "media_size": self.size,
            "media_mimetype": self.mimetype,
            "media_caption": self.caption,
            "media_downloaded": True,
        }


def _safe_name(value: str) -> str:
    return _UNSAFE_CHARS.sub("_", value).strip("._")[:120]


def _name_candidate(*values: Any) -> Optional[str]:
    """First usable original file name among the candidates."""
    for value in values:
        if value is None or isinstance(value, (dict, list)):
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def decode_base64(data: str) -> bytes:
    """Decode a base64 payload, tolerating a data-URI prefix."""
    return base64.b64decode(_DATA_URI_PREFIX.sub("", data.strip()))


class MediaFetcher:
    """
    Fetches attachments from the provider and writes them under
    ``media_root/<subdir>/``. Files are referenced from the database only by
    their web path (``<url_prefix>/<subdir>/<filename>``).
    """

    def __init__(
        self,
        media_root: Union[str, Path],
        url_prefix: str = "/uploads",
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
        retention_days: int = 30,
    ):
        self.media_root = Path(media_root)
        self.url_prefix = url_prefix.rstrip("/")
        self.timeout = timeout
        self.retention_days = retention_days
        self.transport = transport

    def ensure_directories(self) -> None:
        for subdir in set(MEDIA_DIRS.values()):
            (self.media_root / subdir).mkdir(parents=True, exist_ok=True)

    def build_filename(self, message_id: str, message_type: str, original_name: Optional[str] = None) -> str:
        """``{messageId}_{unixMillis}[_{baseName}]{ext}``."""
        timestamp = int(time.time() * 1000)
        default_ext = FILE_EXTENSIONS.get(message_type, DEFAULT_EXTENSION)
        prefix = f"{_safe_name(message_id)}_{timestamp}"

        if original_name:
            path = Path(original_name.replace("\\", "/"))
            ext = path.suffix if path.suffix and len(path.suffix) <= 10 else default_ext
            base = _safe_name(path.name[: -len(path.suffix)] if path.suffix else path.name)
            if base:
                return f"{prefix}_{base}{ext}"
            return f"{prefix}{ext}"

        return f"{prefix}{default_ext}"

    def fetch(
        self,
        message_id: str,
        message_type: str,
        server_url: str,
        api_key: str,
        media_info: Optional[Dict[str, Any]] = None,
    ) -> Optional[MediaDescriptor]:
        """
        Download one attachment. Returns ``None`` on any failure, after
        logging it; callers persist the message without media in that case.
        """
        subdir = MEDIA_DIRS.get(message_type)
        if subdir is None or not message_id:
            return None

        if not isinstance(media_info, dict):
            media_info = {}
        try:
            client = EvolutionClient(server_url, api_key, timeout=self.timeout, transport=self.transport)
            result = client.get_base64_from_media_message(message_id)

            content = decode_base64(result["base64"])
            original_name = _name_candidate(media_info.get("fileName"), media_info.get("caption"), result.get("fileName"))
            filename = self.build_filename(message_id, message_type, original_name)

            target_dir = self.media_root / subdir
            target_dir.mkdir(parents=True, exist_ok=True)
            local_path = target_dir / filename
            local_path.write_bytes(content)

            caption = media_info.get("caption")
            mimetype = result.get("mimetype")
            descriptor = MediaDescriptor(
                type=message_type,
                filename=filename,
                web_path=f"{self.url_prefix}/{subdir}/{filename}",
                size=len(content),
                mimetype=mimetype if isinstance(mimetype, str) and mimetype else "application/octet-stream",
                caption=caption if isinstance(caption, str) else None,
                local_path=local_path,
            )
        except Exception as exc:
            # Any failure here means "no media"; the message is still stored
            logger.warning(
                "Media download failed",
                extra={"extra_data": {"message_id": message_id, "message_type": message_type, "error": repr(exc)}},
            )
            return None

        logger.info(
            "Media stored",
            extra={"extra_data": {"message_id": message_id, "file": filename, "size": len(content)}},
        )
        return descriptor

    def cleanup_old_media(self, days_old: Optional[int] = None) -> int:
        """Delete media files older than ``days_old`` days (default: the retention setting); returns how many were removed."""
        if days_old is None:
            days_old = self.retention_days
        cutoff = time.time() - days_old * 86400
        removed = 0

        for subdir in sorted(set(MEDIA_DIRS.values())):
            directory = self.media_root / subdir
            if not directory.is_dir():
                continue
            for path in directory.iterdir():
                if not path.is_file():
                    continue
                try:
                    if path.stat().st_mtime < cutoff:
                        path.unlink()
                        removed += 1
                        logger.info("Old media removed", extra={"extra_data": {"file": str(path)}})
                except OSError as exc:
                    logger.error(f"Could not remove {path}: {exc}")

        return removed
