"""
End-of-session teardown and persistence of captured artifacts.
"""
import logging
import re
import time
from typing import Callable, Optional

from ..config import SIGNED_URL_TTL_SECONDS
from .capabilities import AuthProvider, DurableStorage
from .capture import CaptureScheduler
from .errors import AuthRequired, UploadFailure
from .events import SessionEventBus, NoticeEvent, UploadFailedEvent
from .media import MediaController
from .models import CapturedArtifact, ReconciliationResult, Session

logger = logging.getLogger("reconciliation")

EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "video/webm": "webm",
    "video/mp4": "mp4",
}

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def sanitize_name(name: str) -> str:
    """Make a candidate name safe for use inside a storage path."""
    clean = re.sub(r"\s+", "-", name.strip())
    clean = _UNSAFE_CHARS.sub("", clean).strip(".-")
    return clean or "candidate"


def build_storage_path(identity_id: str, candidate_name: str, timestamp_ms: int,
                       sequence: int, content_type: str) -> str:
    """``{identity}/{sanitized-name}-{timestamp}-{seq}.{ext}``"""
    ext = EXTENSIONS.get(content_type, "bin")
    return f"{identity_id}/{sanitize_name(candidate_name)}-{timestamp_ms}-{sequence}.{ext}"


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


class ReconciliationPipeline:
    """
    Frees the hardware, then uploads whatever was captured.

    Per-artifact upload or signing failures are logged and skipped; the
    pipeline never raises for them.
    """

    def __init__(self,
                 media: MediaController,
                 scheduler: CaptureScheduler,
                 auth: AuthProvider,
                 storage: DurableStorage,
                 signed_url_ttl: int = SIGNED_URL_TTL_SECONDS,
                 event_bus: Optional[SessionEventBus] = None,
                 timestamp_ms: Callable[[], int] = _wall_clock_ms):
        self.media = media
        self.scheduler = scheduler
        self.auth = auth
        self.storage = storage
        self.signed_url_ttl = signed_url_ttl
        self.event_bus = event_bus
        self.timestamp_ms = timestamp_ms

    def teardown(self, session: Session) -> None:
        """Stop timers, release the stream and close the artifact buffer."""
        self.scheduler.cancel_all()
        self.media.release()
        session.captured_artifacts.seal()

    async def run(self, session: Session) -> ReconciliationResult:
        self.teardown(session)
        result = ReconciliationResult()

        artifacts = list(session.captured_artifacts)
        if not artifacts:
            logger.info("No artifacts captured, nothing to upload")
            return result

        try:
            identity = await self.auth.current_identity()
        except Exception as e:
            logger.error("Could not resolve authenticated identity: %s", e)
            identity = None

        if identity is None:
            logger.error("No authenticated user, skipping %d upload(s)", len(artifacts))
            result.auth_required = True
            self._notify(session, "error", AuthRequired.user_message)
            return result

        self._notify(session, "info", "Saving photos...")
        timestamp = self.timestamp_ms()

        for artifact in artifacts:
            path = build_storage_path(identity.id, session.candidate_name, timestamp,
                                      artifact.sequence, artifact.content_type)
            if await self._upload(session, path, artifact):
                result.stored_paths.append(path)
            else:
                result.failed_paths.append(path)

        for path in result.stored_paths:
            try:
                url = await self.storage.create_signed_url(path, self.signed_url_ttl)
            except Exception as e:
                logger.error("Error creating signed URL for %s: %s", path, e)
                continue
            if url:
                result.artifact_urls.append(url)

        if result.artifact_urls:
            result.durable_artifact_url = result.artifact_urls[0]

        stored = len(result.artifact_urls)
        if stored == len(artifacts):
            self._notify(session, "success", "Photos saved successfully!")
        elif stored:
            self._notify(session, "warning", f"Saved {stored} of {len(artifacts)} photos.")
        else:
            self._notify(session, "error", UploadFailure.user_message)

        logger.info(f"Reconciliation done: {stored}/{len(artifacts)} artifact(s) stored")
        return result

    async def _upload(self, session: Session, path: str, artifact: CapturedArtifact) -> bool:
        try:
            await self.storage.upload(path, artifact.data, artifact.content_type)
        except Exception as e:
            error = UploadFailure(path, str(e))
            logger.error("Error uploading artifact %d: %s", artifact.sequence, error)
            if self.event_bus:
                self.event_bus.emit(UploadFailedEvent(session.session_id, time.time(), path, str(e)))
            return False
        logger.info(f"Uploaded {path}")
        return True

    def _notify(self, session: Session, level: str, message: str) -> None:
        if self.event_bus:
            self.event_bus.emit(NoticeEvent(session.session_id, time.time(), level, message))
