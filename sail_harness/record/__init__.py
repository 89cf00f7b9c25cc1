"""Remote recording: bracket examples with start/stop calls to the recorder."""

from __future__ import annotations

from .artifact import RecordingArtifact, artifact_filename
from .session import RECORD_PATH, RecorderState, RemoteRecorder, ServerAddress

__all__ = [
    "RECORD_PATH",
    "RecorderState",
    "RecordingArtifact",
    "RemoteRecorder",
    "ServerAddress",
    "artifact_filename",
]
