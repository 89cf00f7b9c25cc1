"""Recording artifacts returned by the remote recorder."""

from __future__ import annotations

import dataclasses as dc
import json
import re
import typing as t
from pathlib import Path

ARTIFACT_SUFFIX: t.Final[str] = "-remote.appmap.json"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def artifact_filename(name: str) -> str:
    """Return a filesystem-safe file name for the recording of *name*.

    >>> artifact_filename("tests/features/test_edit.py::test_save[int]")
    'tests_features_test_edit.py_test_save_int-remote.appmap.json'
    """
    stem = _UNSAFE_CHARS.sub("_", name).strip("_") or "recording"
    return f"{stem}{ARTIFACT_SUFFIX}"


@dc.dataclass(frozen=True, slots=True)
class RecordingArtifact:
    """Serialized recording captured during one example."""

    name: str
    body: bytes

    @property
    def text(self) -> str:
        """Return the body decoded as UTF-8."""
        return self.body.decode("utf-8")

    def json(self) -> t.Any:  # noqa: ANN401 - recording payloads are free-form
        """Decode the body as JSON."""
        return json.loads(self.body)

    def save(self, directory: Path | str) -> Path:
        """Write the artifact into *directory* and return the file path."""
        target_dir = Path(directory)
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / artifact_filename(self.name)
        path.write_bytes(self.body)
        return path
