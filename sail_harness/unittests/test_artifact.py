"""Unit tests for recording artifacts."""

from __future__ import annotations

import typing as t

from sail_harness.record import RecordingArtifact, artifact_filename

if t.TYPE_CHECKING:
    from pathlib import Path


def test_filename_from_node_id() -> None:
    """Node ids become flat, filesystem-safe names."""
    name = artifact_filename("tests/features/test_edit.py::test_save[int]")
    assert name == "tests_features_test_edit.py_test_save_int-remote.appmap.json"


def test_filename_for_empty_name() -> None:
    """An unusable name still yields a file name."""
    assert artifact_filename("::") == "recording-remote.appmap.json"


def test_save_writes_body(tmp_path: Path) -> None:
    """save() creates the directory and writes the raw body."""
    artifact = RecordingArtifact(name="features/test_home.py::test_home", body=b"{}")

    path = artifact.save(tmp_path / "appmap" / "remote")

    assert path.parent == tmp_path / "appmap" / "remote"
    assert path.name.endswith("-remote.appmap.json")
    assert path.read_bytes() == b"{}"


def test_text_and_json() -> None:
    """The body can be read as text or JSON."""
    artifact = RecordingArtifact(name="x", body=b'{"events": [1]}')
    assert artifact.text == '{"events": [1]}'
    assert artifact.json() == {"events": [1]}
