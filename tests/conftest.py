"""Pytest configuration and fixtures for gcseval tests."""

from pathlib import Path

import pytest

from gcseval.config import HarnessConfig
from tests.helpers import ScriptedRunner


@pytest.fixture
def harness_config(tmp_path: Path) -> HarnessConfig:
    """A config pointing at a fake bucket, with artifacts under tmp_path."""
    return HarnessConfig(
        project_id="test-project",
        bucket_name="test-bucket",
        test_file_prefix="test-",
        retry_delay_ms=0,
        screenshot_dir=tmp_path / "screenshots",
        download_dir=tmp_path / "downloads",
    )


@pytest.fixture
def scripted_runner() -> ScriptedRunner:
    return ScriptedRunner()


@pytest.fixture
def recursive_listing() -> str:
    """Output of `gcloud storage ls -r` on a prefix with nested sub-prefixes."""
    return "\n".join([
        "gs://test-bucket/ns/:",
        "gs://test-bucket/ns/file1.txt",
        "",
        "gs://test-bucket/ns/dir1/:",
        "gs://test-bucket/ns/dir1/file2.txt",
        "",
        "gs://test-bucket/ns/dir1/subdir/:",
        "gs://test-bucket/ns/dir1/subdir/file3.txt",
    ])


@pytest.fixture
def sign_url_output() -> str:
    """Output of `gcloud storage sign-url` (YAML-ish block)."""
    return "\n".join([
        "---",
        "expiration: '2026-10-18 12:00:00'",
        "http_verb: GET",
        "resource: gs://test-bucket/test-file.txt",
        "signed_url: https://storage.googleapis.com/test-bucket/test-file.txt?"
        "x-goog-signature=abc123&x-goog-algorithm=GOOG4-RSA-SHA256&x-goog-expires=3600",
    ])
