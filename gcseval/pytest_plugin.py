"""
Pytest fixtures for running the live gcloud storage scenarios.

Registered through the ``pytest11`` entry point, so installing gcseval is
enough to get the fixtures and the ``--gcs-*`` options. Tests marked ``live``
are skipped unless a bucket is configured (``--gcs-bucket``,
``GCS_BUCKET_NAME`` or gcseval.yaml).

Fixture scopes:
- session:  gcs_config, gcloud_cli, bucket, browser_engine
- function: tracked_objects, create_test_file, signed_url_validator,
            unique_file_name, namespace
"""
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional, Union

import pytest

from gcseval.browser import BrowserEngine, SignedUrlValidator
from gcseval.bucket import BucketHelper
from gcseval.config import HarnessConfig, load_config
from gcseval.exceptions import ConfigurationError, HarnessError
from gcseval.gcloud import GCloudStorageCli
from gcseval.testdata import unique_namespace
from gcseval.tracking import TrackedObjects
from gcseval.types import CommandResult

logger = logging.getLogger(__name__)

SUITE_MARKERS = {
    "live": "needs gcloud and a real bucket (GCS_BUCKET_NAME)",
    "copy": "gcloud storage cp scenarios",
    "list": "gcloud storage ls scenarios",
    "delete": "gcloud storage rm scenarios",
    "sign_url": "gcloud storage sign-url scenarios (priority suite)",
    "quick": "fast environment validation scenarios",
}


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("gcseval", "gcloud storage live scenarios")
    group.addoption("--gcs-bucket", dest="gcs_bucket", help="Bucket for test objects (GCS_BUCKET_NAME)")
    group.addoption("--gcs-project", dest="gcs_project", help="Project ID (GCS_PROJECT_ID)")
    group.addoption("--gcs-prefix", dest="gcs_prefix", help="Test object key prefix (GCS_TEST_FILE_PREFIX)")
    group.addoption("--gcs-config", dest="gcs_config", help="Path to gcseval.yaml")
    group.addoption("--gcs-headed", dest="gcs_headed", action="store_true", default=None,
                    help="Run the browser in headed mode")


def pytest_configure(config: pytest.Config) -> None:
    for name, description in SUITE_MARKERS.items():
        config.addinivalue_line("markers", f"{name}: {description}")


def _overrides(config: pytest.Config) -> Dict[str, Any]:
    headed = config.getoption("gcs_headed")
    return {
        "bucket_name": config.getoption("gcs_bucket"),
        "project_id": config.getoption("gcs_project"),
        "test_file_prefix": config.getoption("gcs_prefix"),
        "headless": None if headed is None else not headed,
    }


def _load(config: pytest.Config) -> HarnessConfig:
    config_file = config.getoption("gcs_config")
    return load_config(
        config_path=Path(config_file) if config_file else None,
        overrides=_overrides(config),
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list) -> None:
    live_items = [item for item in items if item.get_closest_marker("live")]
    if not live_items:
        return
    try:
        _load(config)
    except ConfigurationError as e:
        skip = pytest.mark.skip(reason=f"live scenarios need a bucket: {e}")
        for item in live_items:
            item.add_marker(skip)


# ============================================================================
# Session fixtures
# ============================================================================


@pytest.fixture(scope="session")
def gcs_config(pytestconfig: pytest.Config) -> HarnessConfig:
    """Validated harness configuration; fails fast without a bucket."""
    return _load(pytestconfig)


@pytest.fixture(scope="session")
def gcloud_cli(gcs_config: HarnessConfig) -> GCloudStorageCli:
    """gcloud facade, after checking the CLI is installed and logged in."""
    logger.info("=== Starting GCS CLI Test Suite ===")
    cli = GCloudStorageCli.from_config(gcs_config)

    if not cli.is_available():
        raise HarnessError("gcloud CLI is not available. Please install and configure gcloud CLI.")
    if not cli.is_authenticated():
        raise HarnessError("Not authenticated with gcloud. Please run 'gcloud auth login'.")

    logger.info(f"Configuration validated. Project: {gcs_config.project_id}, Bucket: {gcs_config.bucket_name}")
    return cli


@pytest.fixture(scope="session")
def bucket(gcloud_cli: GCloudStorageCli, gcs_config: HarnessConfig) -> BucketHelper:
    return BucketHelper(gcloud_cli, gcs_config)


@pytest.fixture(scope="session")
def browser_engine(gcs_config: HarnessConfig) -> Iterator[BrowserEngine]:
    """One browser per test session, shut down once at the end."""
    engine = BrowserEngine(browser_type=gcs_config.browser, headless=gcs_config.headless)
    yield engine
    engine.shutdown()


# ============================================================================
# Per-test fixtures
# ============================================================================


@pytest.fixture
def tracked_objects(bucket: BucketHelper) -> Iterator[TrackedObjects]:
    """Objects added here are deleted after the test, whatever its outcome."""
    with TrackedObjects(bucket.delete) as tracked:
        yield tracked


@pytest.fixture
def create_test_file(
    bucket: BucketHelper, tracked_objects: TrackedObjects
) -> Callable[[str, Union[str, bytes]], str]:
    """Upload content under a name and track it for cleanup."""

    def _create(name: str, content: Union[str, bytes]) -> str:
        gs_path = tracked_objects.add(bucket.upload(name, content))
        logger.info(f"Created test file: {gs_path}")
        return gs_path

    return _create


@pytest.fixture
def signed_url_validator(browser_engine: BrowserEngine, gcs_config: HarnessConfig) -> SignedUrlValidator:
    return SignedUrlValidator.from_config(gcs_config, engine=browser_engine)


@pytest.fixture
def unique_file_name(bucket: BucketHelper) -> Callable[[str], str]:
    """Unique object key under the configured prefix, for an extension."""
    return bucket.unique_file_name


@pytest.fixture
def namespace(gcs_config: HarnessConfig) -> Callable[[str], str]:
    """Unique key prefix ending in ``/`` for scenarios creating many objects."""

    def _namespace(label: str) -> str:
        return unique_namespace(gcs_config.test_file_prefix, label)

    return _namespace


# ============================================================================
# Assertions
# ============================================================================


def assert_command_success(result: CommandResult, message: Optional[str] = None) -> None:
    """Fail with the exit code and stderr of a failed gcloud command."""
    if not result.success:
        prefix = f"{message}: " if message else ""
        raise AssertionError(
            f"{prefix}command `{result.command}` failed (exit code: {result.exit_code})\n{result.stderr}"
        )
