"""
Configuration loading and validation for gcseval.

Values are resolved per field, highest precedence first:

1. Explicit overrides (CLI options, pytest ``--gcs-*`` options). Keys may be
   the field name (``bucket_name``), the environment variable name
   (``GCS_BUCKET_NAME``) or the dotted property name (``gcs.bucket.name``).
2. Environment variables (``GCS_PROJECT_ID``, ``GCS_BUCKET_NAME``,
   ``GCS_TEST_FILE_PREFIX``).
3. A ``gcseval.yaml`` file found in the current or a parent directory.
4. Field defaults.

The bucket name is required; loading fails with ConfigurationError before any
test runs when it is absent.
"""
import logging
import os
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from gcseval.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "gcseval.yaml"

# field name -> (environment variable, dotted property name)
ENV_KEYS: Dict[str, tuple] = {
    "project_id": ("GCS_PROJECT_ID", "gcs.project.id"),
    "bucket_name": ("GCS_BUCKET_NAME", "gcs.bucket.name"),
    "test_file_prefix": ("GCS_TEST_FILE_PREFIX", "gcs.test.file.prefix"),
}

DEFAULT_TEST_FILE_PREFIX = "test-"


class HarnessConfig(BaseModel):
    """Resolved harness configuration."""
    project_id: Optional[str] = Field(default=None, description="Google Cloud project ID")
    bucket_name: str = Field(..., description="Bucket all test objects are written to")
    test_file_prefix: str = Field(default=DEFAULT_TEST_FILE_PREFIX, description="Key prefix for test objects")
    signed_url_duration_minutes: int = Field(default=60, gt=0, description="Default sign-url duration")
    command_timeout_seconds: float = Field(default=30, gt=0, description="Timeout per gcloud command")
    retry_attempts: int = Field(default=3, ge=1, description="Attempts for flaky operations")
    retry_delay_ms: int = Field(default=1000, ge=0, description="Fixed delay between attempts")
    screenshot_dir: Path = Field(default=Path("target/screenshots"), description="Where anomaly screenshots go")
    download_dir: Path = Field(default=Path("target/test-downloads"), description="Where browser downloads go")
    browser: Literal["firefox", "chromium", "webkit"] = Field(default="firefox", description="Playwright browser type")
    headless: bool = Field(default=True, description="Run the browser headless")

    @field_validator("bucket_name")
    @classmethod
    def validate_bucket_name(cls, v: str) -> str:
        """Accept ``gs://name`` or ``name``; reject empty values."""
        v = v.strip()
        if v.startswith("gs://"):
            v = v[len("gs://"):]
        v = v.rstrip("/")
        if not v:
            raise ValueError("bucket_name must not be empty")
        return v

    @field_validator("test_file_prefix")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        return v or DEFAULT_TEST_FILE_PREFIX

    @property
    def bucket_uri(self) -> str:
        return f"gs://{self.bucket_name}"

    @property
    def retry_delay_seconds(self) -> float:
        return self.retry_delay_ms / 1000.0

    def gs_path(self, name: str) -> str:
        """Full gs:// path for an object key in the configured bucket."""
        return f"gs://{self.bucket_name}/{name.lstrip('/')}"

    def prefix_uri(self) -> str:
        """gs:// path covering every object created with the test prefix."""
        return self.gs_path(self.test_file_prefix)


def find_config_file(start_path: Optional[Path] = None) -> Optional[Path]:
    """
    Find gcseval.yaml in current or parent directories.

    Args:
        start_path: Starting directory (defaults to current working directory)

    Returns:
        Path to config file, or None if not found
    """
    current = start_path or Path.cwd()

    # Search up to 5 levels
    for _ in range(5):
        config_path = current / CONFIG_FILE_NAME
        if config_path.exists():
            return config_path

        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def _read_config_file(config_path: Path) -> Dict[str, Any]:
    with open(config_path, "r") as f:
        raw_config = yaml.safe_load(f)

    if raw_config is None:
        return {}
    if not isinstance(raw_config, dict):
        raise ConfigurationError(f"Invalid config file (expected a mapping): {config_path}")
    return raw_config


def _normalize_overrides(overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """Map env-var and dotted-property keys onto field names, dropping unset values."""
    aliases = {}
    for field_name, (env_key, prop_key) in ENV_KEYS.items():
        aliases[env_key] = field_name
        aliases[prop_key] = field_name

    normalized: Dict[str, Any] = {}
    for key, value in overrides.items():
        if value is None or value == "":
            continue
        normalized[aliases.get(key, key)] = value
    return normalized


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
    search: bool = True,
) -> HarnessConfig:
    """
    Resolve and validate the harness configuration.

    Args:
        config_path: Explicit YAML file; when None and ``search`` is set,
            gcseval.yaml is looked up from the current directory.
        overrides: Highest-precedence values (field, env or property keys).
        environ: Environment mapping (defaults to os.environ).
        search: Whether to search for a config file when none is given.

    Returns:
        Validated HarnessConfig instance

    Raises:
        ConfigurationError: If the bucket name is missing or a value is invalid
    """
    environ = os.environ if environ is None else environ

    values: Dict[str, Any] = {}

    if config_path is None and search:
        config_path = find_config_file()
    if config_path is not None:
        if not config_path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")
        values.update(_normalize_overrides(_read_config_file(config_path)))
        logger.debug(f"Loaded config file {config_path}")

    for field_name, (env_key, _) in ENV_KEYS.items():
        env_value = environ.get(env_key)
        if env_value:
            values[field_name] = env_value

    if overrides:
        values.update(_normalize_overrides(overrides))

    if not values.get("bucket_name"):
        raise ConfigurationError("GCS_BUCKET_NAME must be set")

    try:
        config = HarnessConfig(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    if not config.project_id:
        logger.warning("GCS_PROJECT_ID not set. Tests requiring project ID will fail.")

    logger.info(
        f"Configuration loaded - Project: {config.project_id}, "
        f"Bucket: {config.bucket_name}, Prefix: {config.test_file_prefix}"
    )
    return config
