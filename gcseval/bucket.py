"""
Bucket helpers built on the gcloud facade.

Uploads stage content in a local temp file with a ``.tmp`` suffix, so gcloud
stores it as application/octet-stream and browsers download rather than
render it.
"""
import logging
import os
import tempfile
from pathlib import Path
from typing import Union

from gcseval.config import HarnessConfig
from gcseval.exceptions import DownloadFailure, ListFailure, UploadFailure
from gcseval.gcloud import GCloudStorageCli
from gcseval.testdata import unique_file_name

logger = logging.getLogger(__name__)


def _write_temp_file(content: Union[str, bytes], prefix: str) -> Path:
    data = content.encode("utf-8") if isinstance(content, str) else content
    fd, name = tempfile.mkstemp(prefix=prefix, suffix=".tmp")
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    return Path(name)


class BucketHelper:
    """Object-level helpers for one configured bucket."""

    def __init__(self, cli: GCloudStorageCli, config: HarnessConfig) -> None:
        self.cli = cli
        self.config = config

    def gs_path(self, name: str) -> str:
        return self.config.gs_path(name)

    def unique_file_name(self, extension: str) -> str:
        return unique_file_name(self.config.test_file_prefix, extension)

    def upload(self, name: str, content: Union[str, bytes]) -> str:
        """
        Upload content as object ``name`` in the configured bucket.

        Returns:
            The object's gs:// path

        Raises:
            UploadFailure: If gcloud could not copy the file
        """
        temp_file = _write_temp_file(content, "gcs-test-")
        gs_path = self.gs_path(name)
        try:
            result = self.cli.copy(str(temp_file), gs_path)
            if not result.success:
                raise UploadFailure("Failed to upload file", result.stderr, result.command)
        finally:
            temp_file.unlink(missing_ok=True)

        logger.info(f"Successfully uploaded file to: {gs_path}")
        return gs_path

    def download(self, gs_path: str) -> Path:
        """
        Copy an object to a new local temp file; the caller removes it.

        Raises:
            DownloadFailure: If gcloud could not copy the object
        """
        fd, name = tempfile.mkstemp(prefix="gcs-download-", suffix=".tmp")
        os.close(fd)
        temp_file = Path(name)

        result = self.cli.copy(gs_path, str(temp_file))
        if not result.success:
            temp_file.unlink(missing_ok=True)
            raise DownloadFailure("Failed to download file", result.stderr, result.command)

        logger.info(f"Successfully downloaded file from {gs_path} to {temp_file}")
        return temp_file

    def read_bytes(self, gs_path: str) -> bytes:
        downloaded = self.download(gs_path)
        try:
            return downloaded.read_bytes()
        finally:
            downloaded.unlink(missing_ok=True)

    def read_text(self, gs_path: str) -> str:
        return self.read_bytes(gs_path).decode("utf-8")

    def verify_exists(self, gs_path: str) -> bool:
        """True if listing exactly gs_path returns it."""
        try:
            exists = gs_path in self.cli.list_objects(gs_path)
        except ListFailure as e:
            logger.debug(f"File {gs_path} does not exist or error occurred: {e}")
            return False
        logger.debug(f"File {gs_path} exists: {exists}")
        return exists

    def delete(self, gs_path: str) -> bool:
        """Best-effort delete; failures are logged, not raised."""
        result = self.cli.delete_object(gs_path)
        if result.success:
            logger.info(f"Successfully deleted file: {gs_path}")
        else:
            logger.warning(f"Failed to delete file {gs_path}: {result.stderr}")
        return result.success

    def cleanup_prefix(self) -> int:
        """
        Delete every object under the configured test prefix.

        Use with caution: this also removes objects of concurrent runs.

        Returns:
            Number of objects deleted
        """
        prefix_uri = self.config.prefix_uri()
        # quoted so the shell leaves the wildcard to gcloud
        objects = self.cli.list_objects(f"'{prefix_uri}**'")
        logger.info(f"Found {len(objects)} test files to clean up")
        return sum(1 for gs_path in objects if self.delete(gs_path))

    @staticmethod
    def create_local_file(name: str, content: Union[str, bytes]) -> Path:
        """Write content to ``name`` inside a fresh temp directory."""
        path = Path(tempfile.mkdtemp(prefix="gcs-test")) / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            path.write_text(content, encoding="utf-8")
        else:
            path.write_bytes(content)
        return path
