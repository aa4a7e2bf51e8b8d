"""Live scenarios for `gcloud storage cp`."""

from pathlib import Path

import pytest

from gcseval import testdata
from gcseval.bucket import BucketHelper
from gcseval.gcloud import GCloudStorageCli
from gcseval.pytest_plugin import assert_command_success

pytestmark = [pytest.mark.live, pytest.mark.copy]


class TestCopyCommand:
    """Uploads, downloads and bucket-to-bucket copies."""

    def test_copy_local_to_gcs(self, gcloud_cli: GCloudStorageCli, bucket: BucketHelper,
                               tracked_objects, unique_file_name, tmp_path: Path):
        """Test uploading a local file."""
        file_name = unique_file_name("txt")
        content = testdata.random_content(5)
        local_file = tmp_path / file_name
        local_file.write_text(content)
        gs_path = bucket.gs_path(file_name)

        result = gcloud_cli.copy(str(local_file), gs_path)
        tracked_objects.add(gs_path)

        assert_command_success(result, "Failed to copy file to GCS")
        assert bucket.verify_exists(gs_path), "File should exist in GCS after copy"
        assert bucket.read_text(gs_path).strip() == content.strip()

    def test_copy_local_path_with_spaces(self, gcloud_cli: GCloudStorageCli, bucket: BucketHelper,
                                         tracked_objects, unique_file_name):
        """Test a local source path containing spaces is quoted correctly."""
        local_file = BucketHelper.create_local_file("file with spaces.txt", "spaces")
        gs_path = bucket.gs_path(unique_file_name("txt"))

        result = gcloud_cli.copy(str(local_file), gs_path)
        tracked_objects.add(gs_path)

        assert_command_success(result, "Failed to copy file with spaces in its path")
        assert bucket.read_text(gs_path) == "spaces"

    def test_copy_gcs_to_local(self, gcloud_cli: GCloudStorageCli, create_test_file,
                               unique_file_name, tmp_path: Path):
        """Test downloading an object to a local path."""
        file_name = unique_file_name("json")
        content = testdata.json_content()
        gs_path = create_test_file(file_name, content)
        download_path = tmp_path / "downloads" / file_name
        download_path.parent.mkdir(parents=True)

        result = gcloud_cli.copy(gs_path, str(download_path))

        assert_command_success(result, "Failed to copy file from GCS")
        assert download_path.exists()
        assert download_path.read_text().strip() == content.strip()

    def test_copy_gcs_to_gcs(self, gcloud_cli: GCloudStorageCli, bucket: BucketHelper,
                             create_test_file, tracked_objects, unique_file_name):
        """Test copying between two objects in the bucket."""
        source_name = unique_file_name("csv")
        source_path = create_test_file(source_name, testdata.csv_content(100))
        dest_path = tracked_objects.add(bucket.gs_path(f"copy-{source_name}"))

        result = gcloud_cli.copy(source_path, dest_path)

        assert_command_success(result, "Failed to copy between GCS locations")
        assert bucket.verify_exists(source_path), "Source file should still exist"
        assert bucket.verify_exists(dest_path), "Destination file should exist"
        assert bucket.read_text(dest_path) == bucket.read_text(source_path)

    def test_copy_recursive(self, gcloud_cli: GCloudStorageCli, bucket: BucketHelper,
                            create_test_file, namespace, tmp_path: Path):
        """Test copying a whole prefix to a local directory."""
        prefix = namespace("recursive")
        names = [f"file-{i}.txt" for i in range(3)]
        for i, name in enumerate(names):
            create_test_file(prefix + name, f"Recursive test file {i}: {testdata.random_content(1)}")
        local_dir = tmp_path / "recursive"
        local_dir.mkdir()

        result = gcloud_cli.copy(bucket.gs_path(prefix), str(local_dir), recursive=True)

        assert_command_success(result, "Failed to copy recursively")
        copied_root = local_dir / prefix.rstrip("/").rsplit("/", 1)[-1]
        for name in names:
            assert (copied_root / name).exists(), f"File should exist after recursive copy: {name}"

    def test_copy_large_file(self, gcloud_cli: GCloudStorageCli, bucket: BucketHelper,
                             tracked_objects, unique_file_name, tmp_path: Path):
        """Test a 1 MiB binary round trip keeps its size."""
        local_file = tmp_path / "large.bin"
        local_file.write_bytes(testdata.binary_content(1024))
        gs_path = tracked_objects.add(bucket.gs_path(unique_file_name("bin")))
        download_path = tmp_path / "large-download.bin"

        assert_command_success(gcloud_cli.copy(str(local_file), gs_path), "Failed to upload large file")
        assert_command_success(gcloud_cli.copy(gs_path, str(download_path)), "Failed to download large file")

        assert download_path.stat().st_size == local_file.stat().st_size

    @pytest.mark.parametrize("extension, content", [
        ("html", testdata.html_content()),
        ("json", testdata.json_content()),
        ("csv", testdata.csv_content(50)),
    ])
    def test_copy_metadata(self, gcloud_cli: GCloudStorageCli, create_test_file,
                           unique_file_name, extension: str, content: str):
        """Test uploaded objects can be described and carry a content type."""
        gs_path = create_test_file(unique_file_name(extension), content)

        metadata = gcloud_cli.describe_object(gs_path)

        assert metadata.get("name", "").endswith(f".{extension}")
        assert "content_type" in metadata or "contentType" in metadata

    def test_copy_missing_object_fails(self, gcloud_cli: GCloudStorageCli, bucket: BucketHelper,
                                       tmp_path: Path):
        """Test copying a nonexistent object fails with an error message."""
        result = gcloud_cli.copy(bucket.gs_path("non-existent-file.txt"), str(tmp_path / "download.txt"))

        assert not result.success
        assert result.stderr

    def test_copy_to_invalid_destination_fails(self, gcloud_cli: GCloudStorageCli, create_test_file,
                                               unique_file_name):
        """Test copying to an unwritable local path fails."""
        gs_path = create_test_file(unique_file_name("txt"), "test content")

        result = gcloud_cli.copy(gs_path, "/invalid/path/that/does/not/exist/file.txt")

        assert not result.success
