"""Concurrent CLI operations against one shared bucket.

Each worker owns a unique key namespace, so parallel runs never see each
other's objects.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from gcseval.bucket import BucketHelper
from gcseval.gcloud import GCloudStorageCli

pytestmark = [pytest.mark.live, pytest.mark.copy, pytest.mark.list]

WORKERS = 4
FILES_PER_WORKER = 3


class TestConcurrentOperations:
    """Upload, list and delete from a thread pool."""

    def test_namespaces_are_isolated(self, gcloud_cli: GCloudStorageCli, bucket: BucketHelper,
                                     tracked_objects, namespace):
        """Test each worker lists exactly its own objects and deletes them."""
        prefixes = [namespace(f"concurrent-{i}") for i in range(WORKERS)]

        def upload_all(prefix: str):
            return [bucket.upload(f"{prefix}file-{j}.txt", f"{prefix} {j}") for j in range(FILES_PER_WORKER)]

        with ThreadPoolExecutor(max_workers=WORKERS) as pool:
            uploaded = list(pool.map(upload_all, prefixes))
        for paths in uploaded:
            for gs_path in paths:
                tracked_objects.add(gs_path)

        with ThreadPoolExecutor(max_workers=WORKERS) as pool:
            listings = list(pool.map(lambda prefix: gcloud_cli.list_objects(bucket.gs_path(prefix)), prefixes))

        for prefix, paths, listing in zip(prefixes, uploaded, listings):
            assert sorted(listing) == sorted(paths), f"Listing for {prefix} leaked or lost objects"

        with ThreadPoolExecutor(max_workers=WORKERS) as pool:
            results = list(pool.map(lambda paths: gcloud_cli.delete_object(*paths), uploaded))

        assert all(result.success for result in results)
        for prefix in prefixes:
            assert gcloud_cli.list_objects(bucket.gs_path(prefix)) == []
