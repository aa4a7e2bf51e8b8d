"""
Per-test tracking of created objects.

Every path added during a test is deleted when the tracking scope exits,
whether the test passed, failed or raised.
"""
import logging
from typing import Callable, Iterator, List

logger = logging.getLogger(__name__)


class TrackedObjects:
    """
    Ordered set of gs:// paths to delete at teardown.

    Example:
        with TrackedObjects(bucket.delete) as tracked:
            tracked.add(bucket.upload(name, "data"))
            ...
        # every tracked object has been deleted here
    """

    def __init__(self, deleter: Callable[[str], object]) -> None:
        self._deleter = deleter
        self._paths: List[str] = []

    def add(self, gs_path: str) -> str:
        if gs_path not in self._paths:
            self._paths.append(gs_path)
        return gs_path

    def discard(self, gs_path: str) -> None:
        """Stop tracking a path the test already deleted itself."""
        if gs_path in self._paths:
            self._paths.remove(gs_path)

    def clear(self) -> None:
        self._paths.clear()

    def __contains__(self, gs_path: object) -> bool:
        return gs_path in self._paths

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._paths))

    def __len__(self) -> int:
        return len(self._paths)

    def release(self) -> None:
        """Delete every tracked path, then clear the set."""
        logger.info(f"Cleaning up {len(self._paths)} test objects")
        for gs_path in list(self._paths):
            try:
                self._deleter(gs_path)
                logger.debug(f"Deleted test file: {gs_path}")
            except Exception as e:
                # cleanup must reach every path
                logger.warning(f"Failed to delete test file {gs_path}: {e}")
        self._paths.clear()

    def __enter__(self) -> "TrackedObjects":
        self.clear()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()
