"""
Command building utilities for the live scenario suite.

Provides the pytest argument list used by ``gcseval run``.
"""
from pathlib import Path
from typing import List, Optional, Sequence

SUITES = ("copy", "list", "delete", "sign_url", "quick")

LIVE_TESTS_DIR = "tests/live"


def build_pytest_args(
    suite: Optional[str] = None,
    tests_dir: str = LIVE_TESTS_DIR,
    workers: Optional[int] = None,
    verbose: bool = False,
    failfast: bool = False,
    extra: Sequence[str] = (),
) -> List[str]:
    """
    Build pytest arguments for the live scenarios.

    - suite: restricts to one suite marker (``-m "live and sign_url"``)
    - workers: runs tests in a pool of worker processes (pytest-xdist ``-n``)
    - verbose / failfast: ``-v`` / ``-x``

    Args:
        suite: Optional suite name, one of SUITES
        tests_dir: Directory holding the live scenarios
        workers: Number of parallel workers (None or 1 = serial)
        verbose: Whether to enable verbose output
        failfast: Stop on first failure
        extra: Additional raw pytest arguments, appended last

    Returns:
        Argument list for pytest.main()

    Raises:
        ValueError: If suite is not a known suite name
    """
    if suite is not None and suite not in SUITES:
        raise ValueError(f"Unknown suite '{suite}'. Available: {', '.join(SUITES)}")

    args = [str(Path(tests_dir))]
    args.extend(["-m", f"live and {suite}" if suite else "live"])

    if workers and workers > 1:
        args.extend(["-n", str(workers)])
    if verbose:
        args.append("-v")
    if failfast:
        args.append("-x")

    args.extend(extra)
    return args
