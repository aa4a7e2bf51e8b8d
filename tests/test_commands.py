"""Tests for pytest argument building in gcseval.utils.commands."""

import pytest

from gcseval.utils.commands import SUITES, build_pytest_args


class TestBuildPytestArgs:
    """Tests for build_pytest_args."""

    def test_defaults(self):
        """Test all live scenarios run serially by default."""
        assert build_pytest_args() == ["tests/live", "-m", "live"]

    def test_suite_marker(self):
        """Test a suite narrows the marker expression."""
        args = build_pytest_args(suite="sign_url")
        assert args[1:3] == ["-m", "live and sign_url"]

    @pytest.mark.parametrize("suite", SUITES)
    def test_every_suite_accepted(self, suite: str):
        """Test every declared suite builds arguments."""
        assert f"live and {suite}" in build_pytest_args(suite=suite)

    def test_unknown_suite(self):
        """Test an unknown suite is rejected."""
        with pytest.raises(ValueError, match="Unknown suite"):
            build_pytest_args(suite="upload")

    def test_workers(self):
        """Test several workers enable pytest-xdist."""
        args = build_pytest_args(workers=4)
        assert args[-2:] == ["-n", "4"]

    def test_single_worker_is_serial(self):
        """Test one worker does not add -n."""
        assert "-n" not in build_pytest_args(workers=1)

    def test_flags_and_extra(self):
        """Test verbose, failfast and extra args, extra last."""
        args = build_pytest_args(tests_dir="scenarios", verbose=True, failfast=True, extra=["--gcs-bucket", "b"])
        assert args == ["scenarios", "-m", "live", "-v", "-x", "--gcs-bucket", "b"]
