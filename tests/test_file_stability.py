"""Tests for the file stability guards."""

import pytest

from qa_runner.services.file_stability import (
    assert_results_shape,
    wait_until_exists,
    wait_until_stable,
)
from qa_runner.utils.errors import FileNotStableError, StateInvalidError


class FakeClock:
    """Monotonic clock advanced by the fake sleep."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


class TestWaitUntilExists:
    """Tests for wait_until_exists."""

    def test_existing_file_returns_immediately(self, results_file, clock):
        """An existing file should not cause any wait."""
        wait_until_exists(results_file, clock=clock, sleep=clock.sleep)

        assert clock.sleeps == []

    def test_missing_file_times_out(self, tmp_path, clock):
        """A file that never appears should raise after the timeout."""
        with pytest.raises(StateInvalidError):
            wait_until_exists(tmp_path / "missing.json", timeout=30, clock=clock, sleep=clock.sleep)

        assert clock.now >= 30

    def test_file_appearing_later(self, tmp_path, clock):
        """A file created while waiting should be picked up."""
        path = tmp_path / "late.json"

        def sleep(seconds):
            clock.sleep(seconds)
            if clock.now >= 1:
                path.write_text("[1]")

        wait_until_exists(path, clock=clock, sleep=sleep)

        assert clock.now < 2


class TestWaitUntilStable:
    """Tests for wait_until_stable."""

    def test_stable_after_two_identical_polls(self, results_file, clock):
        """An unchanged file should be stable after one poll interval."""
        size, _ = wait_until_stable(results_file, poll=0.2, clock=clock, sleep=clock.sleep)

        assert size == results_file.stat().st_size
        assert clock.sleeps == [0.2]

    def test_growing_file_waits(self, tmp_path, clock):
        """A file still being written should not be declared stable early."""
        path = tmp_path / "growing.json"
        path.write_text("[")
        writes = iter(['[{"a"', '[{"a": 1', '[{"a": 1}]'])

        def sleep(seconds):
            clock.sleep(seconds)
            chunk = next(writes, None)
            if chunk is not None:
                path.write_text(chunk)

        wait_until_stable(path, clock=clock, sleep=sleep)

        assert path.read_text() == '[{"a": 1}]'
        assert len(clock.sleeps) >= 4

    def test_empty_file_never_stable(self, tmp_path, clock):
        """A zero-byte file should time out."""
        path = tmp_path / "empty.json"
        path.write_text("")

        with pytest.raises(FileNotStableError):
            wait_until_stable(path, timeout=10, clock=clock, sleep=clock.sleep)

        assert clock.now >= 10

    def test_missing_file_is_retried_until_deadline(self, tmp_path, clock):
        """I/O errors should be retried, then time out."""
        with pytest.raises(FileNotStableError):
            wait_until_stable(tmp_path / "missing.json", timeout=1, clock=clock, sleep=clock.sleep)

    def test_not_stable_is_state_invalid(self):
        """FileNotStableError should be catchable as StateInvalidError."""
        assert issubclass(FileNotStableError, StateInvalidError)


class TestAssertResultsShape:
    """Tests for assert_results_shape."""

    def test_valid_results(self, results_file):
        """A non-empty array should pass."""
        assert assert_results_shape(results_file) == 1

    @pytest.mark.parametrize("content", ["{}", "[]", "[{", "not json"])
    def test_invalid_results(self, tmp_path, content):
        """Objects, empty arrays and malformed JSON should be rejected."""
        path = tmp_path / "bad.json"
        path.write_text(content)

        with pytest.raises(StateInvalidError):
            assert_results_shape(path)
