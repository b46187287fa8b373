import shutil
from datetime import datetime

import pytest

from virtbackup.retention import current_period, list_periods, rotate


def make_periods(parent, names):
    for name in names:
        (parent / name).mkdir(parents=True)
        (parent / name / "vda.full.data").write_text("x")


def test_current_period():
    assert current_period(datetime(2024, 3, 1)) == "032024"
    assert current_period(datetime(2025, 12, 31)) == "122025"


def test_only_six_digit_directories_count(tmp_path):
    make_periods(tmp_path, ["012024", "022024"])
    (tmp_path / "12345").mkdir()
    (tmp_path / "0120245").mkdir()
    (tmp_path / "notes").mkdir()
    (tmp_path / "032024").write_text("a file, not a period")
    (tmp_path / "042024").symlink_to(tmp_path / "012024")

    assert list_periods(str(tmp_path)) == ["012024", "022024"]


def test_missing_parent_has_no_periods(tmp_path):
    assert list_periods(str(tmp_path / "nope")) == []


def test_lexical_and_chronological_order(tmp_path):
    make_periods(tmp_path, ["122024", "012025", "062024"])
    assert list_periods(str(tmp_path)) == ["012025", "062024", "122024"]
    assert list_periods(str(tmp_path), "chronological") == ["062024", "122024", "012025"]


@pytest.mark.parametrize("count,keep", [(0, 1), (2, 3), (3, 3), (4, 3), (6, 1), (5, 2)])
def test_keeps_exactly_the_window(tmp_path, transcript, count, keep):
    names = [f"{m:02d}2023" for m in range(1, count + 1)]
    make_periods(tmp_path, names)

    removed = rotate(str(tmp_path), keep, transcript)

    expected_removed = names[:max(count - keep, 0)]
    assert removed == expected_removed
    assert list_periods(str(tmp_path)) == sorted(set(names) - set(expected_removed))
    assert len(list_periods(str(tmp_path))) == min(count, keep)


def test_no_rotation_message(tmp_path, transcript):
    make_periods(tmp_path, ["012024"])
    rotate(str(tmp_path), 3, transcript)
    assert "No rotation needed. Keeping all 1 directory(ies)." in transcript.lines


def test_lexical_order_crosses_years_by_string(tmp_path, transcript):
    make_periods(tmp_path, ["122024", "012025"])
    assert rotate(str(tmp_path), 1, transcript) == ["012025"]


def test_chronological_order_removes_oldest_month(tmp_path, transcript):
    make_periods(tmp_path, ["122024", "012025"])
    assert rotate(str(tmp_path), 1, transcript, order="chronological") == ["122024"]


def test_removal_failures_do_not_stop_rotation(tmp_path, transcript):
    make_periods(tmp_path, ["012024", "022024", "032024", "042024"])
    calls = []

    def flaky_rmtree(path):
        calls.append(path)
        if path.endswith("012024"):
            raise PermissionError(13, "Permission denied")
        shutil.rmtree(path)

    removed = rotate(str(tmp_path), 2, transcript, remove=flaky_rmtree)

    assert len(calls) == 2
    assert removed == ["022024"]
    assert (tmp_path / "012024").exists()
    assert any(line.startswith("ERROR: Failed to remove:") and "012024" in line for line in transcript.lines)
    assert transcript.lines[-1] == "Rotation completed."


def test_listing_error_skips_rotation(tmp_path, transcript, monkeypatch):
    make_periods(tmp_path, ["012024", "022024"])

    def denied_scandir(path):
        raise PermissionError(13, "Permission denied", str(path))

    monkeypatch.setattr("virtbackup.retention.os.scandir", denied_scandir)

    assert rotate(str(tmp_path), 1, transcript) == []
    assert (tmp_path / "012024").exists()
    assert transcript.lines[-1].startswith(f"ERROR: Could not list backup directories in {tmp_path}")
