import os
import re
import shutil
from datetime import datetime

from .errors import RotationDeleteFailed

PERIOD_FORMAT = "%m%Y"
PERIOD_PATTERN = re.compile(r"[0-9]{6}")


def current_period(today=None):
    """MMYYYY token of the month being backed up."""
    return (today or datetime.now()).strftime(PERIOD_FORMAT)


def chronological_key(name):
    # MMYYYY -> (YYYY, MM)
    return name[2:], name[:2]


def list_periods(parent_dir, order="lexical"):
    """Immediate period subdirectories (six digits), oldest first."""
    if not os.path.isdir(parent_dir):
        return []

    with os.scandir(parent_dir) as entries:
        names = [e.name for e in entries
                 if PERIOD_PATTERN.fullmatch(e.name) and e.is_dir(follow_symlinks=False)]

    if order == "chronological":
        return sorted(names, key=chronological_key)
    return sorted(names)


def rotate(parent_dir, keep, transcript, order="lexical", remove=None):
    """
    Keeps only the `keep` most recent period directories under parent_dir.

    Removal errors are logged and the remaining directories are still
    processed. Returns the names that were removed.
    """
    remove = remove or shutil.rmtree
    try:
        periods = list_periods(parent_dir, order)
    except OSError as e:
        transcript.error(f"Could not list backup directories in {parent_dir}: {e}. Skipping rotation.")
        return []
    count = len(periods)
    transcript.info(f"Found {count} existing backup directories.")

    if count <= keep:
        transcript.info(f"No rotation needed. Keeping all {count} directory(ies).")
        return []

    to_remove = count - keep
    transcript.info(f"Rotation: removing {to_remove} oldest directory(s)...")

    removed = []
    for name in periods[:to_remove]:
        path = os.path.join(parent_dir, name)
        if not os.path.isdir(path):
            continue
        transcript.info(f"Removing old backup: {path}")
        try:
            remove(path)
        except OSError as e:
            transcript.error(str(RotationDeleteFailed(path, e.strerror or e)))
            continue
        transcript.info(f"Successfully removed: {path}")
        removed.append(name)

    transcript.info("Rotation completed.")
    return removed
