import glob
import os

from .errors import CleanupFailed, ConflictDetected

MARKER_PATTERN = "*.partial"


def find_markers(target_dir):
    """Leftover .partial files of an interrupted run. A missing directory has none."""
    if not os.path.isdir(target_dir):
        return []
    return sorted(glob.glob(os.path.join(glob.escape(target_dir), MARKER_PATTERN)))


def check_conflicts(target_dir, force, transcript, remove=os.remove):
    """
    Blocks the run while .partial files are present in the period directory.

    Without force a ConflictDetected is raised (the run is skipped). With force
    every marker is removed; CleanupFailed is raised if any of them survives.
    """
    markers = find_markers(target_dir)
    if not markers:
        transcript.info("No .partial files found. Proceeding...")
        return []

    transcript.warning("Found .partial file(s):")
    for marker in markers:
        transcript.info(f"  - {os.path.basename(marker)}")

    if not force:
        transcript.info("Aborting to prevent conflict. Use 'force' to override.")
        raise ConflictDetected(markers)

    transcript.info("Force mode: removing .partial files...")
    failed = []
    for marker in markers:
        try:
            remove(marker)
        except OSError as e:
            transcript.error(f"Could not remove {os.path.basename(marker)}: {e}")
            failed.append(marker)

    if failed:
        raise CleanupFailed("Failed to remove .partial files.")

    transcript.info("Successfully removed .partial files.")
    return markers
