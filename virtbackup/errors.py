"""Exceptions raised by the backup run.

Every error carries the process exit code the run should end with.
"""


class VirtBackupError(Exception):
    exit_code = 1


# --- Validation (before anything is touched on disk) ---

class InvalidArguments(VirtBackupError):
    pass


class InvalidRetention(VirtBackupError):
    pass


class InvalidEmail(VirtBackupError):
    pass


class InvalidNotifyMode(VirtBackupError):
    pass


class ConfigError(VirtBackupError):
    pass


# --- Run time ---

class DirectoryCreateFailed(VirtBackupError):
    pass


class ConflictDetected(VirtBackupError):
    """Leftover .partial files block this period. The run ends successfully."""
    exit_code = 0

    def __init__(self, markers):
        self.markers = list(markers)
        super().__init__(f"{len(self.markers)} .partial file(s) found")


class CleanupFailed(VirtBackupError):
    pass


class DomainCheckFailed(VirtBackupError):
    pass


class RotationDeleteFailed(VirtBackupError):
    """A period directory could not be removed. Logged, never fatal."""

    def __init__(self, path, reason):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to remove: {path} ({reason})")


class BackupToolFailed(VirtBackupError):
    def __init__(self, returncode):
        self.exit_code = returncode
        super().__init__(f"Backup failed with exit code: {returncode}")
