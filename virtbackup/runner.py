import os
import subprocess
from datetime import datetime

from . import conflicts, invoker, notifier, preflight, retention
from .errors import BackupToolFailed, ConflictDetected, DirectoryCreateFailed, VirtBackupError
from .transcript import Transcript


class BackupRun:
    """
    One backup of one VM for the current month.

    Steps: parent directory -> domain check (optional) -> .partial check ->
    period directory -> rotation -> container -> report. run() returns the
    exit code of the whole run.
    """

    def __init__(self, options, settings, transcript=None, today=None, transport=None,
                 popen=subprocess.Popen, fetch_domain_xml=preflight.fetch_domain_xml):
        self.options = options
        self.settings = settings
        self.transcript = transcript if transcript is not None else Transcript()
        self.today = today or datetime.now()
        self.transport = transport or notifier.make_transport(settings)
        self.popen = popen
        self.fetch_domain_xml = fetch_domain_xml

        self.period = retention.current_period(self.today)
        self.parent_dir = os.path.join(options.base_path, options.vm_name)
        self.target_dir = os.path.join(self.parent_dir, self.period)

    def log_header(self):
        t = self.transcript
        opts = self.options
        t.info("=== VM Backup Script Started ===")
        t.info(f"Timestamp: {self.today.strftime('%a %b %d %H:%M:%S %Y')}")
        t.info(f"VM: {opts.vm_name}")
        t.info(f"Target: {self.target_dir}")
        t.info(f"Keep last {opts.keep} month(s)")
        t.info(f"Notification recipient: {opts.recipient}")
        t.info(f"Sender address: {opts.sender}")
        t.info(f"Notification mode: {opts.notify_mode}")
        if opts.force:
            t.info("Force mode: enabled (will remove .partial files if found)")
        else:
            t.info("Force mode: disabled (will abort if .partial file exists)")
        t.info(f"Exclude disk: {opts.exclude_disk or 'not set'}")

    def _make_dir(self, path):
        try:
            os.makedirs(path, exist_ok=True)
        except OSError as e:
            raise DirectoryCreateFailed(f"Failed to create directory: {path} ({e.strerror or e})") from e

    def prepare_parent(self):
        self._make_dir(self.parent_dir)

    def check_domain(self):
        if not self.settings.verify_domain:
            return
        preflight.verify_domain(self.options.vm_name, self.options.exclude_disk, self.transcript,
                                uri=self.settings.libvirt_uri, fetch_xml=self.fetch_domain_xml)

    def check_conflicts(self):
        conflicts.check_conflicts(self.target_dir, self.options.force, self.transcript)

    def prepare_target(self):
        self._make_dir(self.target_dir)
        self.transcript.info(f"Target directory created: {self.target_dir}")

    def rotate(self):
        return retention.rotate(self.parent_dir, self.options.keep, self.transcript,
                                order=self.settings.rotation_order)

    def command(self):
        s = self.settings
        return invoker.build_command(self.options.base_path, self.options.vm_name, self.period,
                                     exclude_disk=self.options.exclude_disk,
                                     runtime=s.runtime, image=s.image,
                                     compress=s.compress, level=s.backup_level)

    def invoke(self):
        self.transcript.info(f"Starting backup for VM: {self.options.vm_name}")
        if self.options.exclude_disk:
            self.transcript.info(f"Adding exclude disk: {self.options.exclude_disk}")
        return invoker.run_backup(self.command(), self.transcript,
                                  timeout=self.settings.timeout or None,
                                  stop_command=invoker.build_stop_command(self.options.vm_name, self.period,
                                                                          self.settings.runtime),
                                  popen=self.popen)

    def report(self, subject, exit_code):
        return notifier.notify(self.transport, self.options, subject, self.transcript, exit_code)

    def run(self):
        vm_name = self.options.vm_name
        self.log_header()
        try:
            self.prepare_parent()
            self.check_domain()
            self.check_conflicts()
            self.prepare_target()
            self.rotate()

            returncode = self.invoke()
            if returncode != 0:
                raise BackupToolFailed(returncode)

        except ConflictDetected:
            self.report(notifier.skipped_subject(vm_name), 0)
            return 0

        except VirtBackupError as e:
            self.transcript.error(str(e))
            self.report(notifier.subject_for(vm_name, e.exit_code), e.exit_code)
            return e.exit_code

        self.transcript.info(f"SUCCESS: Backup completed for {vm_name}")
        self.report(notifier.subject_for(vm_name, 0), 0)
        return 0
