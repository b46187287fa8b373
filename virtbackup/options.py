import argparse
import re
from dataclasses import dataclass
from typing import Optional

from . import __version__
from .errors import InvalidArguments, InvalidEmail, InvalidNotifyMode, InvalidRetention

# --- CONSTANTS ---
EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
RETENTION_PATTERN = re.compile(r"[0-9]+")
FORCE_TOKENS = ("force", "yes", "true", "1")
NOTIFY_ALWAYS = "always"
NOTIFY_ERRORS = "errors"
NOTIFY_MODES = (NOTIFY_ALWAYS, NOTIFY_ERRORS)

USAGE_EXAMPLE = "Example: virt-backup /backups web01 3 admin@company.com backup@company.com force sda errors"


@dataclass(frozen=True)
class RunOptions:
    base_path: str
    vm_name: str
    keep: int
    recipient: str
    sender: str
    force: bool = False
    exclude_disk: Optional[str] = None
    notify_mode: str = NOTIFY_ALWAYS
    config_path: Optional[str] = None
    debug: bool = False


class _ArgumentParser(argparse.ArgumentParser):
    # argparse exits with 2 on its own; a bad command line must end with 1
    def error(self, message):
        raise InvalidArguments(f"Not enough or invalid arguments: {message}")


def build_parser():
    parser = _ArgumentParser(
        prog="virt-backup",
        description="Monthly VM backup with virtnbdbackup (container), rotation and email report.",
        epilog=USAGE_EXAMPLE,
    )
    parser.add_argument('base_path', help="Backup root, e.g. /backups")
    parser.add_argument('vm_name', help="Name of the libvirt domain")
    parser.add_argument('keep_months', help="Number of monthly backups to keep (>= 1)")
    parser.add_argument('recipient_email', help="Address the report is sent to")
    parser.add_argument('sender_email', help="Address the report is sent from")
    parser.add_argument('force', nargs='?', default="",
                        help="force|yes|true|1 removes leftover .partial files instead of skipping the run")
    parser.add_argument('exclude_disk', nargs='?', default="",
                        help="Single disk to leave out of the backup, e.g. sda")
    parser.add_argument('notify_mode', nargs='?', default=NOTIFY_ALWAYS,
                        help="'always' (default) or 'errors'")
    parser.add_argument('--config', dest='config_path', default=None,
                        help="Settings file (default: $VIRT_BACKUP_CONFIG or /etc/virt-backup.conf)")
    parser.add_argument('--debug', action='store_true', help="Show debug messages on the console")
    parser.add_argument('--version', action='version', version=f"%(prog)s {__version__}")
    return parser


def validate_keep(value):
    if not RETENTION_PATTERN.fullmatch(value or "") or int(value) < 1:
        raise InvalidRetention("'keep_months' must be a positive integer.")
    return int(value)


def validate_email(value):
    if not EMAIL_PATTERN.fullmatch(value or ""):
        raise InvalidEmail(f"Invalid email address: {value}")
    return value


def validate_notify_mode(value):
    mode = value or NOTIFY_ALWAYS
    if mode not in NOTIFY_MODES:
        raise InvalidNotifyMode(f"Invalid notify mode: {value} (use 'always' or 'errors')")
    return mode


def parse_force(value):
    return (value or "").strip().lower() in FORCE_TOKENS


def parse_options(argv=None, parser=None) -> RunOptions:
    """Validates the command line. Nothing is touched on disk."""
    args = (parser or build_parser()).parse_args(argv)
    if not args.base_path or not args.vm_name:
        raise InvalidArguments("base_path and vm_name must not be empty.")

    keep = validate_keep(args.keep_months)
    recipient = validate_email(args.recipient_email)
    sender = validate_email(args.sender_email)
    notify_mode = validate_notify_mode(args.notify_mode)

    return RunOptions(
        base_path=args.base_path,
        vm_name=args.vm_name,
        keep=keep,
        recipient=recipient,
        sender=sender,
        force=parse_force(args.force),
        exclude_disk=args.exclude_disk or None,
        notify_mode=notify_mode,
        config_path=args.config_path,
        debug=args.debug,
    )
