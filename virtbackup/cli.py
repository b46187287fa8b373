import logging
import os
import sys
from datetime import datetime

from .config import load_settings
from .errors import InvalidArguments, VirtBackupError
from .options import USAGE_EXAMPLE, build_parser, parse_options
from .runner import BackupRun

# --- LOGGER ---
logger = logging.getLogger('virtbackup')
logger.setLevel(logging.DEBUG)

FALLBACK_LOG_DIR = "/tmp/virt-backup"


def setup_logging(vm_name, timestamp, log_dir, console_level=logging.INFO):
    """Console handler on stdout plus one log file per run (skipped when log_dir is empty)."""
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
    logger.addHandler(console_handler)

    if not log_dir:
        return None

    log_dir_final = log_dir
    # /tmp when there is no permission on the configured directory
    if not os.access(os.path.dirname(log_dir.rstrip('/')) or '/', os.W_OK) and not os.path.isdir(log_dir):
        log_dir_final = FALLBACK_LOG_DIR

    try:
        os.makedirs(log_dir_final, exist_ok=True)
        log_path = os.path.join(log_dir_final, f"{vm_name}-{timestamp}.log")
        file_handler = logging.FileHandler(log_path, encoding='utf-8')
    except OSError as e:
        logger.warning(f"Log file disabled, cannot write to {log_dir_final}: {e}")
        return None

    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
    logger.addHandler(file_handler)
    logger.debug(f"Log file for this run: {log_path}")
    return log_path


def main(argv=None):
    parser = build_parser()
    try:
        options = parse_options(argv, parser)
        settings = load_settings(options.config_path)
    except InvalidArguments as e:
        print(f"Error: {e}", file=sys.stderr)
        parser.print_usage(sys.stderr)
        print(USAGE_EXAMPLE, file=sys.stderr)
        sys.exit(e.exit_code)
    except VirtBackupError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(e.exit_code)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    console_level = logging.DEBUG if options.debug else getattr(logging, settings.log_level)
    setup_logging(options.vm_name, timestamp, settings.log_dir, console_level)

    try:
        exit_code = BackupRun(options, settings).run()
    except KeyboardInterrupt:
        logger.error("Interrupted by user (Ctrl+C).")
        sys.exit(130)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
