#!/usr/bin/env python3
# Launcher for cron/systemd when the package is not installed:
#   ./scripts/virt-backup.py /backups web01 3 admin@company.com backup@company.com force sda errors
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from virtbackup.cli import main  # noqa: E402

if __name__ == "__main__":
    main()
