"""Monthly VM backups through the containerized virtnbdbackup tool."""

__version__ = "1.0.0"
