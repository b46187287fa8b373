import logging

logger = logging.getLogger('virtbackup')

# Lines holding either marker turn a run into a failure for notification purposes
FAILURE_MARKERS = ("Aborting", "ERROR")


class Transcript:
    """
    Append-only log of a single run.

    Every line is mirrored to the 'virtbackup' logger (console and log file)
    and kept in memory so the whole run can be mailed at the end.
    """

    def __init__(self, log=None):
        self.lines = []
        self.log = log or logger

    def info(self, message):
        self.lines.append(message)
        self.log.info(message)

    def warning(self, message):
        self.lines.append(f"WARNING: {message}")
        self.log.warning(message)

    def error(self, message):
        self.lines.append(f"ERROR: {message}")
        self.log.error(message)

    def output(self, line):
        """Output of the external tool, stored verbatim."""
        self.lines.append(line)
        self.log.info(line)

    def has_failure_marker(self):
        return any(marker in line for line in self.lines for marker in FAILURE_MARKERS)

    def text(self):
        return "".join(f"{line}\n" for line in self.lines)
