import io
from datetime import datetime

import pytest

from virtbackup.config import Settings
from virtbackup.options import RunOptions
from virtbackup.transcript import Transcript


class FakeProcess:
    def __init__(self, output="", returncode=0):
        self.stdout = io.StringIO(output)
        self.returncode = returncode

    def wait(self):
        return self.returncode

    def poll(self):
        return self.returncode


class FakePopen:
    """Stands in for subprocess.Popen and records every command it is asked to run."""

    def __init__(self, output="", returncode=0, error=None):
        self.output = output
        self.returncode = returncode
        self.error = error
        self.calls = []

    def __call__(self, command, **kwargs):
        self.calls.append(command)
        if self.error:
            raise self.error
        return FakeProcess(self.output, self.returncode)


class RecordingTransport:
    def __init__(self, error=None):
        self.sent = []
        self.error = error

    def send(self, sender, recipient, subject, body):
        if self.error:
            raise self.error
        self.sent.append({'sender': sender, 'recipient': recipient, 'subject': subject, 'body': body})


@pytest.fixture
def transcript():
    return Transcript()


@pytest.fixture
def settings():
    return Settings(log_dir='')


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def today():
    return datetime(2024, 5, 14, 2, 30, 0)


@pytest.fixture
def make_options(tmp_path):
    def _make(**overrides):
        values = dict(base_path=str(tmp_path / "backups"), vm_name="web01", keep=3,
                      recipient="a@x.com", sender="b@x.com")
        values.update(overrides)
        return RunOptions(**values)
    return _make
