"""Shared fixtures for sshot tests."""

import logging
from io import StringIO

import pytest

from sshot.exceptions import TaskExecutionError
from sshot.output import Transcript, make_console
from sshot.remote import RemoteExecutor
from sshot.runonce import RunOnceRegistry
from sshot.types import HostConfig


class FakeExecutor(RemoteExecutor):
    """Executor that records calls and answers from a script.

    ``responses`` maps a command to either its output or an exception to
    raise. A list value is consumed one item per call, the last item
    repeating. Unknown commands return ``default``.
    """

    def __init__(self, host_name="h1", responses=None, default="ok", connect_error=None):
        self.host_name = host_name
        self.responses = dict(responses or {})
        self.default = default
        self.connect_error = connect_error
        self.calls = []
        self.uploads = {}
        self.closed = False

    def _answer(self, key):
        response = self.responses.get(key, self.default)
        if isinstance(response, list):
            response = response.pop(0) if len(response) > 1 else response[0]
        if isinstance(response, BaseException):
            raise response
        return response

    async def connect(self):
        if self.connect_error is not None:
            raise self.connect_error
        return None

    async def run_remote(self, command, sudo=False):
        self.calls.append(("run_remote", command, sudo))
        return self._answer(command)

    async def upload_and_run(self, script, sudo=False):
        self.calls.append(("upload_and_run", script, sudo))
        return self._answer(script)

    async def upload_file(self, content, dest, mode=""):
        self.calls.append(("upload_file", dest, mode))
        self.uploads[dest] = content

    async def run_local(self, command):
        self.calls.append(("run_local", command, False))
        return self._answer(command)

    async def close(self):
        self.closed = True

    @property
    def commands(self):
        return [call[1] for call in self.calls]


def failure(message="command failed: Process exited with status 1", exit_status=1, output=""):
    """A remote command failure as raised by real executors."""
    return TaskExecutionError(message, output=output, exit_status=exit_status)


@pytest.fixture
def console_buffer():
    return StringIO()


@pytest.fixture
def console(console_buffer):
    return make_console(no_color=True, file=console_buffer)


@pytest.fixture
def transcript(console):
    return Transcript(console, live=False)


@pytest.fixture
def registry():
    return RunOnceRegistry()


@pytest.fixture
def host():
    return HostConfig(name="h1", address="10.0.0.1", user="deploy", password="secret")


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def restore_root_logger():
    """Drop the handlers installed by configure_logging."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
