"""Shared pytest fixtures and fakes for the ADB and process layers."""

import itertools
import subprocess

import pytest

from adb_bridge import ADBBridge
from device_catalog import DeviceCatalog

_pids = itertools.count(4000)


class FakeRunner:
    """
    Stands in for subprocess.run.

    handler(args) returns stdout, or a (returncode, stdout, stderr) tuple, or
    raises (OSError / TimeoutExpired) like the real call would.
    """

    def __init__(self, handler):
        self.handler = handler
        self.calls = []

    def __call__(self, cmd, **kwargs):
        args = list(cmd[1:])
        self.calls.append(args)
        result = self.handler(args)
        if isinstance(result, tuple):
            returncode, stdout, stderr = result
        else:
            returncode, stdout, stderr = 0, result, ""
        return subprocess.CompletedProcess(cmd, returncode, stdout, stderr)

    def count(self, *prefix):
        """Number of calls whose arguments contain prefix as a contiguous run"""
        n = len(prefix)
        return sum(
            1 for args in self.calls
            if any(args[i:i + n] == list(prefix) for i in range(len(args) - n + 1))
        )


class FakeProcess:
    """Popen-like handle with scriptable kill/poll behaviour"""

    def __init__(self, exit_code=None, kill_error=None, poll_error=None, pid=None, hangs=False):
        self.pid = pid if pid is not None else next(_pids)
        self.returncode = exit_code
        self.kill_error = kill_error
        self.poll_error = poll_error
        self.kill_calls = 0
        self.hangs = hangs  # wait() times out even after kill

    def kill(self):
        self.kill_calls += 1
        if self.kill_error is not None:
            raise self.kill_error
        if not self.hangs:
            self.returncode = -9

    def poll(self):
        if self.poll_error is not None:
            raise self.poll_error
        return self.returncode

    def wait(self, timeout=None):
        if self.hangs:
            raise subprocess.TimeoutExpired("scrcpy", timeout)
        return self.returncode


def make_bridge(handler):
    runner = FakeRunner(handler)
    return ADBBridge("adb", runner=runner, timeout=5), runner


@pytest.fixture
def bridge_factory():
    """Build an ADBBridge backed by a FakeRunner: bridge, runner = bridge_factory(handler)"""
    return make_bridge


@pytest.fixture
def catalog_factory():
    def _make(handler):
        bridge, runner = make_bridge(handler)
        return DeviceCatalog(bridge), bridge, runner
    return _make
