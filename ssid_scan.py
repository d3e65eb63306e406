#!/usr/bin/env python3
"""
Wireless scan invocation.

Runs the external scan utility against one interface and keeps the lines that
carry a network name field, the equivalent of `iwlist wlan0 scan | grep SSID`.
Scanning usually needs root; either run as root or allow the user to run
iwlist through passwordless sudo and set SSIDDETECT_SCAN_USE_SUDO=true.
"""

import logging
import shlex
import subprocess
import time
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger('SSIDScan')

DEFAULT_SCAN_COMMAND = 'iwlist {iface} scan'
DEFAULT_LINE_FILTER = 'SSID'
DEFAULT_SCAN_TIMEOUT = 10.0


class ScanInvocationFailed(Exception):
    """The scan utility could not be run or did not exit cleanly"""

    def __init__(self, message: str, command=None, returncode: Optional[int] = None, stderr: str = ''):
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


@dataclass
class ScanResult:
    """Lines captured from one scan"""
    lines: List[str] = field(default_factory=list)
    returncode: int = 0
    elapsed: float = 0.0

    @property
    def text(self) -> str:
        return '\n'.join(self.lines)


def build_command(iface: str, command: str = DEFAULT_SCAN_COMMAND, use_sudo: bool = False) -> List[str]:
    """Expand the command template into an argument list"""
    args = [part.replace('{iface}', iface) for part in shlex.split(command)]
    if use_sudo:
        args = ['sudo', '-n'] + args
    return args


def filter_lines(output: str, line_filter: str = DEFAULT_LINE_FILTER) -> List[str]:
    if not line_filter:
        return output.splitlines()
    return [line for line in output.splitlines() if line_filter in line]


def scan_networks(iface: str, command: str = DEFAULT_SCAN_COMMAND,
                  line_filter: str = DEFAULT_LINE_FILTER,
                  timeout: float = DEFAULT_SCAN_TIMEOUT,
                  use_sudo: bool = False) -> ScanResult:
    """Scan for visible networks on ``iface``.

    Blocks until the utility exits or ``timeout`` seconds pass. Raises
    ScanInvocationFailed if it cannot be started, times out or exits with
    a non-zero status. Bytes that are not valid UTF-8 are replaced.
    """
    args = build_command(iface, command, use_sudo)
    logger.debug(f"Running scan: {' '.join(args)}")

    started = time.monotonic()
    try:
        result = subprocess.run(args, capture_output=True, text=True, errors='replace', timeout=timeout)
    except subprocess.TimeoutExpired:
        raise ScanInvocationFailed(f"Scan timed out after {timeout}s", command=args)
    except OSError as e:
        raise ScanInvocationFailed(f"Could not start {args[0]}: {e}", command=args)
    elapsed = time.monotonic() - started

    if result.returncode != 0:
        stderr = (result.stderr or '').strip()
        raise ScanInvocationFailed(
            f"Scan exited with status {result.returncode}: {stderr}",
            command=args,
            returncode=result.returncode,
            stderr=stderr,
        )

    lines = filter_lines(result.stdout or '', line_filter)
    logger.debug(f"Scan returned {len(lines)} line(s) in {elapsed:.2f}s")
    return ScanResult(lines=lines, returncode=result.returncode, elapsed=elapsed)


def dump_scan(result: ScanResult, path: str):
    """Write the captured lines to ``path`` for inspection"""
    with open(path, 'w') as f:
        f.write(result.text)
        if result.lines:
            f.write('\n')
