"""Host-level supervision of Chromium processes."""

from __future__ import annotations

import logging
import os
import re
from typing import List, Optional, Set

import psutil

from .metrics import BROWSER_PROCESSES

BROWSER_PROCESS_PATTERN = re.compile(r"chromium|chrome.*headless", re.IGNORECASE)

_logger = logging.getLogger("listings_finder.supervision")


def _command_line(proc: psutil.Process) -> str:
    info = proc.info
    return " ".join([info.get("name") or ""] + list(info.get("cmdline") or []))


def _own_descendants() -> Set[int]:
    try:
        return {child.pid for child in psutil.Process(os.getpid()).children(recursive=True)}
    except psutil.Error:
        return set()


def find_browser_processes() -> List[psutil.Process]:
    processes: List[psutil.Process] = []
    for proc in psutil.process_iter(["pid", "name", "cmdline"]):
        try:
            if BROWSER_PROCESS_PATTERN.search(_command_line(proc)):
                processes.append(proc)
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            continue
    return processes


def count_browser_processes() -> int:
    """Number of Chromium processes on the host; also published as a gauge."""
    count = len(find_browser_processes())
    BROWSER_PROCESSES.set(count)
    return count


def kill_orphaned_browsers(*, spare_own_children: bool = False,
                           logger: Optional[logging.Logger] = None) -> int:
    """Kill leftover Chromium processes and return how many were killed.

    With ``spare_own_children`` the browsers launched by this service are left
    alone, so cleanup can run while jobs are in flight.
    """
    log = logger or _logger
    spared = _own_descendants() if spare_own_children else set()
    targets = [p for p in find_browser_processes() if p.pid not in spared]
    if not targets:
        log.info("🧹 No orphaned browser processes found")
        return 0

    log.info(f"🧹 Found {len(targets)} potential orphaned browser processes")
    killed = 0
    for proc in targets:
        try:
            proc.kill()
            killed += 1
            log.info(f"Killed process {proc.pid}")
        except psutil.NoSuchProcess:
            log.debug(f"Process {proc.pid} already exited")
        except psutil.AccessDenied as e:
            log.warning(f"⚠️ Not allowed to kill process {proc.pid}: {e}")
    psutil.wait_procs(targets, timeout=3)
    BROWSER_PROCESSES.set(len(find_browser_processes()))
    return killed
