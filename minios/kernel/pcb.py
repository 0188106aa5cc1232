"""Process control blocks and their creation."""

from __future__ import annotations

import itertools
import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class State(str, Enum):
    """Scheduling states a process moves through."""

    NEW = "NEW"
    READY = "READY"
    EXEC = "EXEC"
    BLOCKED = "BLOCKED"
    SUSP_BLOCKED = "SUSP_BLOCKED"
    SUSP_READY = "SUSP_READY"
    EXIT = "EXIT"


@dataclass
class Pcb:
    """A process as the kernel tracks it. Times are in milliseconds."""

    pid: int
    path: str
    size: int
    pc: int = 0
    state: Optional[State] = None
    estimated_burst: float = -1.0
    previous_estimate: float = 0.0
    last_real_burst: float = -1.0
    remaining: float = 0.0
    accumulated: float = 0.0
    exec_mark: float = 0.0
    preempted: bool = False
    state_started: float = 0.0
    state_times: dict[State, float] = field(default_factory=dict)
    state_counts: dict[State, int] = field(default_factory=dict)
    pending_io: str = ""
    pending_io_duration: int = 0


class PcbFactory:
    """Creates PCBs with consecutive PIDs starting at zero."""

    def __init__(self, algorithm: str, initial_estimate: float) -> None:
        self.algorithm = algorithm
        self.initial_estimate = initial_estimate
        self._pids = itertools.count()
        self._lock = threading.Lock()

    @property
    def uses_estimates(self) -> bool:
        return self.algorithm.casefold() in ("sjf", "srt")

    def create(self, path: str, size: int) -> Pcb:
        with self._lock:
            pid = next(self._pids)
        pcb = Pcb(pid=pid, path=path, size=size)
        if self.uses_estimates:
            pcb.estimated_burst = self.initial_estimate
            pcb.last_real_burst = 0.0
        logger.debug("Se crea el PCB del proceso con PID: %d", pid)
        return pcb


def find_by_pid(pid: int, queue: Iterable[Pcb]) -> Optional[Pcb]:
    """The PCB with `pid` in `queue`, or None."""
    return next((pcb for pcb in queue if pcb.pid == pid), None)


def update_pc(queue: Iterable[Pcb], pid: int, pc: int) -> bool:
    """Set the program counter of `pid` in `queue`; False when it is not there."""
    pcb = find_by_pid(pid, queue)
    if pcb is None:
        return False
    pcb.pc = pc
    return True