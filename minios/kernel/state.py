"""Kernel-wide state: process queues, CPUs, IO devices and state transitions."""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field, fields
from os import PathLike
from typing import Any, Optional, Protocol, Union

import requests

from minios.kernel.pcb import Pcb, State

logger = logging.getLogger(__name__)

FINISHED = "FINALIZADO"

Clock = Callable[[], float]
StateLike = Union[State, str, None]


@dataclass(frozen=True)
class KernelConfig:
    """Settings the kernel reads from its JSON configuration file."""

    ip_memory: str = ""
    port_memory: int = 0
    ip_kernel: str = ""
    port_kernel: int = 0
    scheduler_algorithm: str = ""
    ready_ingress_algorithm: str = ""
    alpha: float = 0.0
    initial_estimate: float = 0.0
    suspension_time: int = 0
    log_level: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "KernelConfig":
        """Build a config from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})

    @property
    def memory_url(self) -> str:
        return f"http://{self.ip_memory}:{self.port_memory}"


def load_kernel_config(path: Union[str, PathLike]) -> KernelConfig:
    """Read a kernel configuration file; missing keys keep their zero values."""
    with open(path, encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError(f"configuration in {path} is not a JSON object")
    return KernelConfig.from_dict(data)


@dataclass
class CpuSlot:
    """A CPU connected to the kernel and the process it was last given."""

    identifier: str
    ip: str
    port: int
    available: bool = True
    process: Optional[Pcb] = None


@dataclass
class RegisteredDevice:
    """One instance of an IO device; `current_pid` is -1 while it is free."""

    name: str
    ip: str
    port: int
    current_pid: int = -1


class _Memory(Protocol):
    def suspend(self, pid: int) -> bool: ...


def _to_state(value: StateLike) -> Optional[State]:
    if value is None or value == "":
        return None
    if isinstance(value, State):
        return value
    return State(value)


def _default_clock() -> float:
    return time.monotonic() * 1000


def format_metrics(pcb: Pcb) -> str:
    """The end-of-process line with the count and milliseconds of each state."""
    order = [
        (State.NEW, "NEW"),
        (State.READY, "READY"),
        (State.EXEC, "EXEC"),
        (State.BLOCKED, "BLOCKED"),
        (State.SUSP_BLOCKED, "SUSP. BLOCKED"),
        (State.SUSP_READY, "SUSP. READY"),
        (State.EXIT, "EXIT"),
    ]
    parts = ", ".join(
        f"{label} ({pcb.state_counts.get(state, 0)}) ({int(pcb.state_times.get(state, 0.0))})"
        for state, label in order
    )
    return f"## ({pcb.pid}) - Métricas de estado: {parts}"


@dataclass
class _Signals:
    process_loaded: threading.Semaphore = field(default_factory=lambda: threading.Semaphore(0))
    process_ready: threading.Semaphore = field(default_factory=lambda: threading.Semaphore(0))
    process_susp_ready: threading.Semaphore = field(default_factory=lambda: threading.Semaphore(0))
    process_to_finish: threading.Semaphore = field(default_factory=lambda: threading.Semaphore(0))


class KernelState:
    """Holds every queue of the kernel and moves processes between them."""

    def __init__(
        self,
        config: KernelConfig,
        memory: _Memory,
        clock: Optional[Clock] = None,
    ) -> None:
        self.config = config
        self.memory = memory
        self.clock: Clock = clock or _default_clock
        self.lock = threading.RLock()
        self._queues: dict[State, list[Pcb]] = {state: [] for state in State}
        self.cpus: list[CpuSlot] = []
        self.cpu_counter = 0
        self.cpu_released: dict[str, threading.Semaphore] = {}
        self.devices: dict[str, list[RegisteredDevice]] = {}
        self.io_waiting: dict[str, list[Pcb]] = {}
        signals = _Signals()
        self.process_loaded = signals.process_loaded
        self.process_ready = signals.process_ready
        self.process_susp_ready = signals.process_susp_ready
        self.process_to_finish = signals.process_to_finish
        self._timers: dict[int, threading.Timer] = {}

    def queue(self, state: StateLike) -> list[Pcb]:
        """The live queue of processes in `state`."""
        resolved = _to_state(state)
        if resolved is None:
            raise ValueError("a queue needs a state")
        return self._queues[resolved]

    def extract(self, state: StateLike, pid: int) -> Optional[Pcb]:
        """Remove and return the process `pid` from the queue of `state`."""
        with self.lock:
            queue = self.queue(state)
            for position, pcb in enumerate(queue):
                if pcb.pid == pid:
                    return queue.pop(position)
        return None

    def is_blocked(self, pid: int) -> bool:
        with self.lock:
            return any(pcb.pid == pid for pcb in self._queues[State.BLOCKED])

    def transition(self, old: StateLike, new: Union[State, str], pcb: Pcb) -> None:
        """Move `pcb` from `old` to `new`, or finish it when `new` is FINISHED."""
        source = _to_state(old)
        finishing = new == FINISHED
        target = None if finishing else _to_state(new)
        if target is None and not finishing:
            raise ValueError("a transition needs a target state")
        with self.lock:
            if pcb.state is State.SUSP_BLOCKED and source is State.BLOCKED:
                if target is State.READY:
                    self.transition(State.SUSP_BLOCKED, State.SUSP_READY, pcb)
                    return
                if target is State.EXIT:
                    self.transition(State.SUSP_BLOCKED, State.EXIT, pcb)
                    return
            if finishing:
                if source is not None:
                    self._stop_metric(source, pcb)
                logger.info("## (%d) - Finaliza el proceso", pcb.pid)
                logger.info("%s", format_metrics(pcb))
                return
            if target is not State.NEW and source is not None:
                self._stop_metric(source, pcb)
            self._enter(source, target, pcb)

    def _enter(self, source: Optional[State], target: State, pcb: Pcb) -> None:
        pcb.state_counts[target] = pcb.state_counts.get(target, 0) + 1
        pcb.state = target
        pcb.state_started = self.clock()
        if target is State.EXEC:
            pcb.exec_mark = pcb.state_times.get(State.EXEC, 0.0)
            if not pcb.preempted:
                pcb.remaining = pcb.estimated_burst
        self._queues[target].append(pcb)
        if target is State.NEW:
            logger.info("## (%d) Se crea el proceso - Estado: NEW", pcb.pid)
            self.process_loaded.release()
            return
        logger.info(
            "## (%d) Pasa del estado %s al estado %s",
            pcb.pid, source.value if source else "", target.value,
        )
        if target is State.READY:
            self.process_ready.release()
        elif target is State.SUSP_READY:
            self.process_susp_ready.release()
        elif target is State.EXIT:
            self.process_to_finish.release()
        elif target is State.BLOCKED:
            self._start_suspension_timer(pcb, pcb.state_counts[State.BLOCKED])

    def _stop_metric(self, source: State, pcb: Pcb) -> None:
        self.extract(source, pcb.pid)
        elapsed = self.clock() - pcb.state_started
        pcb.state_times[source] = pcb.state_times.get(source, 0.0) + elapsed
        if source is State.BLOCKED:
            timer = self._timers.pop(pcb.pid, None)
            if timer is not None:
                timer.cancel()
        if source is not State.EXEC:
            return
        if not pcb.preempted:
            burst = pcb.state_times[State.EXEC] - pcb.exec_mark
            if pcb.remaining != 0:
                burst += pcb.accumulated
            pcb.last_real_burst = burst
            alpha = float(self.config.alpha)
            pcb.estimated_burst = alpha * burst + (1 - alpha) * pcb.previous_estimate
            pcb.remaining = 0.0
            pcb.accumulated = 0.0
            logger.debug("## (%d) UltimaRafagaReal: %f ", pcb.pid, pcb.last_real_burst)
            logger.debug("## (%d) EstimadoRafaga: %f ", pcb.pid, pcb.estimated_burst)
        else:
            pcb.remaining -= elapsed
            pcb.accumulated += elapsed
            logger.debug("## (%d) TiempoRestante: %f ", pcb.pid, pcb.remaining)

    def _start_suspension_timer(self, pcb: Pcb, count: int) -> None:
        timer = threading.Timer(
            self.config.suspension_time / 1000,
            self.suspend_if_still_blocked,
            args=(pcb, count),
        )
        timer.daemon = True
        previous = self._timers.pop(pcb.pid, None)
        if previous is not None:
            previous.cancel()
        self._timers[pcb.pid] = timer
        timer.start()

    def suspend_if_still_blocked(self, pcb: Pcb, count: int) -> bool:
        """Suspend `pcb` if it is still in the same blocked spell; True on success."""
        with self.lock:
            if not self.is_blocked(pcb.pid) or pcb.state_counts.get(State.BLOCKED, 0) != count:
                return False
            logger.debug("Termino el conteo de suspension del proceso de PID: %d", pcb.pid)
            self.transition(State.BLOCKED, State.SUSP_BLOCKED, pcb)
        try:
            accepted = self.memory.suspend(pcb.pid)
        except requests.RequestException as exc:
            logger.error("error enviando proceso de PID:%d a suspension: %s", pcb.pid, exc)
            return False
        if not accepted:
            logger.debug("Memoria no avalo la suspension del PID: %d", pcb.pid)
            return False
        logger.debug("Memoria avalo la suspension")
        with self.lock:
            waiting = bool(self._queues[State.SUSP_READY])
        if waiting:
            self.process_susp_ready.release()
        else:
            self.process_loaded.release()
        return True

    def _slot(self, identifier: str) -> Optional[CpuSlot]:
        return next((slot for slot in self.cpus if slot.identifier == identifier), None)

    def enable_cpu(self, identifier: str) -> bool:
        """Mark a CPU free and wake the short-term scheduler."""
        with self.lock:
            slot = self._slot(identifier)
            if slot is None:
                return False
            slot.available = True
        logger.debug("Se habilita la cpu: %s y se manda señal al plani corto", identifier)
        self.process_ready.release()
        return True

    def disable_cpu(self, identifier: str) -> bool:
        """Mark a CPU busy."""
        with self.lock:
            slot = self._slot(identifier)
            if slot is None:
                return False
            slot.available = False
        return True