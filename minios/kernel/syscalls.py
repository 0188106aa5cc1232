"""System calls the kernel serves for running processes."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Optional

import requests

from minios.kernel.pcb import Pcb, PcbFactory, State, find_by_pid
from minios.kernel.state import KernelState, RegisteredDevice

logger = logging.getLogger(__name__)

_TIMEOUT = 30

IoSender = Callable[[str, int, int, str, int], bool]


def find_free_device(
    devices: Mapping[str, Sequence[RegisteredDevice]], name: str
) -> Optional[RegisteredDevice]:
    """The first idle instance of device `name`, or None."""
    return next((d for d in devices.get(name, ()) if d.current_pid == -1), None)


def send_io_request(ip: str, port: int, pid: int, io_name: str, duration: int) -> bool:
    """Ask an IO device to perform an operation; True when it accepted."""
    payload = {"PID": pid, "NombreIO": io_name, "Duracion": duration}
    try:
        response = requests.post(f"http://{ip}:{port}/solicitud-io", json=payload, timeout=_TIMEOUT)
    except requests.RequestException as exc:
        logger.error("error enviando solicitud IO %s, PID: %d: %s", io_name, pid, exc)
        return False
    return response.status_code == 200


class SyscallHandler:
    """Serves IO, INIT_PROC and DUMP_MEMORY requests."""

    def __init__(
        self,
        state: KernelState,
        factory: PcbFactory,
        io_sender: IoSender = send_io_request,
    ) -> None:
        self.state = state
        self.factory = factory
        self.io_sender = io_sender

    def request_io(self, pid: int, io_name: str, duration: int, cpu_id: str) -> bool:
        """Block `pid` on device `io_name`; False when `pid` is not executing."""
        state = self.state
        with state.lock:
            pcb = find_by_pid(pid, state.queue(State.EXEC))
            if pcb is None:
                logger.error("No existe PID %d en execute", pid)
                return False
            pcb.preempted = False
            logger.debug("El proceso: %d solicita io: %s", pid, io_name)
            if io_name not in state.devices:
                logger.debug("No existe IO: %s, PID: %d", io_name, pid)
                state.transition(State.EXEC, State.EXIT, pcb)
                state.enable_cpu(cpu_id)
                return True
            pcb.pending_io = io_name
            pcb.pending_io_duration = duration
            device = find_free_device(state.devices, io_name)
            state.transition(State.EXEC, State.BLOCKED, pcb)
            logger.info("## (%d) - Bloqueado por IO: %s", pid, io_name)
            if device is None:
                logger.debug("IO ocupado: %s, PID: %d", io_name, pid)
                state.io_waiting.setdefault(io_name, []).append(pcb)
            else:
                device.current_pid = pid
        state.enable_cpu(cpu_id)
        if device is not None:
            logger.debug("Se intenta enviar solicitud a IO: %s, PID: %d", io_name, pid)
            self.io_sender(device.ip, device.port, pid, io_name, duration)
        return True

    def init_proc(self, path: str, size: int) -> Pcb:
        """Create a new process and put it in NEW."""
        pcb = self.factory.create(path, size)
        self.state.transition(None, State.NEW, pcb)
        return pcb

    def dump_memory(self, pid: int) -> bool:
        """Ask memory for a dump; the blocked process goes to READY or EXIT."""
        try:
            answered, ok = self.state.memory.dump(pid)
        except requests.RequestException as exc:
            logger.error("error enviando proceso de PID:%d a dump: %s", pid, exc)
            answered, ok = pid, False
        with self.state.lock:
            pcb = find_by_pid(answered, self.state.queue(State.BLOCKED))
            if pcb is None:
                logger.error("No existe PID %d en bloqueados para el dump", answered)
                return False
            self.state.transition(State.BLOCKED, State.READY if ok else State.EXIT, pcb)
        return ok