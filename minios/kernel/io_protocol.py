"""Registration, completion and disconnection of IO devices in the kernel."""

from __future__ import annotations

import logging
from typing import Optional

from minios.kernel.pcb import Pcb, State, find_by_pid
from minios.kernel.state import KernelState, RegisteredDevice
from minios.kernel.syscalls import IoSender, find_free_device, send_io_request

logger = logging.getLogger(__name__)


class IoCoordinator:
    """Keeps IO devices busy with the processes that wait for them."""

    def __init__(self, state: KernelState, io_sender: IoSender = send_io_request) -> None:
        self.state = state
        self.io_sender = io_sender

    def register(self, name: str, ip: str, port: int) -> RegisteredDevice:
        """Add one more instance of device `name`."""
        device = RegisteredDevice(name, ip, port)
        with self.state.lock:
            self.state.devices.setdefault(name, []).append(device)
        logger.debug("se registro el io: %s en kernel", name)
        return device

    def _blocked(self, pid: int) -> Optional[Pcb]:
        return find_by_pid(pid, self.state.queue(State.BLOCKED)) or find_by_pid(
            pid, self.state.queue(State.SUSP_BLOCKED)
        )

    def finish(self, name: str, pid: int) -> bool:
        """Handle the end of an IO; False when `pid` is not blocked."""
        logger.info("## (%d) finalizó IO y pasa a READY", pid)
        state = self.state
        to_send = None
        with state.lock:
            pcb = self._blocked(pid)
            if pcb is None:
                logger.debug("No existe PID %d en bloqueados ni en bloqueadosSUSP", pid)
                return False
            state.transition(State.BLOCKED, State.READY, pcb)
            device = next(
                (d for d in state.devices.get(name, ()) if d.current_pid == pid), None
            )
            if device is None:
                return True
            device.current_pid = -1
            logger.debug("El dispositivo: %s que ocupo PID: %d esta libre", name, pid)
            if not state.io_waiting.get(name):
                logger.debug("NO hay procesos en espera para: %s", name)
                return True
            following = self.next_waiting(name)
            if following is None:
                return True
            free = find_free_device(state.devices, name)
            if free is None:
                return True
            free.current_pid = following.pid
            state.io_waiting[name].pop(0)
            to_send = (free, following)
        free, following = to_send
        logger.debug("PID: %d ocupo el dispositivo: %s", following.pid, name)
        self.io_sender(free.ip, free.port, following.pid, free.name, following.pending_io_duration)
        return True

    def next_waiting(self, name: str) -> Optional[Pcb]:
        """The first still-blocked process waiting for `name`.

        Suspended processes found ahead of it leave the queue for SUSP_READY,
        stepping their program counter back so the IO is requested again.
        """
        state = self.state
        with state.lock:
            waiting = state.io_waiting.get(name, [])
            while waiting:
                head = waiting[0]
                if head.state is State.BLOCKED:
                    return head
                waiting.pop(0)
                if head.state is State.SUSP_BLOCKED:
                    head.pc -= 1
                    state.transition(State.BLOCKED, State.READY, head)
        logger.debug("NO hay procesos en espera para: %s", name)
        return None

    def disconnect(self, name: str, ip: str, port: int) -> list[int]:
        """Remove an instance of `name`; returns the PIDs sent to EXIT."""
        logger.debug("Recibi la desconexion de: %s", name)
        state = self.state
        exited: list[int] = []
        with state.lock:
            remaining = []
            for device in state.devices.get(name, []):
                if device.ip != ip or device.port != port:
                    remaining.append(device)
                    continue
                if device.current_pid == -1:
                    continue
                pcb = self._blocked(device.current_pid)
                if pcb is None:
                    logger.debug("No existe PID %d en bloqueados", device.current_pid)
                    continue
                state.transition(State.BLOCKED, State.EXIT, pcb)
                exited.append(pcb.pid)
            if remaining:
                state.devices[name] = remaining
                logger.debug("Instancias restantes de %s: %d", name, len(remaining))
                return exited
            state.devices.pop(name, None)
            for pcb in state.io_waiting.pop(name, []):
                if pcb.state in (State.BLOCKED, State.SUSP_BLOCKED):
                    state.transition(State.BLOCKED, State.EXIT, pcb)
                    exited.append(pcb.pid)
        logger.debug("todos los procesos esperando %s se fueron a EXIT", name)
        return exited