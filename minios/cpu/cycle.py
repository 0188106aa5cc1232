"""The instruction cycle: fetch, decode and execute, then check interrupts."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from minios.cpu.cache import PageCache
from minios.cpu.instructions import DataAccess
from minios.cpu.mmu import Tlb
from minios.cpu.protocols import (
    CpuReturn,
    IoRequest,
    KernelClient,
    MemoryClient,
    ReturnReason,
)
from minios.cpu.state import RunningProcess, parse_int

logger = logging.getLogger(__name__)


def _arguments(parts: list[str], count: int) -> list[str]:
    if len(parts) < count + 1:
        raise ValueError(f"{parts[0]} needs {count} argument(s): {' '.join(parts)!r}")
    return parts[1:count + 1]


class Cpu:
    """Runs the process the kernel assigns until it leaves or is interrupted."""

    def __init__(
        self,
        name: str,
        memory: MemoryClient,
        kernel: KernelClient,
        access: DataAccess,
        tlb: Optional[Tlb] = None,
        cache: Optional[PageCache] = None,
    ) -> None:
        self.name = name
        self.memory = memory
        self.kernel = kernel
        self.access = access
        self.tlb = tlb
        self.cache = cache
        self.process = RunningProcess()
        self._interrupted = threading.Event()
        self._reconnected = threading.Event()
        self._syscall = False

    def assign(self, pid: int, pc: int) -> None:
        """Make (pid, pc) the process to run next."""
        self.process = RunningProcess(pid, pc)

    def interrupt(self) -> None:
        logger.info("## Llega interrupción al puerto Interrupt")
        self._interrupted.set()

    def reconnect(self) -> None:
        """Let a process waiting on INIT_PROC continue."""
        logger.debug("se envia señal para la reconexion")
        self._reconnected.set()

    def _return(self, reason: ReturnReason, **extra) -> CpuReturn:
        return CpuReturn(self.process.pid, self.process.pc, reason, self.name, **extra)

    def _send(self, payload: CpuReturn) -> CpuReturn:
        if self.cache is not None:
            self.cache.flush_process(self.process.pid)
        if self.tlb is not None:
            self.tlb.clear()
        self.kernel.send_return(payload)
        return payload

    def execute(self, instruction: str) -> Optional[CpuReturn]:
        """Execute one instruction; return what was sent to the kernel, if anything."""
        parts = instruction.split()
        if not parts:
            raise ValueError("empty instruction")
        operation = parts[0]
        pid = self.process.pid
        logger.info("## PID: %d - Ejecutando: %s", pid, " - ".join(parts))

        if operation == "WRITE":
            address, text = _arguments(parts, 2)
            self.access.write(pid, parse_int(address), text)
            self.process.pc += 1
        elif operation == "READ":
            address, size = _arguments(parts, 2)
            self.access.read(pid, parse_int(address), parse_int(size))
            self.process.pc += 1
        elif operation == "NOOP":
            self.process.pc += 1
        elif operation == "GOTO":
            (target,) = _arguments(parts, 1)
            self.process.pc = parse_int(target)
        elif operation == "IO":
            device, duration = _arguments(parts, 2)
            request = IoRequest(pid, device, parse_int(duration))
            self.process.pc += 1
            self._syscall = True
            return self._send(self._return(ReturnReason.IO, io_request=request))
        elif operation == "INIT_PROC":
            path, size = _arguments(parts, 2)
            payload = self._return(ReturnReason.INIT_PROC, file=path, size=parse_int(size))
            self._reconnected.clear()
            self._send(payload)
            self.process.pc += 1
            self._reconnected.wait()
            self._reconnected.clear()
            logger.debug("## PID: %d se reconecto desde kernel", pid)
            return payload
        elif operation == "DUMP_MEMORY":
            self.process.pc += 1
            payload = self._return(ReturnReason.DUMP_MEMORY)
            self.process.pc += 1
            self._syscall = True
            return self._send(payload)
        elif operation == "EXIT":
            self._syscall = True
            return self._send(self._return(ReturnReason.EXIT))
        else:
            raise ValueError(f"unknown instruction: {instruction!r}")
        return None

    def run(self) -> Optional[CpuReturn]:
        """Run the assigned process; return the last report sent to the kernel."""
        self._interrupted.clear()
        self._syscall = False
        logger.debug("Inicio de ciclo")
        while True:
            logger.info(
                "## PID: %d - FETCH - Program Counter: %d", self.process.pid, self.process.pc
            )
            instruction = self.memory.fetch_instruction(self.process.pid, self.process.pc)
            sent = self.execute(instruction)
            if self._interrupted.is_set():
                reason = ReturnReason.REPLANIFICARPLUS if self._syscall else ReturnReason.REPLANIFICAR
                return self._send(self._return(reason))
            if self._syscall:
                return sent