"""HTTP clients the CPU uses to talk to memory and to the kernel."""

from __future__ import annotations

import base64
import binascii
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import requests

from minios.cpu.state import PagingGeometry

logger = logging.getLogger(__name__)

_TIMEOUT = 30


class ReturnReason(str, Enum):
    """Why the CPU hands a process back to the kernel."""

    IO = "IO"
    INIT_PROC = "INIT_PROC"
    DUMP_MEMORY = "DUMP_MEMORY"
    EXIT = "EXIT"
    REPLANIFICAR = "REPLANIFICAR"
    REPLANIFICARPLUS = "REPLANIFICARPLUS"


@dataclass(frozen=True)
class IoRequest:
    """An IO operation requested by a running process."""

    pid: int
    io_name: str
    duration: int


@dataclass(frozen=True)
class CpuReturn:
    """What the CPU reports to the kernel when a process leaves it."""

    pid: int
    pc: int
    reason: ReturnReason
    identifier: str
    io_request: Optional[IoRequest] = None
    file: str = ""
    size: int = 0

    def to_json(self) -> dict[str, Any]:
        """The wire form of this return, as the kernel expects it."""
        io = self.io_request or IoRequest(0, "", 0)
        return {
            "PID": self.pid,
            "PC": self.pc,
            "Motivo": self.reason.value,
            "Identificador": self.identifier,
            "SolicitudIO": {"PID": io.pid, "NombreIO": io.io_name, "Duracion": io.duration},
            "ArchivoInst": self.file,
            "Tamaño": self.size,
        }


def _json(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise ValueError(f"invalid JSON in response from {response.url}") from exc


def _decode_bytes(value: Any) -> bytes:
    if value is None:
        return b""
    if not isinstance(value, str):
        raise ValueError(f"expected base64 text, got {type(value).__name__}")
    try:
        return base64.b64decode(value, validate=True)
    except binascii.Error as exc:
        raise ValueError("invalid base64 data") from exc


def _encode_bytes(data: bytes) -> str:
    return base64.b64encode(bytes(data)).decode("ascii")


class _Client:
    def __init__(self, host: str, port: int) -> None:
        self.host = host
        self.port = port
        self.base_url = f"http://{host}:{port}"

    def _post(self, path: str, payload: Any) -> requests.Response:
        return requests.post(f"{self.base_url}{path}", json=payload, timeout=_TIMEOUT)


class MemoryClient(_Client):
    """Requests instructions, frames and data from the memory module."""

    def __init__(self, host: str, port: int) -> None:
        super().__init__(host, port)

    def fetch_instruction(self, pid: int, pc: int) -> str:
        """Return the instruction at `pc` of process `pid` as one line of text."""
        response = self._post("/obtener-instruccion", {"PID": pid, "PC": pc})
        data = _json(response)
        if not isinstance(data, dict):
            raise ValueError("instruction response is not a JSON object")
        operation = data.get("Operacion") or ""
        arguments = data.get("Argumentos") or []
        return f"{operation} {' '.join(str(arg) for arg in arguments)}"

    def handshake(self, identifier: str, ip: str, port: int) -> PagingGeometry:
        """Announce this CPU to memory and learn the paging geometry."""
        response = self._post(
            "/conectarcpumemoria", {"IP": ip, "Puerto": port, "Identificador": identifier}
        )
        logger.debug("respuesta del servidor: %s", response.status_code)
        data = _json(response)
        if not isinstance(data, dict):
            raise ValueError("handshake response is not a JSON object")
        return PagingGeometry(
            page_size=int(data.get("Tamaño_pagina", 0)),
            levels=int(data.get("Numeros_de_nivel", 0)),
            entries_per_page=int(data.get("Cant_entradas", 0)),
        )

    def request_frame(self, pid: int, indices: Sequence[int]) -> int:
        """Walk the page table of `pid` with one index per level."""
        response = self._post("/solicitud-marco", {"PID": pid, "Indices": list(indices)})
        return int(_json(response))

    def read_page(self, page_address: int) -> bytes:
        """Fetch a whole page starting at a physical address."""
        response = self._post("/pagina", page_address)
        return _decode_bytes(_json(response))

    def write(self, pid: int, physical_address: int, data: bytes) -> bool:
        """Write bytes at a physical address; True when memory accepted them."""
        payload = {"PID": pid, "DirFisica": physical_address, "Datos": _encode_bytes(data)}
        response = self._post("/escribir", payload)
        if response.status_code != 200:
            logger.error("Memoria devolvio error en WRITE: %d", response.status_code)
            return False
        return True

    def read(self, pid: int, physical_address: int, size: int) -> bytes:
        """Read `size` bytes at a physical address."""
        payload = {"PID": pid, "DirFisica": physical_address, "Tamanio": size}
        response = self._post("/leer", payload)
        return _decode_bytes(_json(response))


class KernelClient(_Client):
    """Registers the CPU with the kernel and reports returning processes."""

    def __init__(self, host: str, port: int) -> None:
        super().__init__(host, port)

    def register(self, identifier: str, ip: str, port: int) -> int:
        payload = {"IP": ip, "Puerto": port, "Identificador": identifier, "Disponible": True}
        response = self._post("/conectarcpu", payload)
        logger.debug("respuesta del servidor: %s", response.status_code)
        return response.status_code

    def send_return(self, payload: CpuReturn) -> int:
        response = self._post("/devolucion", payload.to_json())
        logger.debug("respuesta del servidor: %s", response.status_code)
        return response.status_code