"""HTTP client the kernel uses to talk to the memory module."""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from minios.kernel.pcb import Pcb

logger = logging.getLogger(__name__)

_TIMEOUT = 30


def _answer(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


class KernelMemoryClient:
    """Loads, finishes, suspends, resumes and dumps processes in memory."""

    def __init__(self, host: str, port: int) -> None:
        self.host = host
        self.port = port
        self.base_url = f"http://{host}:{port}"

    def _post(self, path: str, payload: Any) -> Any:
        response = requests.post(f"{self.base_url}{path}", json=payload, timeout=_TIMEOUT)
        return _answer(response)

    def load_process(self, pcb: Pcb) -> bool:
        """Ask memory to load `pcb`; False when there is no room or it refuses."""
        try:
            response = requests.get(f"{self.base_url}/espacio-libre", timeout=_TIMEOUT)
        except requests.RequestException as exc:
            logger.debug("Error al consultar espacio libre en memoria: %s", exc)
            return False
        space = _answer(response)
        free = space.get("BytesLibres", 0) if isinstance(space, dict) else 0
        if not isinstance(free, int) or free < pcb.size:
            logger.debug("no hay espacio para cargar al proceso PID:%d", pcb.pid)
            return False
        payload = {"PID": pcb.pid, "Tamanio": pcb.size, "PATH": pcb.path}
        return self._post("/cargar-proceso", payload) == "OK"

    def finish_process(self, pid: int) -> bool:
        return self._post("/finalizar-proceso", pid) == "OK"

    def suspend(self, pid: int) -> bool:
        logger.debug("Mandando a suspension PID: %d", pid)
        return self._post("/suspension-proceso", pid) == "OK"

    def unsuspend(self, pid: int) -> bool:
        return self._post("/desuspension-proceso", pid) == "OK"

    def dump(self, pid: int) -> tuple[int, bool]:
        """Request a memory dump; returns the PID memory answered for and success."""
        data: Optional[Any] = self._post("/memory-dump", pid)
        if not isinstance(data, dict):
            return 0, False
        answered = data.get("PID", 0)
        logger.debug("me llego una Devolucion de Memoria: %s", data.get("Respuesta"))
        return (answered if isinstance(answered, int) else 0), data.get("Respuesta") == "OK"