"""HTTP endpoint through which the kernel drives a CPU, and the CPU command."""

from __future__ import annotations

import argparse
import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Optional

from minios.cpu.cache import MemoryWriteBack, PageCache
from minios.cpu.cycle import Cpu
from minios.cpu.instructions import DataAccess
from minios.cpu.mmu import Mmu, Tlb
from minios.cpu.protocols import KernelClient, MemoryClient
from minios.cpu.state import load_cpu_config

logger = logging.getLogger(__name__)

_Reply = tuple[int, bytes, str]
_TEXT = "text/plain; charset=utf-8"
_BAD_MESSAGE: _Reply = (400, b"error al decodificar mensaje", _TEXT)
_EMPTY: _Reply = (200, b"", _TEXT)

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class _CpuHandler(BaseHTTPRequestHandler):
    def do_POST(self) -> None:  # noqa: N802 - name fixed by BaseHTTPRequestHandler
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length)
        status, content, content_type = self.server.owner._handle(self.path, body)
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(content)))
        self.end_headers()
        self.wfile.write(content)

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        logger.debug(format, *args)


class CpuServer:
    """Accepts processes, interrupts and reconnections from the kernel."""

    def __init__(self, cpu: Cpu, host: str = "", port: int = 0) -> None:
        self.cpu = cpu
        self._httpd = ThreadingHTTPServer((host, port), _CpuHandler)
        self._httpd.owner = self
        self._serving = False

    @property
    def address(self) -> tuple[str, int]:
        host, port = self._httpd.server_address[:2]
        return host, port

    def serve_forever(self) -> None:
        self._serving = True
        logger.debug("Servidor de CPU escuchando en %s:%d", *self.address)
        self._httpd.serve_forever()

    def shutdown(self) -> None:
        if self._serving:
            self._httpd.shutdown()
            self._serving = False
        self._httpd.server_close()

    def _handle(self, path: str, body: bytes) -> _Reply:
        routes = {
            "/datoCPU": self._receive_process,
            "/interrupcion": self._interrupt,
            "/reconectar": self._reconnect,
        }
        route = routes.get(path)
        if route is None:
            return 404, b"not found", _TEXT
        try:
            payload = json.loads(body)
        except ValueError as exc:
            logger.error("error al decodificar mensaje: %s", exc)
            return _BAD_MESSAGE
        return route(payload)

    def _receive_process(self, payload: Any) -> _Reply:
        logger.debug("Recibi un proceso de kernel")
        if not isinstance(payload, dict):
            return _BAD_MESSAGE
        pid = payload.get("PID", 0)
        pc = payload.get("PC", 0)
        if not (_is_int(pid) and _is_int(pc)):
            return _BAD_MESSAGE
        self.cpu.assign(pid, pc)
        threading.Thread(target=self._run, daemon=True).start()
        logger.debug("Confirmacion enviada")
        return 200, json.dumps("OK").encode(), "application/json"

    def _run(self) -> None:
        try:
            self.cpu.run()
        except Exception:
            logger.exception("el ciclo de instruccion termino con error")

    def _interrupt(self, payload: Any) -> _Reply:
        if not isinstance(payload, str):
            return _BAD_MESSAGE
        if payload == "interrupcion":
            self.cpu.interrupt()
        return _EMPTY

    def _reconnect(self, payload: Any) -> _Reply:
        logger.debug("## Llego una solicitud de reconexion")
        if not isinstance(payload, str):
            return _BAD_MESSAGE
        if payload == "Reconectar":
            self.cpu.reconnect()
        return _EMPTY


def _configure_logging(level_name: str, filename: str) -> None:
    level = _LEVELS.get(level_name.upper())
    if level is None:
        print("ERROR: El nivel de log ingresado no es valido")
        raise SystemExit(1)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(message)s",
        handlers=[logging.FileHandler(filename), logging.StreamHandler()],
    )


def main(argv: Optional[list[str]] = None) -> int:
    """Start a CPU: handshake with memory, register with the kernel, then serve."""
    parser = argparse.ArgumentParser(prog="minios-cpu", description="Run a CPU.")
    parser.add_argument("name", help="identifier of this CPU")
    parser.add_argument("config", help="path of the JSON configuration file")
    args = parser.parse_args(argv)

    try:
        config = load_cpu_config(args.config)
    except (OSError, ValueError) as exc:
        raise SystemExit(f"ERROR: {exc}") from exc
    _configure_logging(config.log_level, f"{args.name}.log")

    memory = MemoryClient(config.ip_memory, config.port_memory)
    kernel = KernelClient(config.ip_kernel, config.port_kernel)
    geometry = memory.handshake(args.name, config.ip_cpu, config.port_cpu)

    tlb = Tlb(config.tlb_entries, config.tlb_replacement)
    mmu = Mmu(geometry, tlb, memory.request_frame)
    cache = PageCache(
        config.cache_entries,
        config.cache_replacement,
        geometry.page_size,
        MemoryWriteBack(memory.base_url, mmu, geometry.page_size),
        config.cache_delay,
    )
    access = DataAccess(memory, mmu, cache, geometry.page_size)
    cpu = Cpu(args.name, memory, kernel, access, tlb, cache)

    server = CpuServer(cpu, "", config.port_cpu)
    kernel.register(args.name, config.ip_cpu, config.port_cpu)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.shutdown()
    return 0