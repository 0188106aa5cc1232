"""An IO device that serves timed requests from the kernel."""

from __future__ import annotations

import argparse
import json
import logging
import signal
import threading
import time
from dataclasses import dataclass, fields
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from os import PathLike
from typing import Any, Optional, Union

import requests

logger = logging.getLogger(__name__)

_TIMEOUT = 30
_TEXT = "text/plain; charset=utf-8"
_BAD_REQUEST = (400, b"Error al decodificar la solicitud", _TEXT)

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class IoConfig:
    """Settings an IO device reads from its JSON configuration file."""

    ip_kernel: str = ""
    port_kernel: int = 0
    ip_io: str = ""
    port_io: int = 0
    log_level: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IoConfig":
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})

    @property
    def kernel_url(self) -> str:
        return f"http://{self.ip_kernel}:{self.port_kernel}"


def load_io_config(path: Union[str, PathLike]) -> IoConfig:
    """Read an IO configuration file; missing keys keep their zero values."""
    with open(path, encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError(f"configuration in {path} is not a JSON object")
    return IoConfig.from_dict(data)


class _IoHandler(BaseHTTPRequestHandler):
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


class IoDevice:
    """Registers with the kernel and performs IO operations it is sent."""

    def __init__(self, name: str, config: IoConfig) -> None:
        self.name = name
        self.config = config
        self._httpd = ThreadingHTTPServer(("", config.port_io), _IoHandler)
        self._httpd.owner = self
        self._serving = False

    @property
    def address(self) -> tuple[str, int]:
        host, port = self._httpd.server_address[:2]
        return host, port

    def _post(self, path: str, payload: Any) -> Optional[requests.Response]:
        try:
            return requests.post(f"{self.config.kernel_url}{path}", json=payload, timeout=_TIMEOUT)
        except requests.RequestException as exc:
            logger.error("error enviando %s al kernel: %s", path, exc)
            return None

    def register(self) -> bool:
        """Announce this device to the kernel; True when the kernel answered."""
        payload = {"Nombre": self.name, "IP": self.config.ip_io, "Puerto": self.config.port_io}
        response = self._post("/registrar-io", payload)
        logger.debug("IO envio al kernel el dispositivo: %s", self.name)
        return response is not None

    def perform(self, pid: int, io_name: str, duration_ms: int) -> None:
        """Busy the device for `duration_ms`, then report the end to the kernel."""
        logger.info("PID: %d - Inicio de IO - Tiempo %d", pid, duration_ms)
        if duration_ms > 0:
            time.sleep(duration_ms / 1000)
        logger.info("PID: %d - Fin de IO", pid)
        self._post("/finalizar-io", {"NombreIO": io_name, "PID": pid})
        logger.debug("Se envio a kernel fin IO, Dispositivo: %s PID: %d", io_name, pid)

    def disconnect(self) -> None:
        """Tell the kernel this instance is going away."""
        logger.debug("Dispositivo: %s se esta desconectando", self.name)
        payload = {"Nombre": self.name, "Puerto": self.config.port_io, "IP": self.config.ip_io}
        self._post("/desconexion-io", payload)
        logger.debug("Aviso desconexion dispositivo: %s enviada a kernel", self.name)

    def serve_forever(self) -> None:
        self._serving = True
        logger.debug("IO escuchando solicitudes en %s:%d", *self.address)
        self._httpd.serve_forever()

    def shutdown(self) -> None:
        if self._serving:
            self._httpd.shutdown()
            self._serving = False
        self._httpd.server_close()

    def _handle(self, path: str, body: bytes) -> tuple[int, bytes, str]:
        if path != "/solicitud-io":
            return 404, b"not found", _TEXT
        try:
            payload = json.loads(body)
        except ValueError as exc:
            logger.error("Error al decodificar la solicitud: %s", exc)
            return _BAD_REQUEST
        if not isinstance(payload, dict):
            return _BAD_REQUEST
        pid = payload.get("PID", 0)
        io_name = payload.get("NombreIO", "")
        duration = payload.get("Duracion", 0)
        if not (_is_int(pid) and _is_int(duration) and isinstance(io_name, str)):
            return _BAD_REQUEST
        threading.Thread(target=self.perform, args=(pid, io_name, duration), daemon=True).start()
        return 200, b"", _TEXT


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
    """Start an IO device: register with the kernel and serve until signalled."""
    parser = argparse.ArgumentParser(prog="minios-io", description="Run an IO device.")
    parser.add_argument("name", help="name of the IO device")
    parser.add_argument("config", help="path of the JSON configuration file")
    args = parser.parse_args(argv)

    try:
        config = load_io_config(args.config)
    except (OSError, ValueError) as exc:
        raise SystemExit(f"ERROR: {exc}") from exc
    _configure_logging(config.log_level, "io.log")

    device = IoDevice(args.name, config)
    device.register()

    def stop() -> None:
        device.disconnect()
        device.shutdown()

    def on_signal(signum: int, frame: Any) -> None:
        threading.Thread(target=stop, daemon=True).start()

    signal.signal(signal.SIGINT, on_signal)
    signal.signal(signal.SIGTERM, on_signal)
    device.serve_forever()
    return 0