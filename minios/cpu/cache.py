"""Page cache with CLOCK and CLOCK-M replacement and write-back to memory."""

from __future__ import annotations

import base64
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional

import requests

from minios.cpu.mmu import Mmu

logger = logging.getLogger(__name__)

WriteBack = Callable[["CacheEntry"], None]


@dataclass
class CacheEntry:
    pid: int
    page: int
    content: bytearray
    used: bool = True
    modified: bool = False


class PageCache:
    """Caches whole pages per process; dirty pages are written back on eviction."""

    def __init__(
        self,
        capacity: int,
        algorithm: str,
        page_size: int,
        write_back: WriteBack,
        delay_ms: int = 0,
    ) -> None:
        self.capacity = capacity
        self.algorithm = algorithm
        self.page_size = page_size
        self.write_back = write_back
        self.delay_ms = delay_ms
        self.entries: list[CacheEntry] = []
        self.pointer = 0
        logger.debug("Se inicializo CachePaginas con algoritmo: %s", algorithm)

    @property
    def enabled(self) -> bool:
        return self.capacity != 0

    def _wait(self) -> None:
        if self.delay_ms > 0:
            time.sleep(self.delay_ms / 1000)

    def _find(self, pid: int, page: int) -> Optional[CacheEntry]:
        return next((e for e in self.entries if e.pid == pid and e.page == page), None)

    @staticmethod
    def _slice(entry: CacheEntry, offset: int, size: int) -> bytes:
        if offset + size > len(entry.content):
            raise IndexError("read past the end of the cached page")
        return bytes(entry.content[offset:offset + size])

    def lookup(self, pid: int, logical_address: int, size: int) -> Optional[bytes]:
        """Return the requested bytes on a hit, None on a miss."""
        self._wait()
        page, offset = divmod(logical_address, self.page_size)
        entry = self._find(pid, page)
        if entry is None:
            logger.info("## PID: %d - Cache Miss - Pagina: %d ", pid, page)
            return None
        entry.used = True
        logger.info("## PID: %d - Cache Hit - Pagina: %d ", pid, page)
        return self._slice(entry, offset, size)

    def read(self, pid: int, logical_address: int, size: int) -> bytes:
        """Read bytes of a page expected to be cached; empty when it is not."""
        self._wait()
        page, offset = divmod(logical_address, self.page_size)
        entry = self._find(pid, page)
        if entry is None:
            logger.info("No se encontro en LeerEnCache, no se deberia ver esto")
            return b""
        entry.used = True
        return self._slice(entry, offset, size)

    def write(self, pid: int, logical_address: int, data: bytes, modified: bool) -> None:
        """Write into a cached page, or cache `data` as a new page."""
        self._wait()
        page, offset = divmod(logical_address, self.page_size)
        entry = self._find(pid, page)
        if entry is not None:
            if offset + len(data) > len(entry.content):
                raise IndexError("write past the end of the cached page")
            entry.content[offset:offset + len(data)] = data
            entry.used = True
            entry.modified = modified
            return
        new_entry = CacheEntry(pid, page, bytearray(data), used=True, modified=modified)
        if len(self.entries) < self.capacity:
            self.entries.append(new_entry)
            logger.info("PID: %d - Cache Add - Pagina: %d", pid, page)
        else:
            self._replace(new_entry)

    def flush_process(self, pid: int) -> None:
        """Drop every page of a process, writing dirty ones back first."""
        logger.debug("Limpiando cache PID: %d", pid)
        kept = []
        for entry in self.entries:
            if entry.pid != pid:
                kept.append(entry)
            elif entry.modified:
                self.write_back(entry)
        self.entries = kept
        logger.debug("Limpieza cache terminada PID: %d", pid)

    def _replace(self, new_entry: CacheEntry) -> None:
        if self.algorithm == "CLOCK":
            self._clock(new_entry)
        elif self.algorithm == "CLOCK-M":
            self._clock_m(new_entry)
        else:
            raise ValueError(f"Algoritmo de reemplazo no valido: {self.algorithm}")

    def _install(self, new_entry: CacheEntry) -> None:
        self.entries[self.pointer] = new_entry
        logger.info("PID: %d - Cache Add - Pagina: %d", new_entry.pid, new_entry.page)
        self._advance()

    def _advance(self) -> None:
        self.pointer += 1
        if self.pointer >= self.capacity:
            self.pointer = 0

    def _clock(self, new_entry: CacheEntry) -> None:
        while True:
            current = self.entries[self.pointer]
            if not current.used:
                if current.modified:
                    self.write_back(current)
                self._install(new_entry)
                return
            current.used = False
            self._advance()

    def _clock_m(self, new_entry: CacheEntry) -> None:
        while True:
            for _ in range(len(self.entries)):
                current = self.entries[self.pointer]
                if not current.used and not current.modified:
                    self._install(new_entry)
                    return
                self._advance()
            for _ in range(len(self.entries)):
                current = self.entries[self.pointer]
                if not current.used and current.modified:
                    self.write_back(current)
                    self._install(new_entry)
                    return
                current.used = False
                self._advance()


class MemoryWriteBack:
    """Writes a dirty cache page back to memory over HTTP."""

    def __init__(self, base_url: str, mmu: Mmu, page_size: int) -> None:
        self.base_url = base_url.rstrip("/")
        self.mmu = mmu
        self.page_size = page_size

    def __call__(self, entry: CacheEntry) -> None:
        frame = self.mmu.frame_for(entry.pid, entry.page)
        physical = frame * self.page_size
        payload = {
            "PID": entry.pid,
            "DirFisica": physical,
            "Datos": base64.b64encode(bytes(entry.content)).decode("ascii"),
        }
        try:
            response = requests.post(f"{self.base_url}/escribir", json=payload, timeout=30)
        except requests.RequestException as exc:
            logger.error("Error enviando UPDATE de memoria: %s", exc)
            return
        if response.status_code != 200:
            logger.error("Memoria respondio con error en Memory Update: %d", response.status_code)
        logger.info(
            "## PID: %d - Memory Update - Pagina: %d - Marco: %d", entry.pid, entry.page, frame
        )