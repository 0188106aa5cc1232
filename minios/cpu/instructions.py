"""READ and WRITE data access through the page cache or straight to memory."""

from __future__ import annotations

import logging
from typing import Optional

from minios.cpu.cache import PageCache
from minios.cpu.mmu import Mmu
from minios.cpu.protocols import MemoryClient

logger = logging.getLogger(__name__)


class DataAccess:
    """Carries out the data part of WRITE and READ instructions."""

    def __init__(
        self,
        memory: MemoryClient,
        mmu: Mmu,
        cache: Optional[PageCache],
        page_size: int,
    ) -> None:
        self.memory = memory
        self.mmu = mmu
        self.cache = cache
        self.page_size = page_size

    @property
    def _cache_on(self) -> bool:
        return self.cache is not None and self.cache.enabled

    def _load_page(self, pid: int, logical_address: int) -> None:
        physical = self.mmu.translate(pid, logical_address)
        page = self.fetch_page(physical)
        self.cache.write(pid, logical_address, page, False)

    def write(self, pid: int, logical_address: int, text: str) -> None:
        """Write `text` at a logical address of process `pid`."""
        logger.debug("Entro a WRITE, PID: %d, Direccion: %d", pid, logical_address)
        data = text.encode()
        if self._cache_on:
            if self.cache.lookup(pid, logical_address, 0) is None:
                self._load_page(pid, logical_address)
            self.cache.write(pid, logical_address, data, True)
            logger.info(
                "## PID: %d - Acción: ESCRIBIR desde CACHE - Dirección Física: %d - Valor: %s",
                pid, logical_address, text,
            )
            return
        physical = self.mmu.translate(pid, logical_address)
        self.memory.write(pid, physical, data)
        logger.info(
            "## PID: %d, - Accion: ESCRIBIR, Direccion fisica: %d, Valor Escrito: %s",
            pid, physical, text,
        )

    def read(self, pid: int, logical_address: int, size: int) -> bytes:
        """Read `size` bytes at a logical address of process `pid`."""
        logger.debug("Entro a READ, PID: %d, Direccion: %d", pid, logical_address)
        if self._cache_on:
            data = self.cache.lookup(pid, logical_address, size)
            if data is None:
                self._load_page(pid, logical_address)
                data = self.cache.read(pid, logical_address, size)
            logger.info(
                "## PID: %d - Acción: LEER desde CACHE - Dirección Física: %d - Valor: %s",
                pid, logical_address, data.decode(errors="replace"),
            )
            return data
        physical = self.mmu.translate(pid, logical_address)
        data = self.memory.read(pid, physical, size)
        logger.info(
            "## PID: %d, - Accion: LEER, Direccion fisica: %d, Valor Leido: %s",
            pid, physical, data.decode(errors="replace"),
        )
        return data

    def fetch_page(self, physical_address: int) -> bytes:
        """Fetch the whole page holding a physical address."""
        frame = physical_address // self.page_size
        return self.memory.read_page(frame * self.page_size)