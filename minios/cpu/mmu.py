"""Address translation with a TLB in front of a multi-level page table."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Optional

from minios.cpu.state import PagingGeometry

logger = logging.getLogger(__name__)

FrameSource = Callable[[int, Sequence[int]], int]


@dataclass
class TlbEntry:
    pid: int
    page: int
    frame: int


class Tlb:
    """A fixed-size TLB replacing its oldest entry under FIFO or LRU."""

    def __init__(self, capacity: int, policy: str) -> None:
        self.capacity = capacity
        self.policy = policy
        self.entries: list[TlbEntry] = []

    @property
    def is_lru(self) -> bool:
        return self.policy.casefold() == "lru"

    @property
    def enabled(self) -> bool:
        return self.capacity != 0

    def lookup(self, pid: int, page: int) -> Optional[int]:
        """Return the frame of a page, or None on a miss."""
        for position, entry in enumerate(self.entries):
            if entry.pid == pid and entry.page == page:
                if self.is_lru:
                    del self.entries[position]
                    self.entries.append(entry)
                logger.info("## PID: %d - TLB HIT - Pagina: %d", pid, page)
                return entry.frame
        logger.info("## PID: %d - TLB MISS - Pagina: %d", pid, page)
        return None

    def add(self, pid: int, page: int, frame: int) -> None:
        """Insert a translation, evicting the entry at the head when full."""
        if self.capacity <= 0:
            return
        if len(self.entries) >= self.capacity:
            victim = self.entries.pop(0)
            logger.debug("REEMPLAZO %d -> %d", victim.page, page)
        self.entries.append(TlbEntry(pid, page, frame))

    def clear(self) -> None:
        self.entries.clear()


class Mmu:
    """Translates logical addresses, asking memory for frames on TLB misses."""

    def __init__(
        self,
        geometry: PagingGeometry,
        tlb: Optional[Tlb],
        frame_source: FrameSource,
    ) -> None:
        self.geometry = geometry
        self.tlb = tlb
        self.frame_source = frame_source

    def level_indices(self, page: int) -> list[int]:
        """Page-table index at each level, outermost first."""
        levels = self.geometry.levels
        entries = self.geometry.entries_per_page
        return [(page // entries ** (levels - level)) % entries for level in range(1, levels + 1)]

    def frame_for(self, pid: int, page: int) -> int:
        use_tlb = self.tlb is not None and self.tlb.enabled
        if use_tlb:
            frame = self.tlb.lookup(pid, page)
            if frame is not None:
                return frame
        frame = self.frame_source(pid, self.level_indices(page))
        logger.debug("marco obtenido. Pagina: %d , Marco: %d", page, frame)
        if use_tlb:
            self.tlb.add(pid, page, frame)
        return frame

    def translate(self, pid: int, logical_address: int) -> int:
        """Turn a logical address into a physical one."""
        page, offset = divmod(logical_address, self.geometry.page_size)
        frame = self.frame_for(pid, page)
        logger.info("## PID: %d - OBTENER MARCO - Página: %d - Marco: %d", pid, page, frame)
        return frame * self.geometry.page_size + offset