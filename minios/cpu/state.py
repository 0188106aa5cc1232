"""CPU configuration, running-process bookkeeping and paging geometry."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, fields
from os import PathLike
from typing import Any, Union

_INT_PATTERN = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class CpuConfig:
    """Settings a CPU reads from its JSON configuration file."""

    ip_cpu: str = ""
    port_cpu: int = 0
    ip_kernel: str = ""
    port_kernel: int = 0
    ip_memory: str = ""
    port_memory: int = 0
    tlb_entries: int = 0
    tlb_replacement: str = ""
    cache_entries: int = 0
    cache_replacement: str = ""
    cache_delay: int = 0
    log_level: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CpuConfig":
        """Build a config from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})

    @property
    def memory_url(self) -> str:
        return f"http://{self.ip_memory}:{self.port_memory}"

    @property
    def kernel_url(self) -> str:
        return f"http://{self.ip_kernel}:{self.port_kernel}"


@dataclass
class RunningProcess:
    """The process currently assigned to the CPU."""

    pid: int = 0
    pc: int = 0


@dataclass(frozen=True)
class PagingGeometry:
    """Page size and page-table shape announced by memory at handshake."""

    page_size: int
    levels: int
    entries_per_page: int


def load_cpu_config(path: Union[str, PathLike]) -> CpuConfig:
    """Read a CPU configuration file; missing keys keep their zero values."""
    with open(path, encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError(f"configuration in {path} is not a JSON object")
    return CpuConfig.from_dict(data)


def parse_int(text: str) -> int:
    """Parse a decimal integer strictly: optional sign and ASCII digits only."""
    if not _INT_PATTERN.fullmatch(text):
        raise ValueError(f"not an integer: {text!r}")
    return int(text)