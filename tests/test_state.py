import json

import pytest

from minios.cpu.state import (
    CpuConfig,
    PagingGeometry,
    RunningProcess,
    load_cpu_config,
    parse_int,
)


def test_load_cpu_config_reads_fields(tmp_path):
    path = tmp_path / "cpu.json"
    path.write_text(
        json.dumps(
            {
                "ip_memory": "127.0.0.1",
                "port_memory": 8002,
                "tlb_entries": 4,
                "tlb_replacement": "LRU",
                "cache_replacement": "CLOCK-M",
                "unknown_key": True,
            }
        )
    )
    config = load_cpu_config(path)
    assert config.ip_memory == "127.0.0.1"
    assert config.port_memory == 8002
    assert config.tlb_entries == 4
    assert config.tlb_replacement == "LRU"
    assert config.cache_replacement == "CLOCK-M"


def test_missing_keys_take_zero_values(tmp_path):
    path = tmp_path / "cpu.json"
    path.write_text("{}")
    config = load_cpu_config(path)
    assert config == CpuConfig()
    assert config.cache_entries == 0
    assert config.log_level == ""


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_cpu_config(tmp_path / "absent.json")


def test_non_object_config_raises(tmp_path):
    path = tmp_path / "cpu.json"
    path.write_text("[1, 2]")
    with pytest.raises(ValueError):
        load_cpu_config(path)


def test_urls_built_from_host_and_port():
    config = CpuConfig(ip_memory="localhost", port_memory=8002, ip_kernel="localhost", port_kernel=8001)
    assert config.memory_url == "http://localhost:8002"
    assert config.kernel_url == "http://localhost:8001"


@pytest.mark.parametrize("text,expected", [("42", 42), ("-7", -7), ("+3", 3), ("0", 0)])
def test_parse_int_accepts_plain_integers(text, expected):
    assert parse_int(text) == expected


@pytest.mark.parametrize("text", ["", " 4", "4 ", "1_0", "abc", "1.5", "0x10"])
def test_parse_int_rejects_other_text(text):
    with pytest.raises(ValueError):
        parse_int(text)


def test_running_process_is_mutable():
    process = RunningProcess(pid=3, pc=0)
    process.pc += 1
    assert process == RunningProcess(pid=3, pc=1)


def test_geometry_keeps_values():
    geometry = PagingGeometry(page_size=64, levels=3, entries_per_page=4)
    assert (geometry.page_size, geometry.levels, geometry.entries_per_page) == (64, 3, 4)