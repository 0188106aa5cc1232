import pytest

from minios.cpu.mmu import Mmu, Tlb, TlbEntry
from minios.cpu.state import PagingGeometry

PAGE_SIZE = 64


class RecordingSource:
    def __init__(self, frame):
        self.frame = frame
        self.calls = []

    def __call__(self, pid, indices):
        self.calls.append((pid, list(indices)))
        return self.frame


def test_tlb_lookup_hit_and_miss():
    tlb = Tlb(2, "FIFO")
    tlb.add(1, 10, 5)
    assert tlb.lookup(1, 10) == 5
    assert tlb.lookup(1, 11) is None
    assert tlb.lookup(2, 10) is None


def test_tlb_fifo_evicts_oldest_even_if_used():
    tlb = Tlb(2, "FIFO")
    tlb.add(1, 0, 100)
    tlb.add(1, 1, 101)
    assert tlb.lookup(1, 0) == 100
    tlb.add(1, 2, 102)
    assert tlb.lookup(1, 0) is None
    assert tlb.lookup(1, 1) == 101
    assert len(tlb.entries) == 2


def test_tlb_lru_keeps_recently_used():
    tlb = Tlb(2, "lru")
    tlb.add(1, 0, 100)
    tlb.add(1, 1, 101)
    assert tlb.lookup(1, 0) == 100
    tlb.add(1, 2, 102)
    assert tlb.lookup(1, 1) is None
    assert tlb.lookup(1, 0) == 100
    assert [entry.page for entry in tlb.entries] == [2, 0]


def test_tlb_clear_and_zero_capacity():
    tlb = Tlb(2, "FIFO")
    tlb.add(1, 0, 100)
    tlb.clear()
    assert tlb.entries == []
    disabled = Tlb(0, "FIFO")
    disabled.add(1, 0, 100)
    assert disabled.entries == []


def test_tlb_entry_fields():
    entry = TlbEntry(pid=1, page=2, frame=3)
    assert (entry.pid, entry.page, entry.frame) == (1, 2, 3)


@pytest.mark.parametrize("page", range(0, 64))
def test_level_indices_recompose_page(page):
    geometry = PagingGeometry(page_size=PAGE_SIZE, levels=3, entries_per_page=4)
    mmu = Mmu(geometry, None, RecordingSource(0))
    indices = mmu.level_indices(page)
    assert len(indices) == 3
    assert all(0 <= index < 4 for index in indices)
    recomposed = 0
    for index in indices:
        recomposed = recomposed * 4 + index
    assert recomposed == page


def test_level_indices_single_level_example():
    mmu = Mmu(PagingGeometry(PAGE_SIZE, 1, 4), None, RecordingSource(0))
    assert mmu.level_indices(6) == [2]


def test_translate_keeps_offset_and_uses_frame():
    source = RecordingSource(7)
    mmu = Mmu(PagingGeometry(PAGE_SIZE, 2, 4), Tlb(0, "FIFO"), source)
    address = 3 * PAGE_SIZE + 5
    physical = mmu.translate(9, address)
    assert physical == source.frame * PAGE_SIZE + 5
    assert source.calls == [(9, mmu.level_indices(3))]


def test_translate_uses_tlb_on_second_access():
    source = RecordingSource(4)
    tlb = Tlb(2, "FIFO")
    mmu = Mmu(PagingGeometry(PAGE_SIZE, 2, 4), tlb, source)
    first = mmu.translate(1, PAGE_SIZE + 1)
    second = mmu.translate(1, PAGE_SIZE + 2)
    assert second - first == 1
    assert len(source.calls) == 1
    assert tlb.lookup(1, 1) == source.frame


def test_translate_without_tlb_asks_every_time():
    source = RecordingSource(2)
    mmu = Mmu(PagingGeometry(PAGE_SIZE, 1, 8), Tlb(0, "LRU"), source)
    mmu.translate(1, 0)
    mmu.translate(1, 1)
    assert len(source.calls) == 2