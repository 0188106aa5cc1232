import json

import pytest
import responses

from minios.kernel.memory_client import KernelMemoryClient
from minios.kernel.pcb import Pcb

MEMORY = "http://memory.test:8002"


@pytest.fixture
def client():
    return KernelMemoryClient("memory.test", 8002)


def test_load_process_sends_pcb_when_room(client):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{MEMORY}/espacio-libre", json={"BytesLibres": 256})
        rsps.add(responses.POST, f"{MEMORY}/cargar-proceso", json="OK")
        assert client.load_process(Pcb(3, "proc", 128)) is True
        assert json.loads(rsps.calls[1].request.body) == {"PID": 3, "Tamanio": 128, "PATH": "proc"}


def test_load_process_without_room_does_not_send(client):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{MEMORY}/espacio-libre", json={"BytesLibres": 10})
        assert client.load_process(Pcb(3, "proc", 128)) is False
        assert len(rsps.calls) == 1


def test_load_process_refused_by_memory(client):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{MEMORY}/espacio-libre", json={"BytesLibres": 500})
        rsps.add(responses.POST, f"{MEMORY}/cargar-proceso", json="NO")
        assert client.load_process(Pcb(1, "proc", 100)) is False


def test_load_process_unreachable_memory(client):
    with responses.RequestsMock():
        assert client.load_process(Pcb(1, "proc", 1)) is False


def test_finish_process_sends_pid(client):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{MEMORY}/finalizar-proceso", json="OK")
        assert client.finish_process(5) is True
        assert json.loads(rsps.calls[0].request.body) == 5


def test_finish_process_invalid_answer(client):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{MEMORY}/finalizar-proceso", body="garbage")
        assert client.finish_process(5) is False


def test_suspend_and_unsuspend(client):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{MEMORY}/suspension-proceso", json="OK")
        rsps.add(responses.POST, f"{MEMORY}/desuspension-proceso", json="NO")
        assert client.suspend(2) is True
        assert client.unsuspend(2) is False
        assert [json.loads(c.request.body) for c in rsps.calls] == [2, 2]


def test_dump_reports_pid_and_result(client):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{MEMORY}/memory-dump", json={"PID": 7, "Respuesta": "OK"})
        assert client.dump(7) == (7, True)


def test_dump_failure(client):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{MEMORY}/memory-dump", json={"PID": 7, "Respuesta": "ERROR"})
        assert client.dump(7) == (7, False)