import json
import threading
import time

import pytest
import requests
import responses

from minios.iodevice import IoConfig, IoDevice, load_io_config, main

KERNEL = "http://kernel.test:8001"


@pytest.fixture
def config():
    return IoConfig(
        ip_kernel="kernel.test", port_kernel=8001, ip_io="127.0.0.1", port_io=0, log_level="INFO"
    )


@pytest.fixture
def device(config):
    dev = IoDevice("DISCO", config)
    yield dev
    dev.shutdown()


def _wait_for_calls(rsps, count, timeout=5.0):
    deadline = time.monotonic() + timeout
    while len(rsps.calls) < count and time.monotonic() < deadline:
        time.sleep(0.01)
    return len(rsps.calls)


def test_load_io_config_reads_known_keys(tmp_path):
    path = tmp_path / "io.json"
    path.write_text(json.dumps({"ip_kernel": "kernel.test", "port_kernel": 8001, "extra": 1}))
    loaded = load_io_config(path)
    assert loaded.ip_kernel == "kernel.test"
    assert loaded.port_kernel == 8001
    assert loaded.port_io == 0


def test_load_io_config_rejects_non_object(tmp_path):
    path = tmp_path / "io.json"
    path.write_text("[1]")
    with pytest.raises(ValueError):
        load_io_config(path)


def test_register_sends_name_and_address(device):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{KERNEL}/registrar-io", status=200)
        assert device.register() is True
        assert json.loads(rsps.calls[0].request.body) == {
            "Nombre": "DISCO", "IP": "127.0.0.1", "Puerto": 0,
        }


def test_register_reports_unreachable_kernel(device):
    with responses.RequestsMock():
        assert device.register() is False


def test_perform_reports_end_of_io(config, device):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{KERNEL}/finalizar-io", status=200)
        device.perform(4, "DISCO", 0)
        assert rsps.calls[0].request.url == (
            f"http://{config.ip_kernel}:{config.port_kernel}/finalizar-io"
        )
        assert json.loads(rsps.calls[0].request.body) == {"NombreIO": "DISCO", "PID": 4}


def test_perform_waits_for_duration(config, device):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{KERNEL}/finalizar-io", status=200)
        start = time.monotonic()
        device.perform(1, "DISCO", 50)
        assert time.monotonic() - start >= 0.05
        assert rsps.calls[0].request.url == (
            f"http://{config.ip_kernel}:{config.port_kernel}/finalizar-io"
        )


def test_disconnect_sends_identity(config, device):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{KERNEL}/desconexion-io", status=200)
        device.disconnect()
        body = json.loads(rsps.calls[0].request.body)
        assert body == {"Nombre": "DISCO", "Puerto": config.port_io, "IP": config.ip_io}
        assert body["IP"] == "127.0.0.1"


def test_served_request_is_performed(device):
    thread = threading.Thread(target=device.serve_forever, daemon=True)
    thread.start()
    port = device.address[1]
    base = f"http://127.0.0.1:{port}"
    with responses.RequestsMock() as rsps:
        rsps.add_passthru(base)
        rsps.add(responses.POST, f"{KERNEL}/finalizar-io", status=200)
        answer = requests.post(
            f"{base}/solicitud-io", json={"PID": 9, "NombreIO": "DISCO", "Duracion": 0}, timeout=5
        )
        assert answer.status_code == 200
        assert _wait_for_calls(rsps, 2) == 2
        finish = [c for c in rsps.calls if c.request.url.endswith("/finalizar-io")]
        assert json.loads(finish[0].request.body) == {"NombreIO": "DISCO", "PID": 9}


def test_served_bad_request_is_rejected(device):
    thread = threading.Thread(target=device.serve_forever, daemon=True)
    thread.start()
    port = device.address[1]
    answer = requests.post(f"http://127.0.0.1:{port}/solicitud-io", data=b"{bad", timeout=5)
    assert answer.status_code == 400
    assert answer.text == "Error al decodificar la solicitud"


def test_main_rejects_bad_log_level(tmp_path):
    path = tmp_path / "io.json"
    path.write_text(json.dumps({"log_level": "BOGUS"}))
    with pytest.raises(SystemExit) as excinfo:
        main(["DISCO", str(path)])
    assert excinfo.value.code == 1