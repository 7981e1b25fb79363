#!filepath: tests/acceptance/test_client.py
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from amtest.acceptance.client import AlertmanagerClient
from amtest.utils.errors import ClientError
from amtest.utils.network import free_address


@pytest.fixture
def am(fake_am_server):
    return fake_am_server(free_address())


@pytest.fixture
def client(am):
    c = AlertmanagerClient(am.address, timeout=2)
    yield c
    c.close()


def test_base_url():
    assert AlertmanagerClient("127.0.0.1:9093").base_url == "http://127.0.0.1:9093"
    assert AlertmanagerClient("http://am:9093/").base_url == "http://am:9093"


def test_push_alerts(client, am):
    client.push_alerts([{"labels": {"alertname": "test"}}])
    assert am.alerts == [{"labels": {"alertname": "test"}}]


def test_push_failure_raises_client_error(client, am):
    am.fail_pushes = True

    with pytest.raises(ClientError) as exc:
        client.push_alerts([{"labels": {"alertname": "test"}}])
    assert exc.value.status_code == 500


def test_set_and_delete_silence(client, am):
    sid = client.set_silence({"matchers": [], "createdBy": "amtest", "comment": "c"})
    assert sid in am.silences

    client.delete_silence(sid)
    assert am.deleted == [sid]


def test_delete_unknown_silence(client):
    with pytest.raises(ClientError) as exc:
        client.delete_silence("missing")
    assert exc.value.status_code == 404


def test_unreachable_server():
    c = AlertmanagerClient(free_address(), timeout=0.5)
    with pytest.raises(ClientError):
        c.push_alerts([])


def test_each_thread_gets_its_own_session(client):
    main = client.session
    assert client.session is main

    other = []
    t = threading.Thread(target=lambda: other.append(client.session))
    t.start()
    t.join()

    assert other[0] is not main
    client.close()
    assert client._sessions == []


def test_concurrent_pushes(client, am):
    def push(i):
        client.push_alerts([{"labels": {"alertname": f"a{i}"}}])

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(push, range(16)))

    assert sorted(a["labels"]["alertname"] for a in am.alerts) == sorted(f"a{i}" for i in range(16))
