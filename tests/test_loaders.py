from concurrent.futures import ThreadPoolExecutor
import logging
import threading

import pytest

from trajview.config import COORDINATE_FORMAT, MODEL_FORMAT
from trajview.errors import FetchError
from trajview.model.state import StructurePayload, TrajectoryRequest
from trajview.services.cache import ResourceCache
from trajview.services.loader import CachedLoader
from trajview.services.structure import StructureLoader, decode_structure_payload, structure_key
from trajview.services.trajectory import TrajectoryLoader, trajectory_key


class _FakeClient:
    def __init__(self, structure=b">atom list", trajectory=b"\x01\x02", gate=None, error=None):
        self.structure = structure
        self.trajectory = trajectory
        self.gate = gate
        self.error = error
        self.structure_calls = []
        self.trajectory_calls = []

    def fetch_structure(self, subject, selection=None):
        self.structure_calls.append((subject, selection))
        if self.gate is not None:
            assert self.gate.wait(5)
        return self.structure

    def fetch_trajectory(self, subject, format=None, frames=None, selection=None):
        self.trajectory_calls.append((subject, format, frames, selection))
        if self.gate is not None:
            assert self.gate.wait(5)
        if self.error is not None:
            raise self.error
        return self.trajectory


def test_decode_structure_payload_variants(caplog) -> None:
    assert decode_structure_payload("ATOM") == "ATOM"
    assert decode_structure_payload(b"ATOM") == "ATOM"
    assert decode_structure_payload(bytearray(b"HETATM")) == "HETATM"
    with caplog.at_level(logging.ERROR):
        assert decode_structure_payload(b"\xff\xfe\xfa") == ""
        assert decode_structure_payload(12) == ""
    assert "Failed to decode structure payload" in caplog.text


def test_structure_loader_disabled_without_subject() -> None:
    client = _FakeClient()
    loader = StructureLoader(ResourceCache(), client)

    result = loader.load(None)

    assert result.value is None
    assert not result.is_loading
    assert result.error is None
    assert not result.enabled
    assert client.structure_calls == []


def test_structure_loader_reports_loading_then_value() -> None:
    gate = threading.Event()
    client = _FakeClient(gate=gate)
    with ThreadPoolExecutor(max_workers=2) as executor:
        loader = StructureLoader(ResourceCache(submit=executor.submit), client)
        pending = loader.load("P1")
        assert pending.value is None
        assert pending.is_loading
        gate.set()
        loader.fetch("P1").result(timeout=5)

    ready = loader.load("P1")
    assert not ready.is_loading
    assert ready.value == StructurePayload(
        subject="P1", text=">atom list", format=MODEL_FORMAT, label=f"P1.{MODEL_FORMAT}"
    )
    assert client.structure_calls == [("P1", None)]


def test_structure_loader_passes_selection_and_keys_by_it() -> None:
    client = _FakeClient()
    cache = ResourceCache()
    loader = StructureLoader(cache, client)

    loader.load("P1", selection="protein")
    loader.load("P1")

    assert client.structure_calls == [("P1", "protein"), ("P1", None)]
    assert structure_key("P1", "protein") in cache
    assert structure_key("P1") in cache


def test_loader_releases_previous_key() -> None:
    cache = ResourceCache()
    loader = StructureLoader(cache, _FakeClient())
    loader.load("P1")
    assert cache.get(structure_key("P1")).observers == 1
    loader.load("P2")
    assert cache.get(structure_key("P1")).observers == 0
    assert cache.get(structure_key("P2")).observers == 1
    loader.close()
    assert cache.get(structure_key("P2")).observers == 0


def test_trajectory_loader_disabled_without_request() -> None:
    client = _FakeClient()
    loader = TrajectoryLoader(ResourceCache(), client)

    assert loader.load("P1", None).value is None
    assert loader.load(None, TrajectoryRequest(frame_range="0-10")).value is None
    assert client.trajectory_calls == []


def test_trajectory_loader_normalizes_empty_fields() -> None:
    client = _FakeClient()
    loader = TrajectoryLoader(ResourceCache(), client)

    result = loader.load("P1", TrajectoryRequest(frame_range="", selection="protein"))

    assert client.trajectory_calls == [("P1", COORDINATE_FORMAT, None, "protein")]
    assert result.value.data == b"\x01\x02"
    assert result.value.label == f"P1.{COORDINATE_FORMAT}"


def test_trajectory_round_trip_uses_cache() -> None:
    now = [0.0]
    client = _FakeClient()
    cache = ResourceCache(clock=lambda: now[0])
    request = TrajectoryRequest(frame_range="0-100", selection="protein")

    first = TrajectoryLoader(cache, client).load("P1", request)
    now[0] = 10 * 24 * 3600.0
    second = TrajectoryLoader(cache, client).load("P1", TrajectoryRequest("0-100", "protein"))

    assert second.value == first.value
    assert len(client.trajectory_calls) == 1
    assert trajectory_key("P1", request) == ("trajectory", "P1", "0-100", "protein", "xtc")


def test_trajectory_failure_is_reported_not_retried() -> None:
    client = _FakeClient(error=FetchError("fetch_failed", "connection reset"))
    loader = TrajectoryLoader(ResourceCache(), client)
    request = TrajectoryRequest(frame_range="0-100", selection="protein")

    result = loader.load("P1", request)
    again = loader.load("P1", request)

    assert isinstance(result.error, FetchError)
    assert result.value is None
    assert not result.is_loading
    assert again.error is result.error
    assert len(client.trajectory_calls) == 1


def test_trajectory_refetch_starts_new_generation() -> None:
    client = _FakeClient(error=FetchError("fetch_failed", "connection reset"))
    loader = TrajectoryLoader(ResourceCache(), client)
    request = TrajectoryRequest(frame_range="0-100")
    failed = loader.load("P1", request)

    client.error = None
    retried = loader.refetch("P1", request)

    assert retried.generation == failed.generation + 1
    assert retried.error is None
    assert retried.value.data == b"\x01\x02"


def test_structure_fetch_future_raises_fetch_error() -> None:
    class _Broken(_FakeClient):
        def fetch_structure(self, subject, selection=None):
            raise FetchError("not_found", "Not found")

    loader = StructureLoader(ResourceCache(), _Broken())
    with pytest.raises(FetchError, match="Not found"):
        loader.fetch("P404").result()


def test_cached_loader_requires_producer() -> None:
    with pytest.raises(TypeError):
        CachedLoader(ResourceCache())


def test_failed_structure_refetched_when_key_observed_again() -> None:
    cache = ResourceCache()

    class _Flaky(_FakeClient):
        fail = True

        def fetch_structure(self, subject, selection=None):
            self.structure_calls.append((subject, selection))
            if self.fail:
                raise FetchError("fetch_failed", "connection reset")
            return self.structure

    flaky = _Flaky()
    first = StructureLoader(cache, flaky)
    assert isinstance(first.load("P1").error, FetchError)
    assert isinstance(first.load("P1").error, FetchError)
    assert len(flaky.structure_calls) == 1

    flaky.fail = False
    second = StructureLoader(cache, flaky)
    result = second.load("P1")

    assert result.error is None
    assert result.value.text == ">atom list"
    assert len(flaky.structure_calls) == 2
