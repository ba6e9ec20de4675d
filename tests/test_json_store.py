import asyncio
import json

from dealer_yard.infrastructure.storage.json_store import JsonFileDocumentStore


def test_writes_are_persisted_and_reloaded(tmp_path):
    path = tmp_path / "nested" / "store.json"
    store = JsonFileDocumentStore(path)

    asyncio.run(store.set("yardstock/frankston/FR1", {"chassis": "FR1", "model": "SRC21"}))

    on_disk = json.loads(path.read_text(encoding="utf-8"))
    assert on_disk == {"yardstock": {"frankston": {"FR1": {"chassis": "FR1", "model": "SRC21"}}}}
    reopened = JsonFileDocumentStore(path)
    assert asyncio.run(reopened.get("yardstock/frankston/FR1/model")) == "SRC21"


def test_remove_prunes_empty_branches(tmp_path):
    path = tmp_path / "store.json"
    store = JsonFileDocumentStore(path)
    asyncio.run(store.set("handover/frankston/FR1", {"chassis": "FR1"}))
    asyncio.run(store.set("pgirecord/FR2", {"dealer": "Frankston"}))

    asyncio.run(store.remove("handover/frankston/FR1"))

    assert json.loads(path.read_text(encoding="utf-8")) == {"pgirecord": {"FR2": {"dealer": "Frankston"}}}


def test_setting_none_removes(tmp_path):
    store = JsonFileDocumentStore(tmp_path / "store.json")
    asyncio.run(store.set("tierConfig", {"shareTargets": {"A1": 0.5}}))

    asyncio.run(store.set("tierConfig", None))

    assert asyncio.run(store.get("tierConfig")) is None


def test_unreadable_file_starts_empty(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("{not json", encoding="utf-8")

    store = JsonFileDocumentStore(path)

    assert store.snapshot() == {}
    assert store.path == path


def test_subscribers_see_writes_below_and_above_their_path(tmp_path):
    store = JsonFileDocumentStore(tmp_path / "store.json")
    seen = []
    store.subscribe("yardstock/frankston", seen.append)

    asyncio.run(store.set("yardstock/frankston/FR1", {"chassis": "FR1"}))
    asyncio.run(store.set("yardstock", {"frankston": {}}))
    asyncio.run(store.set("yardstock/geelong/G1", {"chassis": "G1"}))

    assert seen == [None, {"FR1": {"chassis": "FR1"}}, {}]
