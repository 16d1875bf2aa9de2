"""Tests for the batch scheduler."""

import hashlib
import random
import threading
import time

import pytest

from photosweep.errors import PermissionDenied
from photosweep.features import Ok, Skip
from photosweep.filesystem import PhotoAsset
from photosweep.scheduler import run_scan
from tests.conftest import InMemoryGallery, make_features


def digest_extractor(data: bytes):
    """Fake extractor whose features identify the bytes they came from"""
    time.sleep(random.uniform(0, 0.005))
    return Ok(make_features(digest=hashlib.md5(data).digest()))


def make_gallery(count: int) -> InMemoryGallery:
    gallery = InMemoryGallery()
    for i in range(count):
        gallery.add(f"asset-{i:02d}", f"payload-{i}".encode(), created_at=float(i))
    return gallery


def test_results_are_matched_to_their_asset_and_keep_order():
    gallery = make_gallery(25)
    assets = gallery.list_assets()

    report = run_scan(gallery, assets, digest_extractor, batch_size=4)

    assert not report.cancelled
    assert [a.asset_id for a, _ in report.results] == [a.asset_id for a in assets]
    for asset, features in report.results:
        assert features.digest == hashlib.md5(gallery.photos[asset.asset_id][1]).digest()


def test_progress_is_reported_after_each_batch():
    gallery = make_gallery(25)
    calls = []
    run_scan(
        gallery,
        gallery.list_assets(),
        digest_extractor,
        batch_size=10,
        progress=lambda done, total: calls.append((done, total)),
    )
    assert calls == [(10, 25), (20, 25), (25, 25)]


def test_concurrency_is_bounded():
    gallery = make_gallery(30)
    lock = threading.Lock()
    active = [0]
    peak = [0]

    def extractor(data):
        with lock:
            active[0] += 1
            peak[0] = max(peak[0], active[0])
        time.sleep(0.01)
        with lock:
            active[0] -= 1
        return Ok(make_features())

    run_scan(gallery, gallery.list_assets(), extractor, batch_size=10, max_workers=3)
    assert 1 <= peak[0] <= 3


def test_failures_become_skips():
    gallery = make_gallery(6)
    gallery.missing.add("asset-01")

    def extractor(data):
        if data == b"payload-2":
            return Skip(kind="decode_error", reason="broken")
        if data == b"payload-4":
            raise RuntimeError("unexpected")
        return Ok(make_features())

    report = run_scan(gallery, gallery.list_assets(), extractor, batch_size=2)

    assert [a.asset_id for a, _ in report.results] == ["asset-00", "asset-03", "asset-05"]
    skipped = {s.asset_id: s.kind for s in report.skipped}
    assert skipped == {
        "asset-01": "not_found",
        "asset-02": "decode_error",
        "asset-04": "error",
    }
    assert report.processed == 6


def test_cancel_between_batches():
    gallery = make_gallery(20)
    cancel = threading.Event()

    report = run_scan(
        gallery,
        gallery.list_assets(),
        digest_extractor,
        batch_size=5,
        cancel_event=cancel,
        progress=lambda done, total: cancel.set(),
    )

    assert report.cancelled
    assert report.processed == 5
    assert len(gallery.fetched) == 5


def test_permission_denied_while_fetching_is_fatal():
    class LockedGallery(InMemoryGallery):
        def fetch_bytes(self, asset_id):
            raise PermissionDenied("revoked")

    gallery = LockedGallery()
    assets = [PhotoAsset(asset_id="x", created_at=0.0)]
    with pytest.raises(PermissionDenied):
        run_scan(gallery, assets, digest_extractor)


def test_empty_asset_list():
    report = run_scan(InMemoryGallery(), [], digest_extractor)
    assert report.results == [] and report.skipped == [] and report.total == 0
