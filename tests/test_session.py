"""Tests for session state and the selection orchestrator."""

import threading

import pytest

from photosweep.config import EngineConfig
from photosweep.errors import PermissionDenied, ScanCancelled
from photosweep.features import Ok
from photosweep.filesystem import StorageUsage
from photosweep.session import PhotoSweeper, SessionState
from photosweep.similarity import EXACT_DUPLICATE
from tests.conftest import InMemoryGallery, encode, make_features, make_photo, noise_image


def assert_descending(selection):
    scores = [p.score for p in selection]
    assert scores == sorted(scores, reverse=True)


class TestScan:
    def test_scan_populates_table_in_gallery_order(self, noisy_gallery):
        sweeper = PhotoSweeper(noisy_gallery)
        summary = sweeper.scan()
        assert summary.total == summary.analyzed == 30
        assert summary.skipped == []
        assert [p.asset_id for p in sweeper.photos] == list(noisy_gallery.photos)

    def test_corrupt_file_among_valid_ones_is_skipped(self):
        gallery = InMemoryGallery()
        for i in range(99):
            gallery.add(f"ok-{i:03d}", encode(noise_image(i, 32)), created_at=float(i))
        gallery.add("corrupt", b"\xff\xd8\xff\xe0 not really a jpeg")

        sweeper = PhotoSweeper(gallery, EngineConfig(batch_size=16))
        summary = sweeper.scan()

        assert summary.total == 100
        assert summary.analyzed == len(sweeper.photos) == 99
        assert [s.asset_id for s in summary.skipped] == ["corrupt"]
        assert "corrupt" not in {p.asset_id for p in sweeper.photos}

    def test_permission_denied_is_surfaced(self):
        gallery = InMemoryGallery(granted=False)
        sweeper = PhotoSweeper(gallery)
        with pytest.raises(PermissionDenied):
            sweeper.scan()

    def test_empty_gallery_is_not_an_error(self, gallery):
        sweeper = PhotoSweeper(gallery)
        summary = sweeper.scan()
        assert summary.analyzed == 0
        assert len(sweeper.select()) == 0

    def test_max_assets_caps_the_scan(self, noisy_gallery):
        sweeper = PhotoSweeper(noisy_gallery, EngineConfig(max_assets=12))
        summary = sweeper.scan()
        assert summary.total == 12
        assert len(sweeper.photos) == 12

    def test_cancelled_scan_leaves_state_untouched(self, noisy_gallery):
        sweeper = PhotoSweeper(noisy_gallery)
        sweeper.scan()
        before = sweeper.photos
        first = sweeper.select(k=3)

        noisy_gallery.add("late", encode(noise_image(99)))
        cancel = threading.Event()
        with pytest.raises(ScanCancelled):
            sweeper.scan(cancel_event=cancel, progress=lambda done, total: cancel.set())

        assert sweeper.photos == before
        assert set(first.ids) <= sweeper.seen

    def test_rescan_keeps_seen_unless_reset(self, noisy_gallery):
        sweeper = PhotoSweeper(noisy_gallery)
        sweeper.scan()
        first = sweeper.select(k=5)

        sweeper.scan()
        assert set(first.ids) <= sweeper.seen
        assert not set(first.ids) & set(sweeper.select(k=5).ids)

        sweeper.scan(reset_seen=True)
        assert sweeper.seen == frozenset()

    def test_reset_clears_everything(self, noisy_gallery):
        sweeper = PhotoSweeper(noisy_gallery)
        sweeper.scan()
        sweeper.select()
        sweeper.reset()
        assert sweeper.photos == ()
        assert sweeper.seen == frozenset()


class TestSelect:
    def test_selection_respects_k_order_and_exclusions(self, noisy_gallery):
        sweeper = PhotoSweeper(noisy_gallery)
        sweeper.scan()
        excluded = ["photo-000", "photo-001", "photo-002"]

        selection = sweeper.select(excluded_ids=excluded, k=9)

        assert len(selection) == 9
        assert not set(selection.ids) & set(excluded)
        assert_descending(selection)
        assert set(selection.ids) == set(sweeper.seen)

    def test_consecutive_selections_are_disjoint(self, noisy_gallery):
        sweeper = PhotoSweeper(noisy_gallery)
        sweeper.scan()
        first = sweeper.select()
        second = sweeper.select()
        assert len(first) == len(second) == 9
        assert not set(first.ids) & set(second.ids)

    def test_selection_runs_out_of_candidates(self, noisy_gallery):
        sweeper = PhotoSweeper(noisy_gallery)
        sweeper.scan()
        sizes = [len(sweeper.select(k=9)) for _ in range(5)]
        assert sizes == [9, 9, 9, 3, 0]

    def test_selection_is_deterministic(self, noisy_gallery):
        first = PhotoSweeper(noisy_gallery)
        second = PhotoSweeper(noisy_gallery)
        first.scan()
        second.scan()
        assert first.select(excluded_ids=["photo-004"]).ids == second.select(
            excluded_ids=["photo-004"]
        ).ids

    def test_invalid_k(self, noisy_gallery):
        sweeper = PhotoSweeper(noisy_gallery)
        with pytest.raises(ValueError):
            sweeper.select(k=0)

    def test_exact_duplicates_are_selected_first(self, noisy_gallery):
        copy = encode(noise_image(500))
        noisy_gallery.add("copy-b", copy, created_at=200.0)
        noisy_gallery.add("copy-a", copy, created_at=100.0)
        noisy_gallery.add("copy-c", copy, created_at=300.0)
        sweeper = PhotoSweeper(noisy_gallery)
        sweeper.scan()

        selection = sweeper.select(k=3)

        assert selection.ids[:2] == ["copy-b", "copy-c"]
        assert all(p.mark == EXACT_DUPLICATE for p in selection.photos[:2])
        assert selection.photos[0].score == 100.0
        assert "copy-a" not in selection.ids

    def test_marked_photos_fill_before_unmarked(self):
        gallery = InMemoryGallery()
        for i in range(4):
            gallery.add(f"p{i}", f"bytes-{i}".encode(), created_at=float(i))
        # Scores 20, 0, 10 and 5 from the aesthetic term alone
        aesthetic = {b"bytes-0": 0.0, b"bytes-1": 0.5, b"bytes-2": 0.25, b"bytes-3": 0.375}
        same = b"\x42" * 16

        def extractor(data):
            # p1 and p3 share a digest, p1 is older
            digest = same if data in (b"bytes-1", b"bytes-3") else data.ljust(16, b"\0")[:16]
            fp = bytes([0, 0, 0, 0, 0, 0, 0, data[-1]])
            return Ok(make_features(digest=digest, fingerprint=fp, aesthetic=aesthetic[data]))

        config = EngineConfig(similarity_threshold=0)
        sweeper = PhotoSweeper(gallery, config, extractor=extractor)
        sweeper.scan()

        selection = sweeper.select(k=2)

        assert selection.ids == ["p3", "p0"]
        assert selection.photos[0].mark == EXACT_DUPLICATE

    def test_ties_follow_table_order(self):
        gallery = InMemoryGallery()
        for i in range(5):
            gallery.add(f"p{i}", f"bytes-{i}".encode())

        def extractor(data):
            return Ok(
                make_features(
                    digest=data.ljust(16, b"\0")[:16],
                    fingerprint=bytes([data[-1]]) * 8,
                    blur=1.0,
                )
            )

        sweeper = PhotoSweeper(gallery, EngineConfig(similarity_threshold=0), extractor=extractor)
        sweeper.scan()
        assert sweeper.select(k=3).ids == ["p0", "p1", "p2"]
        assert sweeper.select(k=3).ids == ["p3", "p4"]


class TestSessionHousekeeping:
    def test_confirm_deletion_removes_entries(self, noisy_gallery):
        sweeper = PhotoSweeper(noisy_gallery)
        sweeper.scan()
        selection = sweeper.select(k=4)

        removed = sweeper.confirm_deletion(selection.ids + ["unknown"])

        assert removed == 4
        remaining = {p.asset_id for p in sweeper.photos}
        assert not remaining & set(selection.ids)
        assert len(remaining) == 26

    def test_snapshot_is_immutable(self, noisy_gallery):
        sweeper = PhotoSweeper(noisy_gallery)
        sweeper.scan()
        snapshot = sweeper.snapshot()
        sweeper.select()
        assert snapshot.seen == frozenset()
        assert isinstance(snapshot.photos, tuple)

    def test_storage_usage(self, gallery):
        sweeper = PhotoSweeper(gallery)
        usage = sweeper.storage_usage()
        assert usage.used_space == 48 * 1024**3
        assert usage.used_percentage == pytest.approx(75.0)

    def test_storage_failure_yields_zeroed_usage(self, gallery):
        gallery.storage = None
        usage = PhotoSweeper(gallery).storage_usage()
        assert usage == StorageUsage()
        assert usage.used_percentage == 0.0

    def test_session_state_remove_and_seen(self):
        state = SessionState()
        state.replace_photos([make_photo("a", 1.0), make_photo("b", 2.0)])
        state.mark_seen(["a", "a"])
        assert state.remove(["b"]) == 1
        snapshot = state.snapshot()
        assert [p.asset_id for p in snapshot.photos] == ["a"]
        assert snapshot.seen == frozenset({"a"})
        state.clear()
        assert state.snapshot().photos == ()
