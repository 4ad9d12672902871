import os

import pytest

from processor.exceptions import UploadError
from processor.uploads import UploadManager, content_type_for, default_worker_count

from .conftest import FakeStore


def _make_tree(root, count):
    paths = []
    for i in range(count):
        sub = root / f"dir{i % 3}" / ("nested" if i % 2 else "")
        sub.mkdir(parents=True, exist_ok=True)
        p = sub / f"file{i:03d}.m4s"
        p.write_bytes(f"payload-{i}".encode())
        paths.append(p)
    return paths


@pytest.mark.parametrize("ext,expected", [
    (".m3u8", "application/vnd.apple.mpegurl"),
    (".mp4", "video/mp4"),
    (".m4s", "video/iso.segment"),
    (".m4a", "audio/mp4"),
    (".png", "image/png"),
    (".jpg", "image/jpeg"),
    (".jpeg", "image/jpeg"),
    (".JPG", "image/jpeg"),
    (".xyz", "application/octet-stream"),
    ("", "application/octet-stream"),
])
def test_content_type_table(ext, expected):
    assert content_type_for(f"some/dir/name{ext}") == expected


@pytest.mark.parametrize("workers", [1, os.cpu_count() or 2])
def test_every_file_uploaded_regardless_of_pool_size(tmp_path, workers):
    paths = _make_tree(tmp_path, 25)
    store = FakeStore()
    manager = UploadManager(store, "u1", "a1", max_workers=workers, buffer_size=4)

    count, err = manager.upload_all(tmp_path)

    assert err is None
    assert count == 25
    expected = {f"u1/a1/{p.relative_to(tmp_path).as_posix()}" for p in paths}
    assert set(store.objects) == expected
    assert all(ct == "video/iso.segment" for ct in store.content_types.values())


def test_partial_failure_names_exactly_the_failing_paths(tmp_path):
    paths = _make_tree(tmp_path, 12)
    failing = paths[::4]
    store = FakeStore(fail_keys={f"u1/a1/{p.relative_to(tmp_path).as_posix()}" for p in failing})
    manager = UploadManager(store, "u1", "a1", max_workers=3, buffer_size=2)

    count, err = manager.upload_all(tmp_path)

    assert isinstance(err, UploadError)
    assert sorted(err.paths) == sorted(str(p) for p in failing)
    assert count == len(paths) - len(failing)
    assert len(store.objects) == count
    assert f"upload errors ({len(failing)})" in str(err)


def test_queue_smaller_than_tree_does_not_deadlock(tmp_path):
    _make_tree(tmp_path, 60)
    store = FakeStore()
    manager = UploadManager(store, "u1", "a1", max_workers=2, buffer_size=1)

    count, err = manager.upload_all(tmp_path)

    assert (count, err) == (60, None)


def test_every_upload_failing_still_returns(tmp_path):
    paths = _make_tree(tmp_path, 5)
    store = FakeStore(fail_keys={f"u1/a1/{p.relative_to(tmp_path).as_posix()}" for p in paths})
    count, err = UploadManager(store, "u1", "a1", max_workers=2, buffer_size=1).upload_all(tmp_path)
    assert count == 0
    assert len(err.failures) == 5


def test_missing_root_reports_walk_error(tmp_path):
    count, err = UploadManager(FakeStore(), "u1", "a1", max_workers=2).upload_all(tmp_path / "nope")
    assert count == 0
    assert "walk error" in str(err)


def test_empty_tree(tmp_path):
    assert UploadManager(FakeStore(), "u1", "a1").upload_all(tmp_path) == (0, None)


def test_manager_can_be_reused(tmp_path):
    _make_tree(tmp_path, 3)
    manager = UploadManager(FakeStore(), "u1", "a1", max_workers=2)
    assert manager.upload_all(tmp_path) == (3, None)
    assert manager.upload_all(tmp_path) == (3, None)


def test_default_worker_count_is_bounded():
    assert 1 <= default_worker_count() <= 32
