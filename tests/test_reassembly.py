"""Tests for chunk reassembly and the recording service around it"""
import io
import os
import random
from concurrent.futures import ThreadPoolExecutor

import pytest

from chunked_recorder.core import (
    MissingChunksError,
    NoChunksFoundError,
    Settings,
    StorageError,
    ValidationError,
)
from chunked_recorder.services import RecordingService


def chunk_bytes(index: int, size: int) -> bytes:
    return bytes([index % 256]) * size


def test_out_of_order_upload_reassembles_in_index_order(service, settings):
    chunks = {0: chunk_bytes(0, 10), 1: chunk_bytes(1, 20), 2: chunk_bytes(2, 30)}
    for index in (2, 0, 1):
        service.upload_chunk("s1", index, io.BytesIO(chunks[index]))

    result = service.finalize_recording("s1", 3)

    assert result.artifact_path == settings.FINAL_DIR / "s1.webm"
    assert result.artifact_path.read_bytes() == chunks[0] + chunks[1] + chunks[2]
    assert result.size_bytes == 60
    assert result.chunk_count == 3
    assert result.missing == []
    assert service.sessions.get("s1") is None
    assert not (settings.CHUNKS_DIR / "s1").exists()


def test_any_arrival_order_gives_same_artifact(service):
    chunks = [os.urandom(random.randint(1, 64)) for _ in range(25)]
    order = list(range(len(chunks)))
    random.Random(7).shuffle(order)

    for index in order:
        service.upload_chunk("shuffled", index, io.BytesIO(chunks[index]))
    result = service.finalize_recording("shuffled", len(chunks))

    assert result.artifact_path.read_bytes() == b"".join(chunks)


def test_concurrent_uploads_for_one_session(service):
    chunks = [os.urandom(32) for _ in range(40)]

    with ThreadPoolExecutor(max_workers=8) as executor:
        results = list(executor.map(
            lambda i: service.upload_chunk("parallel", i, io.BytesIO(chunks[i])),
            reversed(range(len(chunks))),
        ))

    assert max(r.received_count for r in results) == 40
    assert service.sessions.get("parallel").received_count == 40
    result = service.finalize_recording("parallel", len(chunks))
    assert result.artifact_path.read_bytes() == b"".join(chunks)


def test_reupload_replaces_chunk_contribution(service):
    service.upload_chunk("s1", 0, io.BytesIO(b"AAAA"))
    service.upload_chunk("s1", 1, io.BytesIO(b"stale"))
    service.upload_chunk("s1", 1, io.BytesIO(b"BB"))

    result = service.finalize_recording("s1", 2)

    assert result.artifact_path.read_bytes() == b"AAAABB"


def test_no_chunks_found_does_not_touch_filesystem(service, settings):
    before = sorted(p.relative_to(settings.DATA_ROOT) for p in settings.DATA_ROOT.rglob("*"))

    with pytest.raises(NoChunksFoundError):
        service.finalize_recording("ghost", 3)

    after = sorted(p.relative_to(settings.DATA_ROOT) for p in settings.DATA_ROOT.rglob("*"))
    assert before == after


def test_zero_expected_chunks_finds_nothing(service):
    service.upload_chunk("s1", 0, io.BytesIO(b"data"))

    with pytest.raises(NoChunksFoundError):
        service.finalize_recording("s1", 0)
    assert service.chunk_store.stored_indices("s1") == [0]


def test_missing_chunks_are_skipped_by_default(service):
    service.upload_chunk("gappy", 0, io.BytesIO(b"zero"))
    service.upload_chunk("gappy", 2, io.BytesIO(b"two"))

    result = service.finalize_recording("gappy", 4)

    assert result.artifact_path.read_bytes() == b"zerotwo"
    assert result.missing == [1, 3]
    assert result.chunk_count == 2


def test_missing_chunks_rejected_in_strict_mode(tmp_path):
    strict = RecordingService.from_settings(
        Settings(DATA_ROOT=tmp_path / "strict", ALLOW_MISSING_CHUNKS=False)
    )
    strict.prepare_storage()
    strict.upload_chunk("gappy", 0, io.BytesIO(b"zero"))
    strict.upload_chunk("gappy", 2, io.BytesIO(b"two"))

    with pytest.raises(MissingChunksError) as excinfo:
        strict.finalize_recording("gappy", 3)

    assert excinfo.value.missing == [1]
    assert strict.chunk_store.stored_indices("gappy") == [0, 2]
    assert not strict.engine.artifact_path("gappy").exists()

    strict.upload_chunk("gappy", 1, io.BytesIO(b"one"))
    result = strict.finalize_recording("gappy", 3)
    assert result.artifact_path.read_bytes() == b"zeroonetwo"


def test_write_failure_keeps_chunks_for_retry(service, settings, monkeypatch):
    service.upload_chunk("s1", 0, io.BytesIO(b"abc"))
    service.upload_chunk("s1", 1, io.BytesIO(b"def"))

    real_replace = os.replace

    def failing_replace(src, dst):
        if str(dst).endswith("s1.webm"):
            raise OSError("disk full")
        return real_replace(src, dst)

    monkeypatch.setattr("chunked_recorder.services.reassembly.os.replace", failing_replace)
    with pytest.raises(StorageError):
        service.finalize_recording("s1", 2)

    assert service.chunk_store.stored_indices("s1") == [0, 1]
    assert service.sessions.get("s1") is not None
    assert list(settings.FINAL_DIR.iterdir()) == []

    monkeypatch.setattr("chunked_recorder.services.reassembly.os.replace", real_replace)
    result = service.finalize_recording("s1", 2)
    assert result.artifact_path.read_bytes() == b"abcdef"


def test_second_finalize_reports_already_finalized(service):
    service.upload_chunk("s1", 0, io.BytesIO(b"only"))
    first = service.finalize_recording("s1", 1)
    second = service.finalize_recording("s1", 1)

    assert not first.already_finalized
    assert second.already_finalized
    assert second.size_bytes == 4
    assert second.artifact_path.read_bytes() == b"only"


def test_concurrent_duplicate_finalize_reassembles_once(service, monkeypatch):
    chunks = [os.urandom(128) for _ in range(20)]
    for index, data in enumerate(chunks):
        service.upload_chunk("race", index, io.BytesIO(data))

    purges = []
    real_purge = service.chunk_store.purge

    def counting_purge(session_id):
        purges.append(session_id)
        real_purge(session_id)

    monkeypatch.setattr(service.chunk_store, "purge", counting_purge)

    with ThreadPoolExecutor(max_workers=6) as executor:
        results = list(executor.map(lambda _: service.finalize_recording("race", 20), range(6)))

    assert purges == ["race"]
    assert sum(not r.already_finalized for r in results) == 1
    assert all(r.artifact_path.read_bytes() == b"".join(chunks) for r in results)


def test_refinalize_replaces_artifact(service):
    service.upload_chunk("s1", 0, io.BytesIO(b"v1"))
    service.finalize_recording("s1", 1)

    service.upload_chunk("s1", 0, io.BytesIO(b"version2"))
    result = service.finalize_recording("s1", 1)

    assert not result.already_finalized
    assert result.artifact_path.read_bytes() == b"version2"


@pytest.mark.parametrize("total_chunks", [-1, "3", None, True, 1_000_001, 10 ** 9])
def test_finalize_rejects_bad_counts(service, total_chunks):
    with pytest.raises(ValidationError):
        service.finalize_recording("s1", total_chunks)


def test_prepare_storage_reports_orphans(settings):
    first = RecordingService.from_settings(settings)
    first.prepare_storage()
    first.upload_chunk("abandoned", 0, io.BytesIO(b"x"))
    (settings.TEMP_DIR / "crashed.part").write_bytes(b"half")

    restarted = RecordingService.from_settings(settings)
    orphans = restarted.prepare_storage()

    assert orphans == ["abandoned"]
    assert list(settings.TEMP_DIR.iterdir()) == []
    # Chunks survive a restart even though the tracker does not
    assert restarted.sessions.get("abandoned") is None
    assert restarted.session_progress("abandoned")["receivedChunks"] == [0]
    assert restarted.finalize_recording("abandoned", 1).artifact_path.read_bytes() == b"x"
