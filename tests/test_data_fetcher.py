"""
Tests for Fetcher.

**Purpose**: Verify cache selection, the single decoding fallback and
container decompression.
"""

import gzip
import io
import tempfile
import zipfile

import pytest

from src.config.settings import CacheSettings, Settings
from src.data.fetcher import Fetcher, decompress_in_place, detect_container
from src.data.schemas import Resource
from src.utils.errors import CacheIOError, ContentDecodingFailure, FetchFailure, ServerError

URL = "https://download.bls.gov/pub/time.series/la/la.area"
TEXT = "area_type_code\tarea_code\narea\tST0100000000000\n"


def gzip_bytes(text):
    return gzip.compress(text.encode("utf-8"))


def zip_bytes(text, member="la.area"):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr(member, text)
    return buffer.getvalue()


def test_plain_payload_returned_untouched(transport, uncached_settings):
    transport.serve(URL, TEXT)
    fetcher = Fetcher(transport, settings=uncached_settings)

    path = fetcher.fetch(Resource(URL))

    assert path.read_text() == TEXT
    fetcher.cache_store.release(path)


def test_default_follows_settings_flag(transport, cached_settings, tmp_path):
    """use_cache=None with USE_BLS_CACHE on writes into the cache directory."""
    transport.serve(URL, TEXT)
    fetcher = Fetcher(transport, settings=cached_settings)

    path = fetcher.fetch(Resource(URL))

    assert path.parent == tmp_path / "cache"
    assert transport.probes == [URL]


def test_explicit_use_cache_false_overrides_settings(transport, cached_settings, tmp_path):
    transport.serve(URL, TEXT)
    fetcher = Fetcher(transport, settings=cached_settings)

    path = fetcher.fetch(Resource(URL), use_cache=False)

    assert path.parent != tmp_path / "cache"
    assert transport.probes == []
    assert fetcher.cache_store.release(path)


def test_gzip_payload_is_decompressed(transport, uncached_settings):
    transport.serve(URL, gzip_bytes(TEXT))
    fetcher = Fetcher(transport, settings=uncached_settings)

    path = fetcher.fetch(Resource(URL))

    assert path.read_text() == TEXT


def test_zip_payload_uses_first_member(transport, uncached_settings):
    transport.serve(URL, zip_bytes(TEXT))
    fetcher = Fetcher(transport, settings=uncached_settings)

    path = fetcher.fetch(Resource(URL))

    assert path.read_text() == TEXT


def test_container_without_fallback_raises(transport, uncached_settings):
    """allow_fallback=False refuses to decompress."""
    transport.serve(URL, gzip_bytes(TEXT))
    fetcher = Fetcher(transport, settings=uncached_settings)

    with pytest.raises(FetchFailure, match="gzip container"):
        fetcher.fetch(Resource(URL), allow_fallback=False)


@pytest.fixture
def scratch_tmp(tmp_path, monkeypatch):
    """Route one-shot downloads into a directory the test can inspect."""
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(scratch))
    return scratch


def test_refused_container_releases_temp_download(transport, uncached_settings, scratch_tmp):
    """An uncached download is removed when its container is refused."""
    transport.serve(URL, gzip_bytes(TEXT))
    fetcher = Fetcher(transport, settings=uncached_settings)

    with pytest.raises(FetchFailure, match="gzip container"):
        fetcher.fetch(Resource(URL), allow_fallback=False)

    assert list(scratch_tmp.iterdir()) == []
    assert fetcher.cache_store._temp_dirs == set()


def test_corrupt_container_releases_temp_download(transport, uncached_settings, scratch_tmp):
    """A payload that fails to decompress leaves no temporary directory behind."""
    transport.serve(URL, b"\x1f\x8b\x08\x00garbage")
    fetcher = Fetcher(transport, settings=uncached_settings)

    with pytest.raises(ContentDecodingFailure):
        fetcher.fetch(Resource(URL))

    assert list(scratch_tmp.iterdir()) == []
    assert fetcher.cache_store._temp_dirs == set()


def test_corrupt_container_keeps_cached_file(transport, cached_settings, tmp_path):
    """Cached payloads are not deleted by a failed decompression."""
    transport.serve(URL, b"\x1f\x8b\x08\x00garbage")
    fetcher = Fetcher(transport, settings=cached_settings)

    with pytest.raises(ContentDecodingFailure):
        fetcher.fetch(Resource(URL))

    assert (tmp_path / "cache").is_dir()
    assert any((tmp_path / "cache").iterdir())


def test_raw_skips_container_detection(transport, uncached_settings):
    """Binary documents such as .xlsx are zip files and must stay intact."""
    payload = zip_bytes("<workbook/>", member="xl/workbook.xml")
    transport.serve(URL, payload)
    fetcher = Fetcher(transport, settings=uncached_settings)

    path = fetcher.fetch(Resource(URL), raw=True)

    assert path.read_bytes() == payload


def test_decoding_failure_retries_with_identity_encoding(transport, uncached_settings):
    """One fallback request is made, asking for an unencoded body."""
    transport.serve(URL, TEXT)
    transport.download_errors[URL] = [ContentDecodingFailure("bad deflate", resource=URL)]
    fetcher = Fetcher(transport, settings=uncached_settings)

    path = fetcher.fetch(Resource(URL))

    assert path.read_text() == TEXT
    assert len(transport.downloads) == 2
    assert transport.downloads[0][1] == {}
    assert transport.downloads[1][1] == {"Accept-Encoding": "identity"}


def test_failed_fallback_reraises_original_error(transport, uncached_settings):
    """When the fallback also fails, the caller sees the first error."""
    original = ContentDecodingFailure("bad deflate", resource=URL)
    transport.serve(URL, TEXT)
    transport.download_errors[URL] = [original, ServerError("503", resource=URL, status_code=503)]
    fetcher = Fetcher(transport, settings=uncached_settings)

    with pytest.raises(ContentDecodingFailure) as excinfo:
        fetcher.fetch(Resource(URL))

    assert excinfo.value is original
    assert isinstance(excinfo.value.__cause__, ServerError)
    assert len(transport.downloads) == 2


def test_decoding_failure_without_fallback_raises(transport, uncached_settings):
    transport.serve(URL, TEXT)
    transport.download_errors[URL] = [ContentDecodingFailure("bad deflate", resource=URL)]
    fetcher = Fetcher(transport, settings=uncached_settings)

    with pytest.raises(ContentDecodingFailure):
        fetcher.fetch(Resource(URL), allow_fallback=False)

    assert len(transport.downloads) == 1


def test_env_default_cache_failure_downgrades_to_uncached(transport, tmp_path):
    """Caching switched on by the environment never breaks a fetch."""
    blocker = tmp_path / "file"
    blocker.write_text("x")
    settings = Settings(cache=CacheSettings(cache_dir=blocker / "cache", use_cache=True))
    transport.serve(URL, TEXT)
    fetcher = Fetcher(transport, settings=settings)

    path = fetcher.fetch(Resource(URL))

    assert path.read_text() == TEXT
    assert fetcher.cache_store.release(path)


def test_explicit_cache_failure_raises(transport, tmp_path):
    """Caching requested explicitly surfaces CacheIOError."""
    blocker = tmp_path / "file"
    blocker.write_text("x")
    settings = Settings(cache=CacheSettings(cache_dir=blocker / "cache", use_cache=False))
    transport.serve(URL, TEXT)
    fetcher = Fetcher(transport, settings=settings)

    with pytest.raises(CacheIOError):
        fetcher.fetch(Resource(URL), use_cache=True)


def test_detect_container(tmp_path):
    plain = tmp_path / "plain"
    plain.write_text(TEXT)
    packed = tmp_path / "packed"
    packed.write_bytes(gzip_bytes(TEXT))

    assert detect_container(plain) is None
    assert detect_container(packed) == "gzip"


def test_corrupt_gzip_raises_decoding_failure(tmp_path):
    path = tmp_path / "broken"
    path.write_bytes(b"\x1f\x8b\x08\x00garbage")

    with pytest.raises(ContentDecodingFailure):
        decompress_in_place(path, "gzip")

    assert not (tmp_path / "broken.inflate").exists()
