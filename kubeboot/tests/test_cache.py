import hashlib
import os

import pytest
import requests

from kubeboot.modules.kubeadm import constants
from kubeboot.modules.kubeadm.cache import BinaryCache, Downloader
from kubeboot.modules.kubeadm.errors import DownloadError


class FakeResponse:
    def __init__(self, body, status_code=200):
        self.body = body
        self.status_code = status_code

    @property
    def text(self):
        return self.body.decode()

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.body), chunk_size):
            yield self.body[i:i + chunk_size]

    def __enter__(self):
        return self

    def __exit__(self, *args):
        return False


class FakeSession:
    """Serves fixed bodies by URL and records every request."""

    def __init__(self, bodies):
        self.bodies = bodies
        self.requested = []

    def get(self, url, stream=False, timeout=None):
        self.requested.append(url)
        if url not in self.bodies:
            return FakeResponse(b"not found", status_code=404)
        return FakeResponse(self.bodies[url])


def sha1(data):
    return hashlib.sha1(data).hexdigest()


def release(binary, version, body, checksum=None):
    url = constants.kubernetes_release_url(binary, version, "amd64")
    return {
        url: body,
        url + ".sha1": (checksum or sha1(body)).encode(),
    }


def make_cache(tmp_path, bodies):
    session = FakeSession(bodies)
    cache = BinaryCache(
        cache_dir=str(tmp_path / "cache"),
        downloader=Downloader(timeout=5, session=session),
        arch="amd64",
        max_workers=2,
    )
    return cache, session


def test_release_urls():
    assert constants.kubernetes_release_url("kubelet", "v1.13.0", "amd64") == (
        "https://storage.googleapis.com/kubernetes-release/release/v1.13.0/bin/linux/amd64/kubelet"
    )
    assert constants.kubernetes_release_sha1_url("kubeadm", "v1.13.0", "arm64").endswith(
        "/v1.13.0/bin/linux/arm64/kubeadm.sha1"
    )


def test_download_is_cached_and_idempotent(tmp_path):
    cache, session = make_cache(tmp_path, release("kubelet", "v1.13.0", b"kubelet-binary"))

    first = cache.maybe_download_and_cache("kubelet", "v1.13.0")
    transfers = len(session.requested)
    second = cache.maybe_download_and_cache("kubelet", "v1.13.0")

    assert first == second == cache.cache_path("kubelet", "v1.13.0")
    assert transfers == 2
    assert len(session.requested) == transfers
    with open(first, "rb") as f:
        assert f.read() == b"kubelet-binary"
    assert os.stat(first).st_mode & 0o777 == 0o755


def test_checksum_mismatch_leaves_no_file(tmp_path):
    cache, _ = make_cache(tmp_path, release("kubeadm", "v1.13.0", b"kubeadm", checksum="0" * 40))

    with pytest.raises(DownloadError, match="Error downloading kubeadm v1.13.0"):
        cache.maybe_download_and_cache("kubeadm", "v1.13.0")

    target = cache.cache_path("kubeadm", "v1.13.0")
    assert not os.path.exists(target)
    assert os.listdir(os.path.dirname(target)) == []


def test_http_error_is_a_download_error(tmp_path):
    cache, _ = make_cache(tmp_path, {})
    with pytest.raises(DownloadError) as exc_info:
        cache.maybe_download_and_cache("kubelet", "v1.13.0")
    assert exc_info.value.binary == "kubelet"
    assert isinstance(exc_info.value.__cause__, requests.HTTPError)


def test_checksum_literal_is_accepted(tmp_path):
    session = FakeSession({"https://example.com/tool": b"tool"})
    target = tmp_path / "tool"
    Downloader(session=session).to_file("https://example.com/tool", str(target), sha1(b"tool").upper())
    assert target.read_bytes() == b"tool"


def test_fetch_binaries_returns_paths(tmp_path):
    bodies = {}
    bodies.update(release("kubelet", "v1.13.0", b"kubelet"))
    bodies.update(release("kubeadm", "v1.13.0", b"kubeadm"))
    cache, _ = make_cache(tmp_path, bodies)

    paths = cache.fetch_binaries(["kubelet", "kubeadm"], "v1.13.0")

    assert paths == {
        "kubelet": cache.cache_path("kubelet", "v1.13.0"),
        "kubeadm": cache.cache_path("kubeadm", "v1.13.0"),
    }


def test_scenario_c_one_failed_fetch_fails_the_batch(tmp_path):
    bodies = {}
    bodies.update(release("kubelet", "1.14.0", b"kubelet"))
    bodies.update(release("kubeadm", "1.14.0", b"kubeadm", checksum=sha1(b"something else")))
    cache, _ = make_cache(tmp_path, bodies)

    with pytest.raises(DownloadError) as exc_info:
        cache.fetch_binaries(["kubelet", "kubeadm"], "1.14.0")

    assert exc_info.value.binary == "kubeadm"
    assert os.path.exists(cache.cache_path("kubelet", "1.14.0"))
    assert not os.path.exists(cache.cache_path("kubeadm", "1.14.0"))
