"""Download and cache of Kubernetes release binaries."""
import hashlib
import logging
import os
import tempfile
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, Iterable, Optional

import requests

from kubeboot.config import Config

from . import constants
from .errors import DownloadError

logger = logging.getLogger("kubeboot.kubeadm.cache")

CHUNK_SIZE = 1024 * 1024


class Downloader:
    """Verified HTTP download primitive.

    The file is streamed to a temporary name next to ``path`` and only renamed
    onto ``path`` once its checksum matches, so ``path`` never holds a partial
    or unverified file.
    """

    def __init__(self, timeout: Optional[int] = None, session: Optional[requests.Session] = None):
        self.timeout = timeout or Config.DOWNLOAD_TIMEOUT
        self.session = session or requests.Session()

    def resolve_checksum(self, checksum: str) -> str:
        """Return the hex digest, fetching it first when ``checksum`` is a URL."""
        if not checksum.startswith(("http://", "https://")):
            return checksum.strip().lower()
        response = self.session.get(checksum, timeout=self.timeout)
        response.raise_for_status()
        text = response.text.strip()
        if not text:
            raise ValueError(f"empty checksum at {checksum}")
        return text.split()[0].lower()

    def to_file(self, url: str, path: str, checksum: str, hash_name: str = "sha1") -> None:
        """Download ``url`` to ``path`` and verify it.

        Args:
            url: Source URL
            path: Final destination
            checksum: Expected hex digest, or a URL serving it
            hash_name: hashlib algorithm name

        Raises:
            requests.RequestException: If the transfer fails
            ValueError: If the checksum does not match
        """
        expected = self.resolve_checksum(checksum)
        target_dir = os.path.dirname(os.path.abspath(path))
        os.makedirs(target_dir, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=target_dir, prefix=f".{os.path.basename(path)}.")
        try:
            digest = hashlib.new(hash_name)
            with os.fdopen(fd, 'wb') as tmp:
                with self.session.get(url, stream=True, timeout=self.timeout) as response:
                    response.raise_for_status()
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            tmp.write(chunk)
                            digest.update(chunk)

            actual = digest.hexdigest()
            if actual != expected:
                raise ValueError(f"{hash_name} checksum mismatch for {url}: expected {expected}, got {actual}")

            os.chmod(tmp_path, 0o755)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


class BinaryCache:
    """Versioned on-disk cache of kubelet/kubeadm binaries.

    Layout is ``<cache_dir>/<version>/<binary>``. A present entry is trusted
    without re-verification.
    """

    def __init__(
        self,
        cache_dir: Optional[str] = None,
        downloader: Optional[Downloader] = None,
        arch: Optional[str] = None,
        max_workers: Optional[int] = None
    ):
        self.cache_dir = cache_dir or Config.CACHE_DIR
        self.downloader = downloader or Downloader()
        self.arch = arch
        self.max_workers = max_workers or Config.DOWNLOAD_WORKERS

    def cache_path(self, binary: str, version: str) -> str:
        return os.path.join(self.cache_dir, version, binary)

    def maybe_download_and_cache(self, binary: str, version: str) -> str:
        """Return the cached path of a binary, downloading it if needed.

        Raises:
            DownloadError: If the binary cannot be fetched or verified
        """
        target_dir = os.path.join(self.cache_dir, version)
        target_path = os.path.join(target_dir, binary)

        if os.path.exists(target_path):
            logger.debug(f"Using cached {binary} {version} at {target_path}")
            return target_path

        try:
            os.makedirs(target_dir, exist_ok=True)
        except OSError as e:
            raise DownloadError(f"mkdir {target_dir}: {e}", binary=binary, version=version) from e

        url = constants.kubernetes_release_url(binary, version, self.arch)
        checksum_url = constants.kubernetes_release_sha1_url(binary, version, self.arch)

        logger.info(f"Downloading {binary} {version}")
        try:
            self.downloader.to_file(url, target_path, checksum_url, hash_name="sha1")
        except Exception as e:
            raise DownloadError(
                f"Error downloading {binary} {version}: {e}", binary=binary, version=version
            ) from e
        logger.info(f"Finished downloading {binary} {version}")

        return target_path

    def fetch_binaries(self, binaries: Iterable[str], version: str) -> Dict[str, str]:
        """Fetch several binaries concurrently.

        All fetches run to completion; the first failure observed is raised.

        Returns:
            dict: binary name to cached path

        Raises:
            DownloadError: If any fetch fails
        """
        binaries = list(binaries)
        paths: Dict[str, str] = {}
        first_error: Optional[DownloadError] = None

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(binaries)) or 1,
                                thread_name_prefix="kubeboot-download") as executor:
            future_to_binary = {
                executor.submit(self.maybe_download_and_cache, binary, version): binary
                for binary in binaries
            }

            for future in as_completed(future_to_binary):
                binary = future_to_binary[future]
                try:
                    paths[binary] = future.result()
                except DownloadError as e:
                    logger.error(f"Failed to fetch {binary} {version}: {e}")
                    if first_error is None:
                        first_error = e

        if first_error is not None:
            raise first_error
        return paths
