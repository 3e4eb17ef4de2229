"""Loading cached container images onto the node."""
import logging
import os
import posixpath
from typing import Iterable

from . import constants
from .assets import FileAsset

logger = logging.getLogger("kubeboot.kubeadm.images")


def cached_image_path(cache_dir: str, image: str) -> str:
    """Return where an image tarball is cached locally."""
    return os.path.join(cache_dir, image.replace(":", "_"))


def load_from_cache(runner, src: str) -> None:
    """Copy one cached image tarball to the node and load it into docker.

    Raises:
        FileNotFoundError: If the tarball is not cached
        ExecError: If the copy or load fails
    """
    filename = os.path.basename(src)
    dst = posixpath.join(constants.TEMP_LOAD_DIR, filename)
    logger.info(f"Loading image from cache at {src}")

    runner.copy(FileAsset(src, constants.TEMP_LOAD_DIR, filename, "0777"))
    runner.run(f"docker load -i {dst}")
    runner.run(f"sudo rm -rf {dst}")


def load_images(runner, images: Iterable[str], cache_dir: str) -> None:
    """Load every listed image from the local cache, one at a time."""
    for image in images:
        load_from_cache(runner, cached_image_path(cache_dir, image))
