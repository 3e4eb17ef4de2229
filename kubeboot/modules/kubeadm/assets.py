"""Files staged onto the node and add-on discovery."""
import logging
import os
import posixpath
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Union

logger = logging.getLogger("kubeboot.kubeadm.assets")


class CopyableFile:
    """A file that a command runner can copy onto the target host."""

    def __init__(self, target_dir: str, target_name: str, permissions: str):
        self.target_dir = target_dir
        self.target_name = target_name
        self.permissions = permissions

    @property
    def target_path(self) -> str:
        return posixpath.join(self.target_dir, self.target_name)

    @property
    def mode(self) -> int:
        return int(self.permissions, 8)

    def read(self) -> bytes:
        raise NotImplementedError

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(target={self.target_path!r}, "
                f"permissions={self.permissions!r})")


class MemoryAsset(CopyableFile):
    """Content held in memory, written to a fixed path on the host."""

    def __init__(self, content: Union[str, bytes], target_path: str, permissions: str):
        target_dir, target_name = posixpath.split(target_path)
        super().__init__(target_dir, target_name, permissions)
        self.content = content.encode('utf-8') if isinstance(content, str) else content

    def read(self) -> bytes:
        return self.content


class FileAsset(CopyableFile):
    """A local file copied to the host."""

    def __init__(self, source_path: str, target_dir: str, target_name: str, permissions: str):
        if not os.path.isfile(source_path):
            raise FileNotFoundError(f"Asset source not found: {source_path}")
        super().__init__(target_dir, target_name, permissions)
        self.source_path = source_path

    def read(self) -> bytes:
        with open(self.source_path, 'rb') as f:
            return f.read()


@dataclass
class AddonBundle:
    """A named set of add-on manifests guarded by an enablement check."""
    name: str
    assets: List[CopyableFile] = field(default_factory=list)
    is_enabled: Callable[[], bool] = lambda: False


class AddonManager:
    """Collects add-on files to stage with the cluster configuration.

    User add-ons are read from ``addons_dir``; a failure walking that
    directory aborts collection. A bundle whose enablement check fails is
    treated as disabled.
    """

    def __init__(
        self,
        addons_dir: Optional[str] = None,
        bundles: Optional[List[AddonBundle]] = None,
        target_dir: str = "/etc/kubernetes/addons"
    ):
        self.addons_dir = addons_dir
        self.bundles = bundles or []
        self.target_dir = target_dir

    def _dir_assets(self) -> List[CopyableFile]:
        if not self.addons_dir or not os.path.isdir(self.addons_dir):
            return []

        def _raise(err: OSError) -> None:
            raise err

        files: List[CopyableFile] = []
        for root, _, names in os.walk(self.addons_dir, onerror=_raise):
            rel = os.path.relpath(root, self.addons_dir)
            target_dir = self.target_dir
            if rel != os.curdir:
                target_dir = posixpath.join(self.target_dir, *rel.split(os.sep))
            for name in sorted(names):
                files.append(FileAsset(os.path.join(root, name), target_dir, name, "0640"))
        return files

    def collect(self) -> List[CopyableFile]:
        """Return the files of user add-ons and enabled bundled add-ons.

        Raises:
            OSError: If the user add-on directory cannot be read
        """
        files = self._dir_assets()
        for bundle in self.bundles:
            try:
                enabled = bundle.is_enabled()
            except Exception as e:
                logger.warning(f"Could not determine whether addon {bundle.name} is enabled: {e}")
                continue
            if enabled:
                logger.debug(f"Adding {len(bundle.assets)} assets for addon {bundle.name}")
                files.extend(bundle.assets)
        return files
