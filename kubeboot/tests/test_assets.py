import pytest

from kubeboot.modules.kubeadm.assets import AddonBundle, AddonManager, FileAsset, MemoryAsset
from kubeboot.modules.kubeadm.images import cached_image_path, load_images

from conftest import FakeCommandRunner


def test_memory_asset():
    asset = MemoryAsset("[Unit]\n", "/lib/systemd/system/kubelet.service", "0640")
    assert asset.target_dir == "/lib/systemd/system"
    assert asset.target_name == "kubelet.service"
    assert asset.target_path == "/lib/systemd/system/kubelet.service"
    assert asset.mode == 0o640
    assert asset.read() == b"[Unit]\n"


def test_file_asset(tmp_path):
    src = tmp_path / "kubelet"
    src.write_bytes(b"\x7fELF")
    asset = FileAsset(str(src), "/usr/bin", "kubelet", "0641")
    assert asset.target_path == "/usr/bin/kubelet"
    assert asset.read() == b"\x7fELF"


def test_file_asset_missing_source(tmp_path):
    with pytest.raises(FileNotFoundError):
        FileAsset(str(tmp_path / "missing"), "/usr/bin", "kubelet", "0641")


def test_addon_manager_collects_user_and_enabled_addons(tmp_path):
    addons_dir = tmp_path / "addons"
    (addons_dir / "nested").mkdir(parents=True)
    (addons_dir / "a.yaml").write_text("a")
    (addons_dir / "nested" / "b.yaml").write_text("b")

    dashboard = MemoryAsset("dash", "/etc/kubernetes/addons/dashboard.yaml", "0640")
    broken = MemoryAsset("x", "/etc/kubernetes/addons/broken.yaml", "0640")

    def fails():
        raise RuntimeError("config unreadable")

    manager = AddonManager(
        str(addons_dir),
        bundles=[
            AddonBundle("dashboard", [dashboard], lambda: True),
            AddonBundle("ingress", [MemoryAsset("i", "/etc/kubernetes/addons/i.yaml", "0640")]),
            AddonBundle("broken", [broken], fails),
        ],
    )

    files = manager.collect()
    paths = sorted(f.target_path for f in files)
    assert paths == [
        "/etc/kubernetes/addons/a.yaml",
        "/etc/kubernetes/addons/dashboard.yaml",
        "/etc/kubernetes/addons/nested/b.yaml",
    ]


def test_addon_manager_keeps_subdirectories_apart(tmp_path):
    for sub in ("dns", "storage"):
        (tmp_path / sub).mkdir()
        (tmp_path / sub / "deployment.yaml").write_text(sub)

    files = AddonManager(str(tmp_path), target_dir="/etc/kubernetes/addons").collect()

    assert sorted(f.target_path for f in files) == [
        "/etc/kubernetes/addons/dns/deployment.yaml",
        "/etc/kubernetes/addons/storage/deployment.yaml",
    ]
    assert sorted(f.read() for f in files) == [b"dns", b"storage"]


def test_addon_manager_without_directory(tmp_path):
    assert AddonManager(str(tmp_path / "missing")).collect() == []


def test_cached_image_path():
    assert cached_image_path("/cache/images", "k8s.gcr.io/pause:3.1") == "/cache/images/k8s.gcr.io/pause_3.1"


def test_load_images_copies_loads_and_cleans_up(tmp_path):
    image_dir = tmp_path / "k8s.gcr.io"
    image_dir.mkdir()
    (image_dir / "pause_3.1").write_bytes(b"tarball")
    runner = FakeCommandRunner()

    load_images(runner, ["k8s.gcr.io/pause:3.1"], str(tmp_path))

    assert runner.copied == [("/tmp/pause_3.1", "0777", b"tarball")]
    assert runner.commands == ["docker load -i /tmp/pause_3.1", "sudo rm -rf /tmp/pause_3.1"]


def test_load_images_missing_tarball(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_images(FakeCommandRunner(), ["k8s.gcr.io/pause:3.1"], str(tmp_path))
