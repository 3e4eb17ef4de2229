import json

import pytest
import yaml

from kubeboot.modules.kubeadm import constants
from kubeboot.modules.kubeadm.config import ClusterConfig
from kubeboot.modules.kubeadm.configuration import (
    TemplateKind,
    convert_to_flags,
    default_cni_config,
    generate_artifacts,
    generate_config,
    generate_hosts,
    kubeadm_init_command,
    kubeadm_init_options,
    kubelet_service,
    new_kubelet_config,
    render_template,
)
from kubeboot.modules.kubeadm.errors import FeatureGateParseError, InvalidVersion, TemplateRenderError
from kubeboot.modules.kubeadm.versions import parse_kubernetes_version


def cluster(**kwargs):
    kwargs.setdefault("node_ip", "192.168.99.100")
    return ClusterConfig(**kwargs)


def test_scenario_a_renders_init_configuration():
    docs = list(yaml.safe_load_all(generate_config(cluster(kubernetes_version="1.13.0"))))
    init, cluster_cfg, kubelet = docs

    assert init["apiVersion"] == "kubeadm.k8s.io/v1alpha3"
    assert init["kind"] == "InitConfiguration"
    assert init["apiEndpoint"] == {"advertiseAddress": "192.168.99.100", "bindPort": 8443}
    assert init["nodeRegistration"]["criSocket"] == "/var/run/dockershim.sock"
    assert init["nodeRegistration"]["taints"] == []

    assert cluster_cfg["kind"] == "ClusterConfiguration"
    assert cluster_cfg["kubernetesVersion"] == "1.13.0"
    assert cluster_cfg["networking"]["serviceSubnet"] == constants.DEFAULT_SERVICE_CIDR
    assert cluster_cfg["controlPlaneEndpoint"] == "localhost:8443"
    assert "enable-admission-plugins" in cluster_cfg["apiServerExtraArgs"]
    assert cluster_cfg["schedulerExtraArgs"] == {"leader-elect": False}

    assert kubelet["kind"] == "KubeletConfiguration"


def test_legacy_schema_for_1_10():
    cfg = yaml.safe_load(generate_config(cluster(kubernetes_version="v1.10.0")))
    assert cfg["apiVersion"] == "kubeadm.k8s.io/v1alpha1"
    assert cfg["kind"] == "MasterConfiguration"
    assert cfg["noTaintMaster"] is True
    assert cfg["api"]["bindPort"] == 8443
    assert cfg["nodeName"] == "minikube"
    assert "criSocket" not in cfg
    assert "admission-control" in cfg["apiServerExtraArgs"]


def test_legacy_schema_before_no_taint_master():
    cfg = yaml.safe_load(generate_config(cluster(kubernetes_version="v1.9.0")))
    assert "noTaintMaster" not in cfg


def test_custom_port_and_service_cidr():
    docs = list(yaml.safe_load_all(generate_config(
        cluster(kubernetes_version="v1.13.0", node_port=9443, service_cidr="10.0.0.0/24")
    )))
    assert docs[0]["apiEndpoint"]["bindPort"] == 9443
    assert docs[1]["controlPlaneEndpoint"] == "localhost:9443"
    assert docs[1]["networking"]["serviceSubnet"] == "10.0.0.0/24"


def test_cri_socket_and_feature_gates():
    docs = list(yaml.safe_load_all(generate_config(cluster(
        kubernetes_version="v1.13.0",
        container_runtime="containerd",
        feature_gates="CoreDNS=true,PodPriority=true",
    ))))
    assert docs[0]["nodeRegistration"]["criSocket"] == "/run/containerd/containerd.sock"
    assert docs[1]["featureGates"] == {"CoreDNS": True}
    assert docs[1]["apiServerExtraArgs"]["feature-gates"] == "PodPriority=true"


def test_extra_options_reach_the_component():
    cfg = cluster(kubernetes_version="v1.13.0", extra_options=["apiserver.v=5"])
    docs = list(yaml.safe_load_all(generate_config(cfg)))
    assert docs[1]["apiServerExtraArgs"]["v"] == 5


def test_invalid_version_fails_generation():
    with pytest.raises(InvalidVersion):
        generate_config(cluster(kubernetes_version="one.two"))


def test_kubelet_config_for_containerd():
    rendered = new_kubelet_config(cluster(
        kubernetes_version="v1.13.0",
        container_runtime="containerd",
        network_plugin="cni",
        feature_gates="CoreDNS=true,PodPriority=true",
    ))
    assert "Wants=containerd.service" in rendered
    assert "ExecStart=/usr/bin/kubelet --allow-privileged=true " in rendered
    assert "--container-runtime=remote" in rendered
    assert "--network-plugin=cni" in rendered
    assert rendered.rstrip().endswith("[Install]")
    assert "--feature-gates=PodPriority=true" in rendered
    assert "CoreDNS" not in rendered


@pytest.mark.parametrize("runtime,wants", [
    ("", "docker.socket"),
    ("docker", "docker.socket"),
    ("crio", "crio.service"),
    ("cri-o", "crio.service"),
])
def test_kubelet_config_wants(runtime, wants):
    rendered = new_kubelet_config(cluster(kubernetes_version="v1.12.0", container_runtime=runtime))
    assert f"Wants={wants}" in rendered


def test_kubelet_config_without_feature_gates():
    assert "--feature-gates" not in new_kubelet_config(cluster(kubernetes_version="v1.12.0"))


def test_convert_to_flags_sorted():
    assert convert_to_flags({"b": "2", "a": "1"}) == "--a=1 --b=2"


def test_hosts_file():
    lines = generate_hosts(cluster(node_name="node-1")).splitlines()
    assert lines == ["127.0.0.1\tlocalhost", "127.0.1.1\tnode-1", "192.168.99.100\tnode-1"]


def test_kubelet_service_and_cni():
    assert "WantedBy=multi-user.target" in kubelet_service()
    cni = json.loads(default_cni_config())
    assert cni["type"] == "bridge"
    assert cni["ipam"]["subnet"] == "10.1.0.0/16"


def test_init_command_ignores_preflights():
    options = kubeadm_init_options(parse_kubernetes_version("v1.13.0"), "")
    expected = "sudo /usr/bin/kubeadm init --config /var/lib/kubeadm.yaml " + " ".join(
        f"--ignore-preflight-errors={check}" for check in constants.PREFLIGHTS
    )
    assert kubeadm_init_command(options) == expected


def test_init_command_with_alternate_runtime():
    options = kubeadm_init_options(parse_kubernetes_version("v1.13.0"), "crio")
    assert options.preflights == constants.ALTERNATE_RUNTIME_PREFLIGHTS
    assert "--ignore-preflight-errors=Service-Docker" in kubeadm_init_command(options)


def test_init_command_legacy_skip_flag():
    options = kubeadm_init_options(parse_kubernetes_version("1.8.0"), "")
    assert options.skip_preflight_checks is False
    assert kubeadm_init_command(options) == (
        "sudo /usr/bin/kubeadm init --config /var/lib/kubeadm.yaml --skip-preflight-checks"
    )


def test_generate_artifacts_cni_toggle():
    assert generate_artifacts(cluster()).cni_config is None
    assert generate_artifacts(cluster(enable_default_cni=True)).cni_config == default_cni_config()


def test_generate_artifacts_names_failing_stage():
    with pytest.raises(FeatureGateParseError, match="generating kubeadm cfg"):
        generate_artifacts(cluster(feature_gates="CoreDNS"))


def test_render_template_errors():
    with pytest.raises(TemplateRenderError):
        render_template("hosts.j2", node_name="x", node_ip="y")
    with pytest.raises(TemplateRenderError, match="HOSTS_FILE"):
        render_template(TemplateKind.HOSTS_FILE)
