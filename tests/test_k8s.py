"""Tests for building kubernetes client models from manifest dicts."""

import pytest
from kubernetes.client import V1Container, V1Toleration, V1Volume
from pgcluster.core.k8s import from_dict, to_dict, to_env_var
from pgcluster.errors import ConfigurationError


class TestFromDict:
    """Test from_dict()."""

    def test_sidecar_container(self):
        """Test a container template with nested ports, env and resources."""
        container = from_dict(
            {
                "name": "metrics-exporter",
                "image": "exporter:1.0",
                "ports": [{"name": "metrics", "containerPort": 9187, "protocol": "TCP"}],
                "env": [{"name": "PGUSER", "valueFrom": {"secretKeyRef": {"name": "creds", "key": "user"}}}],
                "resources": {"limits": {"memory": "100Mi"}},
                "readinessProbe": {"httpGet": {"path": "/healthz", "port": "metrics"}},
            },
            "V1Container",
        )

        assert isinstance(container, V1Container)
        assert container.name == "metrics-exporter"
        assert container.ports[0].container_port == 9187
        assert container.ports[0].protocol == "TCP"
        assert container.env[0].value_from.secret_key_ref.key == "user"
        assert container.resources.limits == {"memory": "100Mi"}
        assert container.readiness_probe.http_get.port == "metrics"

    def test_volume(self):
        """Test a volume with its source."""
        volume = from_dict(
            {"name": "data", "secret": {"secretName": "my-secret", "defaultMode": 0o640}},
            "V1Volume",
        )

        assert isinstance(volume, V1Volume)
        assert volume.secret.secret_name == "my-secret"
        assert volume.secret.default_mode == 0o640
        assert volume.empty_dir is None

    def test_empty_source(self):
        """Test that an empty nested object still becomes a model."""
        volume = from_dict({"name": "scratch", "emptyDir": {}}, "V1Volume")
        assert volume.empty_dir is not None
        assert volume.empty_dir.medium is None

    def test_list_type(self):
        """Test list[...] model names."""
        tolerations = from_dict([{"key": "postgres", "operator": "Exists"}], "list[V1Toleration]")
        assert [type(t) for t in tolerations] == [V1Toleration]
        assert tolerations[0].key == "postgres"

    def test_dict_type(self):
        """Test dict(str, str) attributes."""
        selector = from_dict(
            {
                "matchLabels": {"environment": "dev"},
                "matchExpressions": [{"key": "flavour", "operator": "In", "values": ["banana"]}],
            },
            "V1LabelSelector",
        )
        assert selector.match_labels == {"environment": "dev"}
        assert selector.match_expressions[0].values == ["banana"]

    def test_unknown_keys_ignored(self):
        """Test that keys the model does not know are dropped."""
        volume = from_dict({"name": "data", "emptyDir": {}, "bogus": 1}, "V1Volume")
        assert "bogus" not in to_dict(volume)

    def test_none(self):
        """Test that None stays None."""
        assert from_dict(None, "V1Volume") is None

    def test_round_trip_shape(self):
        """Test that serializing a built model gives back the camelCase input."""
        data = {"name": "data", "secret": {"secretName": "my-secret"}}
        assert to_dict(from_dict(data, "V1Volume")) == data


class TestFromDictErrors:
    """Test that malformed input becomes a ConfigurationError."""

    def test_missing_required_field(self):
        """Test a container without a name."""
        with pytest.raises(ConfigurationError, match=r"invalid sidecar_containers\[0\]"):
            from_dict({"image": "x"}, "V1Container", "sidecar_containers[0]")

    def test_bad_integer(self):
        """Test a named port where a number is required."""
        with pytest.raises(ConfigurationError, match="invalid ports of sidecar 'exporter'.*'http'"):
            from_dict([{"containerPort": "http"}], "list[V1ContainerPort]", "ports of sidecar 'exporter'")

    def test_wrong_shape(self):
        """Test a scalar where an object is required."""
        with pytest.raises(ConfigurationError, match="expected a mapping for V1SecretVolumeSource"):
            from_dict({"name": "data", "secret": "my-secret"}, "V1Volume", "additional volume 'data'")

    def test_defaults_to_model_name(self):
        """Test the message without a setting name."""
        with pytest.raises(ConfigurationError, match="invalid V1Toleration"):
            from_dict({"tolerationSeconds": "soon"}, "V1Toleration")

    def test_env_value_from(self):
        """Test a malformed valueFrom on a manifest variable."""
        with pytest.raises(ConfigurationError, match="invalid valueFrom of PGUSER"):
            to_env_var("PGUSER", value_from={"secretKeyRef": "creds"})
