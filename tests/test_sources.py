"""Tests for pod environment source readers."""

import base64
from types import SimpleNamespace
from unittest.mock import Mock

import pytest
from kubernetes.client.exceptions import ApiException
from pgcluster.core.sources import KubernetesSourceReader, StaticSourceReader
from pgcluster.errors import ExternalSourceError, SourceNotFoundError


class TestKubernetesSourceReader:
    """Test reading through the core API."""

    def test_read_secret_decodes(self):
        """Test that Secret data is base64 decoded."""
        core_v1 = Mock()
        core_v1.read_namespaced_secret.return_value = SimpleNamespace(
            data={"minio_access_key": base64.b64encode(b"alpha").decode()}
        )

        reader = KubernetesSourceReader(core_v1)
        assert reader.read_secret("default", "pod-env") == {"minio_access_key": b"alpha"}
        core_v1.read_namespaced_secret.assert_called_once_with("pod-env", "default")

    def test_read_secret_not_found(self):
        """Test that a missing Secret raises SourceNotFoundError."""
        core_v1 = Mock()
        core_v1.read_namespaced_secret.side_effect = ApiException(status=404, reason="Not Found")

        with pytest.raises(SourceNotFoundError, match='secret "pod-env" not found'):
            KubernetesSourceReader(core_v1).read_secret("default", "pod-env")

    def test_read_secret_api_error(self):
        """Test that other API errors propagate unchanged."""
        core_v1 = Mock()
        core_v1.read_namespaced_secret.side_effect = ApiException(status=500, reason="Internal Error")

        with pytest.raises(ApiException):
            KubernetesSourceReader(core_v1).read_secret("default", "pod-env")

    def test_read_config_map(self):
        """Test ConfigMap reads."""
        core_v1 = Mock()
        core_v1.read_namespaced_config_map.return_value = SimpleNamespace(data={"foo": "bar"})
        assert KubernetesSourceReader(core_v1).read_config_map("default", "pod-env") == {"foo": "bar"}

        core_v1.read_namespaced_config_map.return_value = SimpleNamespace(data=None)
        assert KubernetesSourceReader(core_v1).read_config_map("default", "pod-env") == {}

    def test_read_config_map_not_found(self):
        """Test that a missing ConfigMap raises SourceNotFoundError."""
        core_v1 = Mock()
        core_v1.read_namespaced_config_map.side_effect = ApiException(status=404)

        with pytest.raises(SourceNotFoundError, match='configmap "pod-env" not found'):
            KubernetesSourceReader(core_v1).read_config_map("default", "pod-env")


class TestStaticSourceReader:
    """Test the in-memory reader."""

    def test_reads(self):
        """Test reading registered objects."""
        reader = StaticSourceReader(
            secrets={("default", "pod-env"): {"key": b"value"}},
            config_maps={("default", "pod-env"): {"foo": "bar"}},
        )
        assert reader.read_secret("default", "pod-env") == {"key": b"value"}
        assert reader.read_config_map("default", "pod-env") == {"foo": "bar"}

    def test_missing(self):
        """Test that unknown objects are reported as not found."""
        reader = StaticSourceReader()
        with pytest.raises(SourceNotFoundError):
            reader.read_secret("default", "pod-env")
        with pytest.raises(ExternalSourceError):
            reader.read_config_map("other", "pod-env")

    def test_returns_copies(self):
        """Test that callers cannot modify the stored data."""
        reader = StaticSourceReader(config_maps={("default", "pod-env"): {"foo": "bar"}})
        reader.read_config_map("default", "pod-env")["foo"] = "changed"
        assert reader.read_config_map("default", "pod-env") == {"foo": "bar"}
