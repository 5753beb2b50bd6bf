"""Tests for configuration models and validation."""

import pytest
import typer
import yaml
from pydantic import ValidationError
from pgcluster.components.specs import (
    AdditionalVolume,
    EnvVar,
    OperatorConfig,
    PostgresCluster,
    Resources,
)


class TestOperatorConfig:
    """Test operator configuration defaults and validation."""

    def test_defaults(self):
        """Test default values."""
        config = OperatorConfig()
        assert config.cluster_labels == {"application": "spilo"}
        assert config.cluster_name_label == "cluster-name"
        assert config.pod_role_label == "spilo-role"
        assert config.default_cpu_request == "100m"
        assert config.min_memory_limit == "250Mi"
        assert config.min_instances == -1
        assert config.max_instances == -1
        assert config.pod_management_policy == "ordered_ready"
        assert config.logical_backup.provider == "s3"
        assert config.logical_backup.job_prefix == "logical-backup-"
        assert config.connection_pooler.number_of_instances == 2
        assert config.additional_pod_capabilities is None

    def test_frozen(self):
        """Test that a loaded configuration cannot be modified."""
        config = OperatorConfig()
        with pytest.raises(ValidationError):
            config.docker_image = "other"

    def test_invalid_pod_management_policy(self):
        """Test that unknown pod management policies are rejected at load."""
        with pytest.raises(ValidationError, match="Unknown pod management policy"):
            OperatorConfig(pod_management_policy="random")

        assert OperatorConfig(pod_management_policy="parallel").pod_management_policy == "parallel"

    def test_invalid_backup_provider(self):
        """Test that unknown logical backup providers are rejected at load."""
        with pytest.raises(ValidationError, match="Unknown logical backup provider"):
            OperatorConfig(logical_backup={"provider": "ftp"})

    def test_timeout_below_interval(self):
        """Test the Secret retry budget validation."""
        with pytest.raises(ValidationError, match="should be greater than"):
            OperatorConfig(resource_check_interval=10, resource_check_timeout=5)

        with pytest.raises(ValidationError):
            OperatorConfig(resource_check_interval=0)

    def test_name_formats_need_cluster(self):
        """Test that name formats must reference the cluster."""
        with pytest.raises(ValidationError, match="placeholder"):
            OperatorConfig(pdb_name_format="static-pdb")
        with pytest.raises(ValidationError, match="placeholder"):
            OperatorConfig(master_dns_name_format="{namespace}.{hostedzone}")

    def test_instance_bounds(self):
        """Test instance bounds validation."""
        with pytest.raises(ValidationError):
            OperatorConfig(min_instances=-2)

    def test_pod_environment_configmap_ref(self):
        """Test splitting the pod environment ConfigMap reference."""
        assert OperatorConfig().pod_environment_configmap_ref("default") is None
        assert OperatorConfig(pod_environment_configmap="pod-env").pod_environment_configmap_ref(
            "default"
        ) == ("default", "pod-env")
        assert OperatorConfig(pod_environment_configmap="shared/pod-env").pod_environment_configmap_ref(
            "default"
        ) == ("shared", "pod-env")

    def test_from_yaml(self, tmp_path):
        """Test loading the configuration from YAML."""
        path = tmp_path / "operator.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "docker_image": "spilo:test",
                    "min_instances": 2,
                    "logical_backup": {"provider": "gcs", "s3_bucket": "backups"},
                    "connection_pooler": {"schema": "pgbouncer"},
                }
            )
        )

        config = OperatorConfig.from_yaml(path)
        assert config.docker_image == "spilo:test"
        assert config.min_instances == 2
        assert config.logical_backup.provider == "gcs"
        assert config.logical_backup.s3_bucket == "backups"
        assert config.connection_pooler.schema_name == "pgbouncer"

    def test_from_yaml_invalid(self, tmp_path):
        """Test that invalid files exit with an error."""
        path = tmp_path / "operator.yaml"
        path.write_text("pod_management_policy: random\n")
        with pytest.raises(typer.Exit):
            OperatorConfig.from_yaml(path)

        path.write_text("docker_image: [unclosed\n")
        with pytest.raises(typer.Exit):
            OperatorConfig.from_yaml(path)

        with pytest.raises(typer.Exit):
            OperatorConfig.from_yaml(tmp_path / "missing.yaml")

    def test_load_or_default(self, tmp_path):
        """Test falling back to defaults without a file."""
        config = OperatorConfig.load_or_default(None, docker_image="spilo:default")
        assert config.docker_image == "spilo:default"
        assert OperatorConfig.load_or_default(tmp_path / "missing.yaml").docker_image == OperatorConfig().docker_image

    def test_empty_file(self, tmp_path):
        """Test that an empty file gives the defaults."""
        path = tmp_path / "operator.yaml"
        path.write_text("")
        assert OperatorConfig.from_yaml(path) == OperatorConfig()


class TestPostgresCluster:
    """Test cluster manifest parsing."""

    def test_manifest_aliases(self):
        """Test that camelCase manifest fields are accepted."""
        cluster = PostgresCluster.model_validate(
            {
                "apiVersion": "acid.zalan.do/v1",
                "kind": "postgresql",
                "metadata": {"name": "acid-test-cluster", "namespace": "demo"},
                "spec": {
                    "teamId": "acid",
                    "numberOfInstances": 3,
                    "postgresql": {"version": "16", "parameters": {"max_connections": "100"}},
                    "volume": {"size": "5Gi", "storageClass": "fast", "subPath": "$(POD_NAME)", "isSubPathExpr": True},
                    "enableLogicalBackup": True,
                    "enableMasterLoadBalancer": False,
                    "connectionPooler": {"numberOfInstances": 3, "maxDBConnections": 100},
                    "tls": {"secretName": "my-secret", "caFile": "ca.crt"},
                    "clone": {"cluster": "acid-source", "timestamp": "2024-01-01T00:00:00+00:00"},
                },
            }
        )

        assert cluster.name == "acid-test-cluster"
        assert cluster.namespace == "demo"
        spec = cluster.spec
        assert spec.team_id == "acid"
        assert spec.number_of_instances == 3
        assert spec.postgresql.version == "16"
        assert spec.volume.storage_class == "fast"
        assert spec.volume.is_sub_path_expr is True
        assert spec.enable_logical_backup is True
        assert spec.enable_master_load_balancer is False
        assert spec.enable_replica_load_balancer is None
        assert spec.connection_pooler.max_db_connections == 100
        assert spec.tls.ca_file == "ca.crt"
        assert spec.clone.cluster_name == "acid-source"
        assert spec.clone.end_timestamp == "2024-01-01T00:00:00+00:00"

    def test_metadata_required(self):
        """Test that a manifest needs a name."""
        with pytest.raises(ValidationError):
            PostgresCluster.model_validate({"spec": {}})

    def test_to_yaml_string(self):
        """Test serialization with wire names."""
        cluster = PostgresCluster.model_validate(
            {"metadata": {"name": "acid-test"}, "spec": {"teamId": "acid", "numberOfInstances": 2}}
        )
        data = yaml.safe_load(cluster.to_yaml_string())
        assert data["metadata"]["name"] == "acid-test"
        assert data["spec"]["teamId"] == "acid"
        assert data["spec"]["numberOfInstances"] == 2


class TestCommonModels:
    """Test shared manifest models."""

    def test_env_var_name(self):
        """Test environment variable name validation."""
        assert EnvVar(name="custom_variable", value="x").name == "custom_variable"
        with pytest.raises(ValidationError, match="cannot be empty"):
            EnvVar(name="")
        with pytest.raises(ValidationError, match="Invalid environment variable name"):
            EnvVar(name="1BAD")

    def test_env_var_value_from(self):
        """Test the valueFrom alias."""
        var = EnvVar.model_validate({"name": "PASSWORD", "valueFrom": {"secretKeyRef": {"name": "s", "key": "k"}}})
        assert var.value is None
        assert var.value_from == {"secretKeyRef": {"name": "s", "key": "k"}}

    def test_resources_hugepages(self):
        """Test hugepages aliases."""
        resources = Resources.model_validate({"requests": {"hugepages-2Mi": "128Mi"}, "limits": {"cpu": "1"}})
        assert resources.requests.hugepages_2mi == "128Mi"
        assert resources.requests.cpu is None
        assert resources.limits.cpu == "1"

    def test_additional_volume(self):
        """Test additional volume aliases."""
        volume = AdditionalVolume.model_validate(
            {
                "name": "test",
                "mountPath": "/test",
                "targetContainers": ["all"],
                "volumeSource": {"emptyDir": {}},
            }
        )
        assert volume.mount_path == "/test"
        assert volume.target_containers == ["all"]
        assert volume.volume_source == {"emptyDir": {}}
        assert volume.sub_path is None
