"""Names, paths and ports shared by the generated objects."""

POSTGRES_CONTAINER_NAME = "postgres"
LOGICAL_BACKUP_CONTAINER_NAME = "logical-backup"
CONNECTION_POOLER_CONTAINER_NAME = "connection-pooler"
SCALYR_SIDECAR_NAME = "scalyr-sidecar"

DATA_VOLUME_NAME = "pgdata"
DATA_VOLUME_PATH = "/home/postgres/pgdata"
PGROOT = "/home/postgres/pgdata/pgroot"
SHM_VOLUME_NAME = "dshm"
SHM_VOLUME_PATH = "/dev/shm"
RUN_VOLUME_NAME = "postgresql-run"
RUN_VOLUME_PATH = "/var/run/postgresql"
TLS_MOUNT_PATH = "/tls"
TLS_DEFAULT_MODE = 0o640

POSTGRES_PORT = 5432
PATRONI_API_PORT = 8008
OPERATOR_PORT = 8080
POSTGRES_PORT_NAME = "postgresql"

MASTER_ROLE = "master"
REPLICA_ROLE = "replica"
ROLES = (MASTER_ROLE, REPLICA_ROLE)

CRD_GROUP = "acid.zalan.do"
CRD_API_VERSION = "acid.zalan.do/v1"
CRD_KIND = "postgresql"

TEAM_LABEL = "team"
CRITICAL_OPERATION_LABEL = "critical-operation"
CONNECTION_POOLER_LABEL = "connection-pooler"
LOGICAL_BACKUP_APPLICATION = "spilo-logical-backup"
CONNECTION_POOLER_APPLICATION = "db-connection-pooler"

ELB_TIMEOUT_ANNOTATION = "service.beta.kubernetes.io/aws-load-balancer-connection-idle-timeout"
ELB_TIMEOUT_VALUE = "3600"
DNS_NAME_ANNOTATION = "external-dns.alpha.kubernetes.io/hostname"
LOCALHOST_SOURCE_RANGE = "127.0.0.1/32"

PASSWORD_KEY = "password"
ALL_CONTAINERS = "all"

# Kubernetes object names are DNS-1123 labels
MAX_OBJECT_NAME_LENGTH = 63
