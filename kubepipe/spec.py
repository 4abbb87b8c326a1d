"""Pipeline specification handed to the execution engine."""

from __future__ import annotations

import dataclasses
import threading
from dataclasses import dataclass, field


@dataclass
class Platform:
    """Target platform of a pipeline."""

    os: str = ""
    arch: str = ""
    variant: str = ""
    version: str = ""


@dataclass
class Secret:
    """A named secret value, optionally masked in logs."""

    name: str = ""
    data: str = ""
    mask: bool = False


@dataclass
class SecretVar:
    """An environment variable sourced from a secret."""

    name: str = ""
    env: str = ""


@dataclass
class State:
    """Process state of a finished container."""

    exit_code: int = 0
    exited: bool = False
    oom_killed: bool = False


@dataclass
class VolumeMount:
    """Mounting of a volume within a container."""

    name: str = ""
    path: str = ""
    sub_path: str = ""
    read_only: bool = False


@dataclass
class VolumeEmptyDir:
    """Temporary scratch directory shared between containers."""

    id: str = ""
    name: str = ""
    medium: str = ""
    size_limit: int = 0


@dataclass
class VolumeHostPath:
    """File or directory mounted from the host node."""

    id: str = ""
    name: str = ""
    path: str = ""


@dataclass
class VolumeDownwardAPIItem:
    """A single file exposed by a downward API volume."""

    path: str = ""
    field_path: str = ""


@dataclass
class VolumeDownwardAPI:
    """Volume exposing pod fields as files."""

    id: str = ""
    name: str = ""
    items: list[VolumeDownwardAPIItem] = field(default_factory=list)


@dataclass
class VolumeClaim:
    """An existing persistent volume claim."""

    id: str = ""
    name: str = ""
    claim_name: str = ""
    read_only: bool = False


@dataclass
class VolumeConfigMap:
    """A config map mounted as a volume."""

    id: str = ""
    name: str = ""
    config_map_name: str = ""
    default_mode: int = 0
    optional: bool = False


@dataclass
class VolumeSecret:
    """A cluster secret mounted as a volume."""

    id: str = ""
    name: str = ""
    secret_name: str = ""
    default_mode: int = 0
    optional: bool = False


@dataclass
class Volume:
    """A volume that containers can mount; exactly one source is usually set."""

    empty_dir: VolumeEmptyDir | None = None
    host_path: VolumeHostPath | None = None
    downward_api: VolumeDownwardAPI | None = None
    claim: VolumeClaim | None = None
    config_map: VolumeConfigMap | None = None
    secret: VolumeSecret | None = None


@dataclass
class ResourceObject:
    """CPU and memory amounts."""

    cpu: int = 0
    memory: int = 0


@dataclass
class Resources:
    """Compute resource limits and requests."""

    limits: ResourceObject = field(default_factory=ResourceObject)
    requests: ResourceObject = field(default_factory=ResourceObject)


@dataclass
class HostAlias:
    """Extra hosts file entry for the pod."""

    ip: str = ""
    hostnames: list[str] = field(default_factory=list)


@dataclass
class Toleration:
    """Pod toleration."""

    effect: str = ""
    key: str = ""
    operator: str = ""
    toleration_seconds: int | None = None
    value: str = ""


@dataclass
class DnsConfigOption:
    """A resolver option."""

    name: str = ""
    value: str | None = None


@dataclass
class DnsConfig:
    """Pod DNS configuration."""

    nameservers: list[str] = field(default_factory=list)
    searches: list[str] = field(default_factory=list)
    options: list[DnsConfigOption] = field(default_factory=list)


@dataclass
class PodSpec:
    """Pod-level settings."""

    name: str = ""
    namespace: str = ""
    annotations: dict[str, str] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)
    node_name: str = ""
    node_selector: dict[str, str] = field(default_factory=dict)
    tolerations: list[Toleration] = field(default_factory=list)
    service_account_name: str = ""
    host_aliases: list[HostAlias] = field(default_factory=list)
    dns_config: DnsConfig = field(default_factory=DnsConfig)


@dataclass
class Step:
    """A single pipeline step."""

    id: str = ""
    command: list[str] = field(default_factory=list)
    detach: bool = False
    depends_on: list[str] = field(default_factory=list)
    entrypoint: list[str] = field(default_factory=list)
    envs: dict[str, str] = field(default_factory=dict)
    err_policy: int = 0
    ignore_stdout: bool = False
    ignore_stderr: bool = False
    image: str = ""
    name: str = ""
    placeholder: str = ""
    privileged: bool = False
    resources: Resources = field(default_factory=Resources)
    pull: int = 0
    run_policy: int = 0
    secrets: list[SecretVar] = field(default_factory=list)
    spec_secrets: list[Secret] = field(default_factory=list)
    user: int | None = None
    group: int | None = None
    volumes: list[VolumeMount] = field(default_factory=list)
    working_dir: str = ""

    def clone(self) -> Step:
        """Return a shallow copy with its own copy of the environment."""
        return dataclasses.replace(self, envs=dict(self.envs or {}))


@dataclass
class Spec:
    """Instructions for reproducible execution of a pipeline."""

    pod_spec: PodSpec = field(default_factory=PodSpec)
    platform: Platform = field(default_factory=Platform)
    steps: list[Step] = field(default_factory=list)
    internal: list[Step] = field(default_factory=list)
    volumes: list[Volume] = field(default_factory=list)
    secrets: dict[str, Secret] = field(default_factory=dict)
    pull_secret: Secret | None = None
    resources: Resources = field(default_factory=Resources)
    namespace: str = ""
    pod_update_lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )
    stop: threading.Event = field(
        default_factory=threading.Event, repr=False, compare=False
    )