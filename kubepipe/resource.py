"""Kubernetes pipeline resources: model, YAML parsing, linting and lookup."""

from __future__ import annotations

import datetime
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Union

import yaml

from kubepipe.encoder import encode
from kubepipe.match import _path_match

KIND = "pipeline"
TYPE = "kubernetes"


class ParseError(ValueError):
    """Raised when a manifest or resource cannot be parsed or fails linting."""


class LookupError_(LookupError):
    """Raised when a named pipeline cannot be found."""


# ---------------------------------------------------------------------------
# value conversion helpers


def _fail(what: str, value: Any) -> ParseError:
    return ParseError(f"yaml: cannot decode {type(value).__name__} into {what}")


def _map(value: Any, what: str = "mapping") -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise _fail(what, value)
    return value


def _str(value: Any, what: str = "string") -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        raise _fail(what, value)
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    return encode(value)


def _opt_str(value: Any) -> str | None:
    return None if value is None else _str(value)


def _int(value: Any, what: str = "integer") -> int:
    if value is None:
        return 0
    if isinstance(value, bool):
        raise _fail(what, value)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise _fail(what, value)


def _opt_int(value: Any) -> int | None:
    return None if value is None else _int(value)


def _bool(value: Any, what: str = "boolean") -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    raise _fail(what, value)


def _str_list(value: Any, what: str = "list of strings") -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise _fail(what, value)
    return [_str(item, what) for item in value]


def _str_map(value: Any, what: str = "map of strings") -> dict[str, str]:
    return {_str(k, what): _str(v, what) for k, v in _map(value, what).items()}


def _objs(value: Any, cls: type) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise _fail(f"list of {cls.__name__}", value)
    return [None if item is None else cls._load(item) for item in value]


def _opt_obj(value: Any, cls: type) -> Any:
    return None if value is None else cls._load(value)


_SIZE_RE = re.compile(r"^(\d+(?:\.\d+)*) ?([kKmMgGtTpP])?[iI]?[bB]?\Z")
_SIZE_UNITS = {"k": 1024, "m": 1024**2, "g": 1024**3, "t": 1024**4, "p": 1024**5}


def parse_bytes_size(value: Any) -> int:
    """Convert an integer or a human size such as "500MiB" to bytes (binary units)."""
    if value is None:
        return 0
    if isinstance(value, bool):
        raise _fail("byte size", value)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if not isinstance(value, str):
        raise _fail("byte size", value)
    m = _SIZE_RE.match(value)
    if not m:
        raise ParseError(f"invalid size: '{value}'")
    try:
        number = float(m.group(1))
    except ValueError:
        raise ParseError(f"invalid size: '{value}'") from None
    unit = (m.group(2) or "").lower()
    return int(number * _SIZE_UNITS.get(unit, 1))


# ---------------------------------------------------------------------------
# generic manifest pieces


@dataclass
class RawResource:
    """A manifest document before it is decoded into a typed resource."""

    kind: str = ""
    type: str = ""
    name: str = ""
    version: str = ""
    deps: list[str] = field(default_factory=list)
    data: dict = field(default_factory=dict)


@dataclass
class Condition:
    """Include and exclude glob patterns for one trigger attribute."""

    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)

    @classmethod
    def _load(cls, data: Any) -> Condition:
        if data is None:
            return cls()
        if isinstance(data, list):
            return cls(include=_str_list(data))
        if isinstance(data, dict):
            return cls(
                include=_condition_list(data.get("include")),
                exclude=_condition_list(data.get("exclude")),
            )
        return cls(include=[_str(data)])

    def match(self, value: str) -> bool:
        """Return True if value is not excluded and is included or unrestricted."""
        if any(p == value or _path_match(p, value) for p in self.exclude):
            return False
        if any(p == value or _path_match(p, value) for p in self.include):
            return True
        return not self.include


def _condition_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value]
    return _str_list(value)


@dataclass
class MatchContext:
    """Attributes of a build that trigger conditions are checked against."""

    action: str = ""
    branch: str = ""
    cron: str = ""
    event: str = ""
    instance: str = ""
    ref: str = ""
    repo: str = ""
    target: str = ""


@dataclass
class Conditions:
    """Set of trigger conditions."""

    action: Condition = field(default_factory=Condition)
    branch: Condition = field(default_factory=Condition)
    cron: Condition = field(default_factory=Condition)
    event: Condition = field(default_factory=Condition)
    instance: Condition = field(default_factory=Condition)
    ref: Condition = field(default_factory=Condition)
    repo: Condition = field(default_factory=Condition)
    status: Condition = field(default_factory=Condition)
    target: Condition = field(default_factory=Condition)

    @classmethod
    def _load(cls, data: Any) -> Conditions:
        d = _map(data, "conditions")
        return cls(
            action=Condition._load(d.get("action")),
            branch=Condition._load(d.get("branch")),
            cron=Condition._load(d.get("cron")),
            event=Condition._load(d.get("event")),
            instance=Condition._load(d.get("instance")),
            ref=Condition._load(d.get("ref")),
            repo=Condition._load(d.get("repo")),
            status=Condition._load(d.get("status")),
            target=Condition._load(d.get("target")),
        )

    def match(self, context: MatchContext) -> bool:
        """Return True if every condition matches the context."""
        return (
            self.action.match(context.action)
            and self.branch.match(context.branch)
            and self.cron.match(context.cron)
            and self.event.match(context.event)
            and self.instance.match(context.instance)
            and self.ref.match(context.ref)
            and self.repo.match(context.repo)
            and self.target.match(context.target)
        )


@dataclass
class Platform:
    """Target platform."""

    os: str = ""
    arch: str = ""
    variant: str = ""
    version: str = ""

    @classmethod
    def _load(cls, data: Any) -> Platform:
        d = _map(data, "platform")
        return cls(
            os=_str(d.get("os")),
            arch=_str(d.get("arch")),
            variant=_str(d.get("variant")),
            version=_str(d.get("version")),
        )


@dataclass
class Clone:
    """Clone step configuration."""

    disable: bool = False
    depth: int = 0
    retries: int = 0
    trace: bool = False

    @classmethod
    def _load(cls, data: Any) -> Clone:
        d = _map(data, "clone")
        return cls(
            disable=_bool(d.get("disable")),
            depth=_int(d.get("depth")),
            retries=_int(d.get("retries")),
            trace=_bool(d.get("trace")),
        )


@dataclass
class Concurrency:
    """Concurrency limit of a pipeline."""

    limit: int = 0

    @classmethod
    def _load(cls, data: Any) -> Concurrency:
        return cls(limit=_int(_map(data, "concurrency").get("limit")))


@dataclass
class Variable:
    """An environment variable, given literally or taken from a secret."""

    value: str = ""
    secret: str = ""

    @classmethod
    def _load(cls, data: Any) -> Variable:
        if isinstance(data, dict):
            return cls(secret=_str(data.get("from_secret")))
        return cls(value=_str(data))


# ---------------------------------------------------------------------------
# pipeline resource


@dataclass
class Metadata:
    """Pod metadata."""

    namespace: str = ""
    annotations: dict[str, str] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)

    @classmethod
    def _load(cls, data: Any) -> Metadata:
        d = _map(data, "metadata")
        return cls(
            namespace=_str(d.get("namespace")),
            annotations=_str_map(d.get("annotations")),
            labels=_str_map(d.get("labels")),
        )


@dataclass
class DNSConfigOption:
    """A resolver option."""

    name: str = ""
    value: str | None = None

    @classmethod
    def _load(cls, data: Any) -> DNSConfigOption:
        d = _map(data, "dns option")
        return cls(name=_str(d.get("name")), value=_opt_str(d.get("value")))


@dataclass
class DnsConfig:
    """Pod DNS configuration."""

    nameservers: list[str] = field(default_factory=list)
    searches: list[str] = field(default_factory=list)
    options: list[DNSConfigOption] = field(default_factory=list)

    @classmethod
    def _load(cls, data: Any) -> DnsConfig:
        d = _map(data, "dns_config")
        return cls(
            nameservers=_str_list(d.get("nameservers")),
            searches=_str_list(d.get("searches")),
            options=_objs(d.get("options"), DNSConfigOption),
        )


@dataclass
class HostAlias:
    """Extra hosts file entry."""

    ip: str = ""
    hostnames: list[str] = field(default_factory=list)

    @classmethod
    def _load(cls, data: Any) -> HostAlias:
        d = _map(data, "host alias")
        return cls(ip=_str(d.get("ip")), hostnames=_str_list(d.get("hostnames")))


@dataclass
class Toleration:
    """Pod toleration."""

    effect: str = ""
    key: str = ""
    operator: str = ""
    toleration_seconds: int | None = None
    value: str = ""

    @classmethod
    def _load(cls, data: Any) -> Toleration:
        d = _map(data, "toleration")
        return cls(
            effect=_str(d.get("effect")),
            key=_str(d.get("key")),
            operator=_str(d.get("operator")),
            toleration_seconds=_opt_int(d.get("toleration_seconds")),
            value=_str(d.get("value")),
        )


@dataclass
class ResourceObject:
    """CPU and memory amounts."""

    cpu: int = 0
    memory: int = 0

    @classmethod
    def _load(cls, data: Any) -> ResourceObject:
        d = _map(data, "resource object")
        return cls(cpu=_int(d.get("cpu")), memory=parse_bytes_size(d.get("memory")))


@dataclass
class Resources:
    """Compute resource limits and requests."""

    limits: ResourceObject = field(default_factory=ResourceObject)
    requests: ResourceObject = field(default_factory=ResourceObject)

    @classmethod
    def _load(cls, data: Any) -> Resources:
        d = _map(data, "resources")
        return cls(
            limits=ResourceObject._load(d.get("limits")),
            requests=ResourceObject._load(d.get("requests")),
        )


@dataclass
class VolumeMount:
    """Mounting of a volume within a container."""

    name: str = ""
    mount_path: str = ""
    sub_path: str = ""

    @classmethod
    def _load(cls, data: Any) -> VolumeMount:
        d = _map(data, "volume mount")
        return cls(
            name=_str(d.get("name")),
            mount_path=_str(d.get("path")),
            sub_path=_str(d.get("sub_path")),
        )


@dataclass
class VolumeEmptyDir:
    """Temporary scratch directory."""

    medium: str = ""
    size_limit: int = 0

    @classmethod
    def _load(cls, data: Any) -> VolumeEmptyDir:
        d = _map(data, "temp volume")
        return cls(
            medium=_str(d.get("medium")),
            size_limit=parse_bytes_size(d.get("size_limit")),
        )


@dataclass
class VolumeHostPath:
    """File or directory from the host node."""

    path: str = ""

    @classmethod
    def _load(cls, data: Any) -> VolumeHostPath:
        return cls(path=_str(_map(data, "host volume").get("path")))


@dataclass
class VolumeClaim:
    """An existing persistent volume claim."""

    claim_name: str = ""
    read_only: bool = False

    @classmethod
    def _load(cls, data: Any) -> VolumeClaim:
        d = _map(data, "claim volume")
        return cls(claim_name=_str(d.get("name")), read_only=_bool(d.get("read_only")))


@dataclass
class VolumeConfigMap:
    """A config map mounted into the container."""

    config_map_name: str = ""
    default_mode: int = 0
    optional: bool = False

    @classmethod
    def _load(cls, data: Any) -> VolumeConfigMap:
        d = _map(data, "config_map volume")
        return cls(
            config_map_name=_str(d.get("name")),
            default_mode=_int(d.get("default_mode")),
            optional=_bool(d.get("optional")),
        )


@dataclass
class VolumeSecret:
    """A cluster secret mounted into the container."""

    secret_name: str = ""
    default_mode: int = 0
    optional: bool = False

    @classmethod
    def _load(cls, data: Any) -> VolumeSecret:
        d = _map(data, "secret volume")
        return cls(
            secret_name=_str(d.get("name")),
            default_mode=_int(d.get("default_mode")),
            optional=_bool(d.get("optional")),
        )


@dataclass
class Volume:
    """A volume that steps can mount."""

    name: str = ""
    empty_dir: VolumeEmptyDir | None = None
    host_path: VolumeHostPath | None = None
    claim: VolumeClaim | None = None
    config_map: VolumeConfigMap | None = None
    secret: VolumeSecret | None = None

    @classmethod
    def _load(cls, data: Any) -> Volume:
        d = _map(data, "volume")
        return cls(
            name=_str(d.get("name")),
            empty_dir=_opt_obj(d.get("temp"), VolumeEmptyDir),
            host_path=_opt_obj(d.get("host"), VolumeHostPath),
            claim=_opt_obj(d.get("claim"), VolumeClaim),
            config_map=_opt_obj(d.get("config_map"), VolumeConfigMap),
            secret=_opt_obj(d.get("secret"), VolumeSecret),
        )


@dataclass
class Workspace:
    """Pipeline workspace configuration."""

    path: str = ""

    @classmethod
    def _load(cls, data: Any) -> Workspace:
        return cls(path=_str(_map(data, "workspace").get("path")))


@dataclass
class Step:
    """A pipeline step or service."""

    command: list[str] = field(default_factory=list)
    commands: list[str] = field(default_factory=list)
    detach: bool = False
    depends_on: list[str] = field(default_factory=list)
    entrypoint: list[str] = field(default_factory=list)
    environment: dict[str, Variable] = field(default_factory=dict)
    failure: str = ""
    image: str = ""
    name: str = ""
    privileged: bool = False
    pull: str = ""
    resources: Resources = field(default_factory=Resources)
    settings: dict[str, Any] = field(default_factory=dict)
    shell: str = ""
    user: int | None = None
    group: int | None = None
    volumes: list[VolumeMount | None] = field(default_factory=list)
    when: Conditions = field(default_factory=Conditions)
    working_dir: str = ""

    @classmethod
    def _load(cls, data: Any) -> Step:
        d = _map(data, "step")
        return cls(
            command=_str_list(d.get("command")),
            commands=_str_list(d.get("commands")),
            detach=_bool(d.get("detach")),
            depends_on=_str_list(d.get("depends_on")),
            entrypoint=_str_list(d.get("entrypoint")),
            environment={
                _str(k): Variable._load(v)
                for k, v in _map(d.get("environment"), "environment").items()
            },
            failure=_str(d.get("failure")),
            image=_str(d.get("image")),
            name=_str(d.get("name")),
            privileged=_bool(d.get("privileged")),
            pull=_str(d.get("pull")),
            resources=Resources._load(d.get("resources")),
            settings={_str(k): v for k, v in _map(d.get("settings"), "settings").items()},
            shell=_str(d.get("shell")),
            user=_opt_int(d.get("user")),
            group=_opt_int(d.get("group")),
            volumes=_objs(d.get("volumes"), VolumeMount),
            when=Conditions._load(d.get("when")),
            working_dir=_str(d.get("working_dir")),
        )


@dataclass
class Pipeline:
    """A pipeline resource executed as a Kubernetes pod."""

    version: str = ""
    kind: str = ""
    type: str = ""
    name: str = ""
    deps: list[str] = field(default_factory=list)
    clone: Clone = field(default_factory=Clone)
    concurrency: Concurrency = field(default_factory=Concurrency)
    node: dict[str, str] = field(default_factory=dict)
    platform: Platform = field(default_factory=Platform)
    trigger: Conditions = field(default_factory=Conditions)
    resources: Resources = field(default_factory=Resources)
    environment: dict[str, str] = field(default_factory=dict)
    services: list[Step | None] = field(default_factory=list)
    steps: list[Step | None] = field(default_factory=list)
    volumes: list[Volume | None] = field(default_factory=list)
    pull_secrets: list[str] = field(default_factory=list)
    workspace: Workspace = field(default_factory=Workspace)
    metadata: Metadata = field(default_factory=Metadata)
    node_name: str = ""
    node_selector: dict[str, str] = field(default_factory=dict)
    service_account_name: str = ""
    tolerations: list[Toleration] = field(default_factory=list)
    dns_config: DnsConfig = field(default_factory=DnsConfig)
    host_aliases: list[HostAlias] = field(default_factory=list)

    @classmethod
    def _load(cls, data: Any) -> Pipeline:
        d = _map(data, "pipeline")
        return cls(
            version=_str(d.get("version")),
            kind=_str(d.get("kind")),
            type=_str(d.get("type")),
            name=_str(d.get("name")),
            deps=_str_list(d.get("depends_on")),
            clone=Clone._load(d.get("clone")),
            concurrency=Concurrency._load(d.get("concurrency")),
            node=_str_map(d.get("node")),
            platform=Platform._load(d.get("platform")),
            trigger=Conditions._load(d.get("trigger")),
            resources=Resources._load(d.get("resources")),
            environment=_str_map(d.get("environment")),
            services=_objs(d.get("services"), Step),
            steps=_objs(d.get("steps"), Step),
            volumes=_objs(d.get("volumes"), Volume),
            pull_secrets=_str_list(d.get("image_pull_secrets")),
            workspace=Workspace._load(d.get("workspace")),
            metadata=Metadata._load(d.get("metadata")),
            node_name=_str(d.get("node_name")),
            node_selector=_str_map(d.get("node_selector")),
            service_account_name=_str(d.get("service_account_name")),
            tolerations=_objs(d.get("tolerations"), Toleration),
            dns_config=DnsConfig._load(d.get("dns_config")),
            host_aliases=_objs(d.get("host_aliases"), HostAlias),
        )

    def get_step(self, name: str) -> Step | None:
        """Return the step with the given name, or None."""
        return next((s for s in self.steps if s is not None and s.name == name), None)


Resource = Union[Pipeline, RawResource]


# ---------------------------------------------------------------------------
# parsing


def matches(raw: RawResource) -> bool:
    """Return True if the raw resource is a Kubernetes pipeline."""
    return raw.kind == KIND and raw.type == TYPE


def lint(pipeline: Pipeline) -> None:
    """Check step names; raise ParseError if any is missing, too long or repeated."""
    names: set[str] = set()
    for step in pipeline.steps:
        if step is None:
            raise ParseError("Linter: detected nil step")
        if not step.name:
            raise ParseError("Linter: invalid or missing step name")
        if len(step.name) > 100:
            raise ParseError("Linter: step name cannot exceed 100 characters")
        if step.name in names:
            raise ParseError("Linter: duplicate step name")
        names.add(step.name)


def parse(raw: RawResource) -> Pipeline | None:
    """Decode a raw resource into a Pipeline; None if it is not a Kubernetes pipeline."""
    if not matches(raw):
        return None
    pipeline = Pipeline._load(raw.data)
    lint(pipeline)
    return pipeline


def _raw(doc: dict) -> RawResource:
    return RawResource(
        kind=_str(doc.get("kind")),
        type=_str(doc.get("type")),
        name=_str(doc.get("name")),
        version=_str(doc.get("version")),
        deps=_str_list(doc.get("depends_on")),
        data=doc,
    )


def parse_manifest(text: str) -> list[Resource]:
    """Parse a multi-document YAML manifest into resources."""
    try:
        docs = list(yaml.safe_load_all(text))
    except yaml.YAMLError as exc:
        raise ParseError(f"yaml: {exc}") from exc
    resources: list[Resource] = []
    for doc in docs:
        if doc is None:
            continue
        if not isinstance(doc, dict):
            raise _fail("resource", doc)
        raw = _raw(doc)
        if not raw.kind:
            raise ParseError("yaml: missing kind attribute")
        pipeline = parse(raw)
        resources.append(pipeline if pipeline is not None else raw)
    return resources


def parse_manifest_file(path: str | Path) -> list[Resource]:
    """Read and parse a manifest file."""
    return parse_manifest(Path(path).read_text(encoding="utf-8"))


# ---------------------------------------------------------------------------
# lookup


def is_name_match(a: str, b: str) -> bool:
    """Return True if the names match, treating an empty name as "default"."""
    return a == b or (a == "" and b == "default") or (b == "" and a == "default")


def lookup(name: str, resources: Iterable[Resource]) -> Pipeline:
    """Return the named pipeline; raise LookupError_ if there is none."""
    for res in resources:
        if isinstance(res, Pipeline) and is_name_match(res.name, name):
            return res
    raise LookupError_("resource not found")