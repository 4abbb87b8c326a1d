"""Runner policies that supply pipeline defaults."""

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

import yaml

from kubepipe.resource import (
    Conditions,
    MatchContext,
    ParseError,
    _int,
    _map,
    _opt_int,
    _str,
    _str_map,
    parse_bytes_size,
)
from kubepipe.spec import Spec
from kubepipe.spec import Toleration as SpecToleration

_NAMESPACE_ALPHABET = string.ascii_lowercase + string.digits
_RANDOM_NAMESPACE_PREFIX = "drone-"


def random_namespace() -> str:
    """Return a random namespace name prefixed with "drone-"."""
    suffix = "".join(secrets.choice(_NAMESPACE_ALPHABET) for _ in range(20))
    return _RANDOM_NAMESPACE_PREFIX + suffix


def _opt_str_map(value: Any) -> dict[str, str] | None:
    return None if value is None else _str_map(value)


@dataclass
class PolicyMetadata:
    """Resource metadata defaults."""

    namespace: str = ""
    labels: dict[str, str] | None = None
    annotations: dict[str, str] | None = None

    @classmethod
    def _load(cls, data: Any) -> PolicyMetadata:
        d = _map(data, "metadata")
        return cls(
            namespace=_str(d.get("namespace")),
            labels=_opt_str_map(d.get("labels")),
            annotations=_opt_str_map(d.get("annotations")),
        )


@dataclass
class PolicyResource:
    """CPU and memory amounts."""

    cpu: int = 0
    memory: int = 0

    @classmethod
    def _load(cls, data: Any) -> PolicyResource:
        d = _map(data, "resource")
        return cls(cpu=_int(d.get("cpu")), memory=parse_bytes_size(d.get("memory")))


@dataclass
class PolicyResources:
    """Resource requests and limits."""

    request: PolicyResource = field(default_factory=PolicyResource)
    limit: PolicyResource = field(default_factory=PolicyResource)

    @classmethod
    def _load(cls, data: Any) -> PolicyResources:
        d = _map(data, "resources")
        return cls(
            request=PolicyResource._load(d.get("request")),
            limit=PolicyResource._load(d.get("limit")),
        )


@dataclass
class PolicyToleration:
    """Pod toleration default."""

    effect: str = ""
    key: str = ""
    operator: str = ""
    toleration_seconds: int | None = None
    value: str = ""

    @classmethod
    def _load(cls, data: Any) -> PolicyToleration:
        d = _map(data, "toleration")
        return cls(
            effect=_str(d.get("effect")),
            key=_str(d.get("key")),
            operator=_str(d.get("operator")),
            toleration_seconds=_opt_int(d.get("toleration_seconds")),
            value=_str(d.get("value")),
        )


@dataclass
class Policy:
    """Pipeline defaults applied to matching pipelines."""

    conditions: Conditions = field(default_factory=Conditions)
    name: str = ""
    metadata: PolicyMetadata = field(default_factory=PolicyMetadata)
    resources: PolicyResources = field(default_factory=PolicyResources)
    node_selector: dict[str, str] | None = None
    service_account: str = ""
    tolerations: list[PolicyToleration] = field(default_factory=list)

    @classmethod
    def _load(cls, data: Any) -> Policy:
        d = _map(data, "policy")
        tolerations = d.get("tolerations")
        if tolerations is not None and not isinstance(tolerations, list):
            raise ParseError("yaml: cannot decode tolerations")
        return cls(
            conditions=Conditions._load(d.get("match")),
            name=_str(d.get("name")),
            metadata=PolicyMetadata._load(d.get("metadata")),
            resources=PolicyResources._load(d.get("resources")),
            node_selector=_opt_str_map(d.get("node_selector")),
            service_account=_str(d.get("service_account")),
            tolerations=[PolicyToleration._load(t) for t in tolerations or []],
        )

    def apply(self, spec: Spec) -> None:
        """Apply the policy defaults to the spec in place."""
        if self.metadata.namespace:
            spec.pod_spec.namespace = self.metadata.namespace
            # A bare "drone-" asks for a random per-pipeline namespace that is
            # created before and destroyed after the pipeline.
            if spec.pod_spec.namespace == _RANDOM_NAMESPACE_PREFIX:
                namespace = random_namespace()
                spec.pod_spec.namespace = namespace
                spec.namespace = namespace

        # Labels and annotations are merged so internal defaults survive.
        if self.metadata.labels is not None:
            spec.pod_spec.labels = {**(spec.pod_spec.labels or {}), **self.metadata.labels}
        if self.metadata.annotations is not None:
            spec.pod_spec.annotations = {
                **(spec.pod_spec.annotations or {}),
                **self.metadata.annotations,
            }

        if self.resources.request.cpu:
            spec.resources.requests.cpu = self.resources.request.cpu
        if self.resources.request.memory:
            spec.resources.requests.memory = self.resources.request.memory
        if self.resources.limit.cpu:
            spec.resources.limits.cpu = self.resources.limit.cpu
        if self.resources.limit.memory:
            spec.resources.limits.memory = self.resources.limit.memory

        if self.node_selector is not None:
            spec.pod_spec.node_selector = dict(self.node_selector)

        if self.service_account:
            spec.pod_spec.service_account_name = self.service_account

        if self.tolerations:
            spec.pod_spec.tolerations = [
                SpecToleration(
                    effect=t.effect,
                    key=t.key,
                    operator=t.operator,
                    toleration_seconds=t.toleration_seconds,
                    value=t.value,
                )
                for t in self.tolerations
            ]


def match_policy(context: MatchContext, policies: Iterable[Policy]) -> Policy | None:
    """Return the first matching policy, else the one named "default", else None."""
    policies = list(policies)
    for p in policies:
        if p.conditions.match(context):
            return p
    return next((p for p in policies if p.name == "default"), None)


def parse_policies(text: str | bytes) -> list[Policy]:
    """Parse a multi-document YAML policy file."""
    try:
        docs = list(yaml.safe_load_all(text))
    except yaml.YAMLError as exc:
        raise ParseError(f"yaml: {exc}") from exc
    return [Policy._load(doc) for doc in docs]


def parse_policy_file(path: str | Path) -> list[Policy]:
    """Read and parse a policy file."""
    return parse_policies(Path(path).read_bytes())