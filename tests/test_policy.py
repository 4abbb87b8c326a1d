import re

import pytest

from kubepipe.policy import (
    Policy,
    PolicyMetadata,
    PolicyResource,
    PolicyResources,
    PolicyToleration,
    match_policy,
    parse_policies,
    parse_policy_file,
    random_namespace,
)
from kubepipe.resource import Condition, Conditions, MatchContext, ParseError
from kubepipe.spec import PodSpec, Spec, Toleration

POLICIES = """
name: default
metadata:
  namespace: builds
  labels:
    team: core
  annotations:
    owner: ops
resources:
  request:
    cpu: 100
    memory: 32MiB
  limit:
    cpu: 1000
    memory: 1GiB
node_selector:
  disktype: ssd
service_account: runner
tolerations:
- key: dedicated
  operator: Equal
  value: ci
  effect: NoSchedule
  toleration_seconds: 60
---
name: octocat
match:
  repo:
  - octocat/*
metadata:
  namespace: octocat
"""


def test_parse_policies():
    policies = parse_policies(POLICIES)
    assert [p.name for p in policies] == ["default", "octocat"]
    default = policies[0]
    assert default.metadata == PolicyMetadata(
        namespace="builds", labels={"team": "core"}, annotations={"owner": "ops"}
    )
    assert default.resources == PolicyResources(
        request=PolicyResource(cpu=100, memory=33554432),
        limit=PolicyResource(cpu=1000, memory=1073741824),
    )
    assert default.node_selector == {"disktype": "ssd"}
    assert default.service_account == "runner"
    assert default.tolerations == [
        PolicyToleration(
            effect="NoSchedule",
            key="dedicated",
            operator="Equal",
            toleration_seconds=60,
            value="ci",
        )
    ]
    assert policies[1].conditions.repo.include == ["octocat/*"]


def test_parse_empty():
    assert parse_policies("") == []


def test_parse_malformed():
    with pytest.raises(ParseError):
        parse_policies("name: [unclosed")


def test_parse_not_a_mapping():
    with pytest.raises(ParseError):
        parse_policies("- a\n- b\n")


def test_parse_policy_file(tmp_path):
    path = tmp_path / "policy.yml"
    path.write_text(POLICIES, encoding="utf-8")
    assert [p.name for p in parse_policy_file(path)] == ["default", "octocat"]


def test_match_prefers_matching_policy():
    policies = parse_policies(POLICIES)
    matched = match_policy(MatchContext(repo="octocat/hello-world"), policies)
    assert matched.name == "octocat"


def test_match_falls_back_to_default():
    policies = [
        Policy(name="other", conditions=Conditions(repo=Condition(include=["octocat/*"]))),
        Policy(name="default", conditions=Conditions(repo=Condition(include=["x/*"]))),
    ]
    matched = match_policy(MatchContext(repo="spaceghost/hello-world"), policies)
    assert matched.name == "default"


def test_match_none():
    policies = [
        Policy(name="other", conditions=Conditions(repo=Condition(include=["octocat/*"])))
    ]
    assert match_policy(MatchContext(repo="spaceghost/hello-world"), policies) is None


def test_apply():
    spec = Spec(
        pod_spec=PodSpec(
            namespace="default",
            labels={"io.drone": "true", "team": "old"},
            annotations={"io.drone.build": "1"},
        )
    )
    parse_policies(POLICIES)[0].apply(spec)
    assert spec.pod_spec.namespace == "builds"
    assert spec.namespace == ""
    assert spec.pod_spec.labels == {"io.drone": "true", "team": "core"}
    assert spec.pod_spec.annotations == {"io.drone.build": "1", "owner": "ops"}
    assert spec.resources.requests.cpu == 100
    assert spec.resources.requests.memory == 33554432
    assert spec.resources.limits.cpu == 1000
    assert spec.resources.limits.memory == 1073741824
    assert spec.pod_spec.node_selector == {"disktype": "ssd"}
    assert spec.pod_spec.service_account_name == "runner"
    assert spec.pod_spec.tolerations == [
        Toleration(
            effect="NoSchedule",
            key="dedicated",
            operator="Equal",
            toleration_seconds=60,
            value="ci",
        )
    ]


def test_apply_empty_policy_leaves_spec_unchanged():
    spec = Spec(
        pod_spec=PodSpec(namespace="default", labels={"a": "b"}, node_selector={"x": "y"})
    )
    Policy().apply(spec)
    assert spec.pod_spec.namespace == "default"
    assert spec.pod_spec.labels == {"a": "b"}
    assert spec.pod_spec.node_selector == {"x": "y"}
    assert spec.resources.limits.cpu == 0


def test_apply_random_namespace():
    spec = Spec()
    Policy(metadata=PolicyMetadata(namespace="drone-")).apply(spec)
    assert re.fullmatch(r"drone-[a-z0-9]{20}", spec.pod_spec.namespace)
    assert spec.namespace == spec.pod_spec.namespace


def test_random_namespace_format():
    names = {random_namespace() for _ in range(5)}
    assert all(re.fullmatch(r"drone-[a-z0-9]{20}", n) for n in names)
    assert len(names) == 5