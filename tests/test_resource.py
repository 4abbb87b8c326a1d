import pytest

from kubepipe.resource import (
    Clone,
    Condition,
    Conditions,
    DnsConfig,
    DNSConfigOption,
    LookupError_,
    MatchContext,
    Metadata,
    ParseError,
    Pipeline,
    Platform,
    RawResource,
    ResourceObject,
    Resources,
    Step,
    Variable,
    Workspace,
    is_name_match,
    lint,
    lookup,
    matches,
    parse,
    parse_bytes_size,
    parse_manifest,
    parse_manifest_file,
)

MANIFEST = """\
---
kind: signature
hmac: placeholder

---
kind: secret
type: encrypted
name: token
data: secret

---
kind: pipeline
type: kubernetes
name: default
version: 1

metadata:
  namespace: default
  annotations:
    foo: bar
  labels:
    bar: baz

workspace:
  path: /drone/src

platform:
  os: linux
  arch: arm64

clone:
  depth: 50

dns_config:
  nameservers:
  - 1.1.1.1
  searches:
  - test.local
  options:
  - name: ndots
    value: "1"

node_selector:
  foo: bar

image_pull_secrets:
- dockerconfigjson

trigger:
  branch: [ master ]

services:
- name: redis
  image: redis:latest
  entrypoint: [ "/bin/redis-server" ]
  command: [ "--debug" ]

steps:
- name: build
  image: python
  detach: false
  depends_on: [ clone ]
  commands:
  - make build
  - make test
  environment:
    OS: linux
    ARCH: arm64
  resources:
    limits:
      cpu: 1000
      memory: 500MiB
  failure: ignore
  when:
    event: [ push ]
"""

USER_GROUP_MANIFEST = """\
kind: pipeline
type: kubernetes
name: default
version: 1

steps:
- name: build
  image: python
  commands:
  - make build
  user: 1000
  group: 1000
"""


def test_lookup():
    want = Pipeline(name="default")
    assert lookup("default", [want]) is want


def test_lookup_not_found():
    resources = [
        RawResource(kind="secret", name="password"),
        RawResource(kind="secret", name="default"),
    ]
    with pytest.raises(LookupError_, match="resource not found"):
        lookup("default", resources)


@pytest.mark.parametrize(
    "a,b,expected",
    [("a", "b", False), ("a", "a", True), ("", "default", True), ("default", "", True)],
)
def test_name_match(a, b, expected):
    assert is_name_match(a, b) is expected


def test_parse(tmp_path):
    path = tmp_path / "manifest.yml"
    path.write_text(MANIFEST)
    got = parse_manifest_file(path)
    assert len(got) == 3

    assert isinstance(got[0], RawResource)
    assert got[0].kind == "signature"
    assert got[0].data["hmac"] == "placeholder"
    assert isinstance(got[1], RawResource)
    assert (got[1].kind, got[1].type, got[1].name) == ("secret", "encrypted", "token")

    want = Pipeline(
        kind="pipeline",
        type="kubernetes",
        name="default",
        version="1",
        metadata=Metadata(
            namespace="default", annotations={"foo": "bar"}, labels={"bar": "baz"}
        ),
        workspace=Workspace(path="/drone/src"),
        platform=Platform(os="linux", arch="arm64"),
        clone=Clone(depth=50),
        dns_config=DnsConfig(
            nameservers=["1.1.1.1"],
            searches=["test.local"],
            options=[DNSConfigOption(name="ndots", value="1")],
        ),
        node_selector={"foo": "bar"},
        pull_secrets=["dockerconfigjson"],
        trigger=Conditions(branch=Condition(include=["master"])),
        services=[
            Step(
                name="redis",
                image="redis:latest",
                entrypoint=["/bin/redis-server"],
                command=["--debug"],
            )
        ],
        steps=[
            Step(
                name="build",
                image="python",
                detach=False,
                depends_on=["clone"],
                commands=["make build", "make test"],
                environment={
                    "OS": Variable(value="linux"),
                    "ARCH": Variable(value="arm64"),
                },
                resources=Resources(limits=ResourceObject(cpu=1000, memory=524288000)),
                failure="ignore",
                when=Conditions(event=Condition(include=["push"])),
            )
        ],
    )
    assert got[2] == want


def test_parse_with_user_group():
    got = parse_manifest(USER_GROUP_MANIFEST)
    want = [
        Pipeline(
            kind="pipeline",
            type="kubernetes",
            name="default",
            version="1",
            steps=[
                Step(name="build", image="python", commands=["make build"], user=1000, group=1000)
            ],
        )
    ]
    assert got == want


def test_parse_err_malformed():
    with pytest.raises(ParseError):
        parse_manifest("kind: pipeline\ntype: kubernetes\nsteps: [ {\n")


def test_parse_lint_err_duplicate():
    text = (
        "kind: pipeline\ntype: kubernetes\nsteps:\n"
        "- name: build\n  image: python\n- name: build\n  image: python\n"
    )
    with pytest.raises(ParseError, match="duplicate step name"):
        parse_manifest(text)


def test_parse_lint_nil_step():
    text = "kind: pipeline\ntype: kubernetes\nsteps:\n- ~\n"
    with pytest.raises(ParseError, match="nil step"):
        parse_manifest(text)


def test_parse_missing_kind():
    with pytest.raises(ParseError, match="missing kind"):
        parse_manifest("name: default\n")


def test_parse_wrong_type():
    with pytest.raises(ParseError):
        parse_manifest("kind: pipeline\ntype: kubernetes\nsteps: 5\n")


def test_parse_no_match():
    assert parse(RawResource(kind="pipeline", type="exec")) is None


def test_parse_raw_match():
    raw = RawResource(
        kind="pipeline", type="kubernetes", data={"name": "x", "steps": [{"name": "a"}]}
    )
    got = parse(raw)
    assert got.name == "x"
    assert [s.name for s in got.steps] == ["a"]


def test_match():
    assert matches(RawResource(kind="pipeline", type="kubernetes")) is True
    assert matches(RawResource(kind="approval", type="kubernetes")) is False
    assert matches(RawResource(kind="pipeline", type="dummy")) is False


def test_lint():
    p = Pipeline(steps=[Step(name="build"), Step(name="test")])
    lint(p)
    assert [s.name for s in p.steps] == ["build", "test"]

    p.steps = [Step(name="build"), Step(name="build")]
    with pytest.raises(ParseError, match="duplicate step name"):
        lint(p)

    p.steps = [Step(name="build"), Step(name="")]
    with pytest.raises(ParseError, match="invalid or missing step name"):
        lint(p)

    p.steps = [Step(name="x" * 101)]
    with pytest.raises(ParseError, match="cannot exceed 100 characters"):
        lint(p)


def test_get_step():
    step1 = Step(name="build")
    step2 = Step(name="test")
    pipeline = Pipeline(steps=[step1, step2])
    assert pipeline.get_step("build") is step1
    assert pipeline.get_step("deploy") is None


@pytest.mark.parametrize(
    "value,expected",
    [
        (1024, 1024),
        ("500MiB", 524288000),
        ("1GiB", 1073741824),
        ("1KB", 1024),
        ("500", 500),
        (None, 0),
    ],
)
def test_parse_bytes_size(value, expected):
    assert parse_bytes_size(value) == expected


@pytest.mark.parametrize("value", ["abc", "1.2.3MB", [1]])
def test_parse_bytes_size_invalid(value):
    with pytest.raises(ParseError):
        parse_bytes_size(value)


def test_condition_match():
    assert Condition().match("anything") is True
    cond = Condition(include=["master", "feature/*"])
    assert cond.match("master") is True
    assert cond.match("feature/x") is True
    assert cond.match("feature/x/y") is False
    assert cond.match("develop") is False
    excl = Condition(exclude=["develop"])
    assert excl.match("develop") is False
    assert excl.match("master") is True


def test_condition_forms():
    got = parse_manifest(
        "kind: pipeline\ntype: kubernetes\ntrigger:\n"
        "  branch: master\n  event:\n    exclude: [ pull_request ]\n"
    )[0]
    assert got.trigger.branch == Condition(include=["master"])
    assert got.trigger.event == Condition(exclude=["pull_request"])


def test_conditions_match():
    conds = Conditions(
        branch=Condition(include=["master"]), event=Condition(include=["push"])
    )
    assert conds.match(MatchContext(branch="master", event="push")) is True
    assert conds.match(MatchContext(branch="master", event="tag")) is False


def test_environment_from_secret():
    got = parse_manifest(
        "kind: pipeline\ntype: kubernetes\nsteps:\n- name: a\n  image: b\n"
        "  environment:\n    TOKEN:\n      from_secret: token\n    FLAG: true\n"
    )[0]
    env = got.steps[0].environment
    assert env["TOKEN"] == Variable(secret="token")
    assert env["FLAG"] == Variable(value="true")