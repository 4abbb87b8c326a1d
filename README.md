# kubepipe

Building blocks for a runner that executes CI pipelines as Kubernetes pods:

- `kubepipe.resource`: parse multi-document pipeline manifests
  (`parse_manifest`, `parse_manifest_file`), check step names (`lint`), pick a
  pipeline by name (`lookup`) and evaluate trigger `Conditions` against a
  `MatchContext`. Problems raise `ParseError`; a missing pipeline raises
  `LookupError_`.
- `kubepipe.policy`: load policy documents (`parse_policies`,
  `parse_policy_file`), choose one (`match_policy`) and `Policy.apply` it to a
  `kubepipe.spec.Spec`. `random_namespace` returns a `drone-` prefixed name.
- `kubepipe.spec`: the runtime pod and step specification (`Spec`, `Step`,
  `PodSpec`, volumes, resources and so on).
- `kubepipe.replacer`: `mask_writer` wraps a writer so that masked secret values
  appear as `[secret:name]` in output.
- `kubepipe.image`: normalise and compare container image names (`trim`,
  `expand`, `match`, `match_tag`, `match_hostname`, `is_latest`).
- `kubepipe.encoder`: `encode` turns setting values into environment strings.
- `kubepipe.match`: `make_matcher` builds a filter over `Repo` and `Build`
  values.
- `kubepipe.podwatcher.errors`: the error classes used when waiting on pod
  containers (`PodTerminatedError`, `FailedContainerError`,
  `StartTimeoutContainerError` and others).

## Install

    pip install kubepipe

## Examples

Parsing a manifest and picking a pipeline:

```python
from kubepipe.resource import parse_manifest, lookup

manifest = """
kind: pipeline
type: kubernetes
name: default
steps:
- name: build
  image: alpine
  commands:
  - make
"""

pipeline = lookup("default", parse_manifest(manifest))
print(pipeline.get_step("build").image)  # alpine
```

Applying a policy to a spec:

```python
from kubepipe.policy import parse_policies, match_policy
from kubepipe.resource import MatchContext
from kubepipe.spec import Spec

policies = parse_policies("""
name: default
metadata:
  namespace: ci
resources:
  limit:
    memory: 1GiB
""")

spec = Spec()
policy = match_policy(MatchContext(repo="octocat/hello-world"), policies)
policy.apply(spec)
print(spec.pod_spec.namespace, spec.resources.limits.memory)  # ci 1073741824
```

Masking secrets in output:

```python
import io
from kubepipe.replacer import mask_writer
from kubepipe.spec import Secret

out = io.StringIO()
writer = mask_writer(out, [Secret(name="DOCKER_PASSWORD", data="secret", mask=True)])
writer.write("password secret")
print(out.getvalue())  # password [secret:docker_password]
```

Image names and build filters:

```python
from kubepipe.image import expand, trim
from kubepipe.match import Build, Repo, make_matcher

print(expand("alpine"))                        # docker.io/library/alpine:latest
print(trim("docker.io/library/alpine:3.19"))   # alpine

allowed = make_matcher(["octocat/*"], ["push"], False)
print(allowed(Repo(slug="octocat/hello-world"), Build(event="push")))  # True
```

## What this package does not do

It has no command-line program and does not talk to a Kubernetes cluster: it
does not create pods, secrets or namespaces, stream logs, or watch container
states. It also has no checks of a pipeline against a repository's trust level
or namespace restrictions. It covers the data model, parsing, policies and
helpers that such a runner would be built on.

## Tests

    pip install "kubepipe[test]"
    pytest