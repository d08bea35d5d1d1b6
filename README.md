# ecspresso

Building blocks for deploying services to Amazon ECS.

## What is in the package

- **ARNs and tags** (`ecspresso.util`): `parse_arn` splits an ARN into an
  `Arn`, `arn_to_name` keeps the part after the last slash,
  `is_long_arn_format` recognises the long ECS ARN format, `parse_tags` reads
  `Key=Value,Key=Value` strings into `Tag` objects, `compare_tags` returns the
  added, updated and deleted tags between two sets, `map2str` renders a mapping
  as sorted `k=v` pairs, and `service_volume_configurations_to_task` turns
  service EBS volume configurations into task volume configurations.
- **Definition JSON** (`ecspresso.jsonapi`): `marshal_json_for_api` writes a
  value as indented JSON with lower-camel-case keys, dropping nulls and empty
  lists and leaving keys under `dockerLabels` and `options` untouched; it can
  apply `jq`-style queries (paths, `del(...)` and pipes) through `jq_filter`.
  `output_json_for_api` writes the same to a stream, and
  `unmarshal_json_for_struct` parses JSON into a mapping with upper-camel-case
  keys.
- **Template functions** (`ecspresso.nativefuncs`): `default_native_funcs`
  returns the `env` and `must_env` lookups as `NativeFunction` objects.
- **Secrets Manager** (`ecspresso.secretsmanager`): `SecretsManagerLookup`
  resolves a secret id to its ARN through any client offering
  `describe_secret`, caching the result.
- **Container registries** (`ecspresso.registry`): `Repository` checks that an
  image tag exists in Docker Hub or any Docker Registry v2 API, and whether it
  is available for a given architecture and OS.
- **Revisions** (`ecspresso.revisions`): `Revisions` writes a list of
  `Revision` entries as JSON, TSV or a table; `parse_revision_spec` turns
  `latest` or a revision number into a task definition name.
- **Verification** (`ecspresso.verify`, `ecspresso.verifier`): `verify_resource`
  runs a named check and prints an indented `[OK]`, `[NG]` or `[SKIP]` report,
  with an optional result cache set up by `init_verify_state`. Helpers include
  `normalize_platform`, `extract_role_name`, `parse_iam_policy_document` and
  `is_ecr_image`. `Verifier` checks that secrets, SSM parameters and S3
  environment files exist, using session-like objects that offer
  `client(service_name, region_name=None)`.
- **Logging and formatting** (`ecspresso.logger`, `ecspresso.formatting`):
  level-filtered `[LEVEL] message` log output, and one-line summaries of
  deployments, task sets, service events, log events and scaling policies.

## Examples

Parsing tags and ARNs:

```python
from ecspresso.util import arn_to_name, map2str, parse_tags

tags = parse_tags("Env=prod,Team=web")
name = arn_to_name("arn:aws:ecs:ap-northeast-1:123456789012:task-definition/app:39")
# name == "app:39"

map2str({"b": "2", "a": "1"})
# "a=1,b=2"
```

A malformed tag string such as `"Foo"` or `"="` raises `ValueError`.

Writing a definition in API form:

```python
import sys

from ecspresso.jsonapi import marshal_json_for_api, output_json_for_api

text = marshal_json_for_api({"FooBar": "x", "Options": {"Keep": "Case"}}, "del(.options)")
# text == '{\n  "fooBar": "x"\n}\n'
output_json_for_api(sys.stdout, {"Family": "app"})
```

Checking an image in a registry:

```python
from ecspresso.registry import Repository

repo = Repository("debian")
if repo.has_image("latest"):
    print(repo.has_platform_image("latest", "arm64", "linux"))
```

Registry failures raise `RegistryError`. An image that only has a deprecated
schema-1 manifest raises `DeprecatedManifestError`, and hitting the pull rate
limit raises `PullRateLimitExceededError`.

Verification helpers:

```python
from ecspresso.verify import extract_role_name, init_verify_state, verify_resource

extract_role_name("arn:aws:iam::123456789012:role/path/to/ecsTaskRole")
# "ecsTaskRole"

init_verify_state(True)
verify_resource("my resource", lambda: None)
```

A check that raises `SkipVerify` is reported as `[SKIP]` and does not count
as a failure. Any other exception is reported as `[NG]` and raised again as a
`RuntimeError`.

## What the package does not do

There is no command-line tool. The package does not deploy, run, scale, roll
back or wait for services and tasks, and it does not load configuration
files. Apart from the registry checks, which make their own HTTP requests, it
does not talk to AWS by itself: `Verifier` and `SecretsManagerLookup` work
through clients that the caller supplies.

## Running the tests

Install the `test` extra, then run pytest from the project root.