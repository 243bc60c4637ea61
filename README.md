# abctl

Building blocks for running Airbyte locally on a kind Kubernetes cluster:
cluster configuration, Helm values, Docker discovery, pre-flight checks,
chart location and image manifests.

## What is in the package

| Module | Purpose |
| --- | --- |
| `abctl.kind_config` | The kind cluster configuration (`Config`, `Node`, `Mount`, `PortMapping`, `default_config`, `INGRESS_PORT`). |
| `abctl.nginx_values` | Helm values for the ingress-nginx controller (`build_nginx_values`). |
| `abctl.docker_secret` | Registry credentials in the `auths` format used by image pull secrets (`secret`). |
| `abctl.logs` | `WarningLogger`, `HelmLogger` and `KindLogger`, which turn Kubernetes, Helm and kind output into debug messages; `RunError` and `format_kind_error`. |
| `abctl.docker` | Finding and connecting to the Docker engine (`EngineClient`, `Docker`, `Version`, `candidate_hosts`, `docker_context_host`, `new`, `new_with_options`). |
| `abctl.checks` | Pre-flight checks: Docker present (`docker_installed`), port free (`port_available`), cluster port lookup (`get_port`), host validation (`validate_host_flag`). |
| `abctl.helm_locate` | Resolving the latest released Airbyte chart from the repository index (`ChartRepository`, `locate_latest_airbyte_chart`, `download_index`, `is_prerelease`). |
| `abctl.manifest` | Listing the container images a rendered chart uses (`decode_k8s_resources`, `find_all_images`). |

## Examples

Build a kind configuration that exposes Airbyte on port 9000 and mounts an
extra directory:

```python
from abctl.kind_config import default_config

config = default_config("/home/me/.airbyte/abctl/data")
config.with_host_port(9000).with_volume_mount("/srv/files", "/files")
print(config.to_yaml())
```

Render the ingress-nginx values for a port:

```python
from abctl.nginx_values import build_nginx_values

print(build_nginx_values(8000))
```

Create registry credentials for an image pull secret (the result is JSON
bytes with keys sorted and `auth` holding base64 of `user:password`):

```python
from abctl.docker_secret import secret

password = "password"
payload = secret("https://index.docker.io/v1/", "user", password, "user@example.com")
```

Connect to Docker and check the port the cluster exposes:

```python
from abctl import docker
from abctl.checks import get_port, port_available

client = docker.new()
print(client.version())
print(get_port(client, "airbyte-abctl"))
port_available(8000)
```

Validate a value for the host flag; an IP address or a malformed name raises
an error:

```python
from abctl.checks import InvalidHostFlagError, validate_host_flag

validate_host_flag("airbyte.example.com")
try:
    validate_host_flag("http://airbyte.example.com")
except InvalidHostFlagError as exc:
    print(exc)
```

Pick the chart reference to install; an explicit chart wins, and without a
version the URL of the newest non-pre-release chart in the repository index
is used, falling back to `airbyte/airbyte`:

```python
from abctl.helm_locate import locate_latest_airbyte_chart

print(locate_latest_airbyte_chart("", ""))
```

List the images found in an already rendered chart:

```python
from abctl.manifest import find_all_images

with open("rendered.yaml") as fh:
    for image in find_all_images(fh.read()):
        print(image)
```

`find_all_images` looks at the containers and init containers of pods, jobs,
deployments and stateful sets, plus every `*_IMAGE` key in the `airbyte-env`
config map, and returns a sorted list without duplicates.

## Logging

Messages go to the standard `logging` logger named `abctl`. The loggers in
`abctl.logs` take an optional `stream`; when one is given they write lines
prefixed with `  DEBUG   ` to it instead.

## Errors

Failures are raised as exceptions: `DockerError` when no Docker engine can be
reached, `PortError` when a port is taken, `ContainerNotRunningError`,
`InvalidPortError`, `PortNotFoundError` and `UnableToInspectError` from the
cluster port lookup, and `IpAddressForHostFlagError` / `InvalidHostFlagError`
from host validation.

## What the package does not do

- There is no command-line program; everything is used from Python.
- It does not create or delete kind clusters, install or uninstall Helm
  releases, or talk to the Kubernetes API. `Config.to_yaml` produces the
  cluster configuration, but running kind with it is left to the caller.
- It does not render Helm charts. `find_all_images` works on manifest YAML
  that has already been rendered.
- It does not pull images or load them into cluster nodes.
- `EngineClient` speaks to Docker over `unix://`, `tcp://`, `http://` and
  `https://` hosts only; the Windows named-pipe host that `candidate_hosts`
  lists is rejected with `DockerError`.

## Running the tests

Install the `test` extra and run `pytest` from the project root.