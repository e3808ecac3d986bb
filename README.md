# kourier

Builders for the Envoy proxy configuration that a Knative ingress gateway
serves to its proxies. Each builder returns plain Python dictionaries in the
shape of the Envoy v3 API, ready to be serialised to JSON or YAML. Durations
are written as Envoy duration strings such as `"5s"` or `"2.500s"`.

The package has no dependencies outside the standard library.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Gateway configuration

`kourier.config` reads the `config-kourier` ConfigMap data into a
`KourierConfig` dataclass. Missing keys keep their defaults (access logging
on, proxy protocol off, no cluster certificate secret); a value that is not a
boolean raises `ConfigError`.

```python
from kourier.config import new_config_from_map, ConfigError

cfg = new_config_from_map({"enable-proxy-protocol": "true"})
cfg.enable_service_access_logging  # True (the default)
cfg.enable_proxy_protocol          # True

try:
    new_config_from_map({"enable-service-access-logging": "maybe"})
except ConfigError as exc:
    print(exc)
```

`new_config_from_configmap()` takes either an object with a `data` attribute
or a mapping with a `"data"` key.

`gateway_namespace()` returns `KOURIER_GATEWAY_NAMESPACE`, falling back to
`SYSTEM_NAMESPACE`, and raises `ConfigError` when neither is set.
`service_hostnames()` returns the external and internal service host names in
that namespace, for example `kourier.kourier-system.svc.cluster.local`.
`get_disable_http2(annotations)` returns the value of the
`kourier.knative.dev/disable-http2` annotation, or an empty string.

## Clusters and endpoints

```python
from kourier.endpoints import DiscoveryType, new_cluster, new_lb_endpoint, new_weighted_cluster

endpoints = [new_lb_endpoint("10.0.0.1", 8080), new_lb_endpoint("10.0.0.2", 8080)]
cluster = new_cluster("my-service", 5.0, endpoints, True, None, DiscoveryType.STATIC)
split = new_weighted_cluster("my-service", 100, {"K-Network-Hash": "abc"})
```

Passing `True` for HTTP/2 adds explicit HTTP/2 upstream protocol options to
the cluster. `headers_to_add()` turns a header mapping into header options
that replace, rather than append to, existing values. `format_duration()`
accepts a `timedelta` or a number of seconds.

## Routes, virtual hosts and connection managers

```python
from kourier.routes import (
    new_route, new_virtual_host, new_route_config, new_http_connection_manager,
)

route = new_route("default", [], "/", [split], 30.0, {}, "")
vhost = new_virtual_host("example", ["example.com"], [route])
route_config = new_route_config("external_services", [vhost])
manager = new_http_connection_manager("external_services", True, False, None)
```

Routes enable websocket upgrades. `new_redirect_route()` builds an HTTPS
redirect, `new_route_ext_authz_disabled()` a route that switches external
authorization off, and `new_virtual_host_with_ext_authz()` a virtual host that
passes context extensions to the authorization service. The connection manager
fetches its routes over ADS, logs access to `/dev/stdout` when access logging
is on, and uses the remote address when proxy protocol is on.

## External authorization

`kourier.ext_authz.load_external_authz(environ)` reads the `KOURIER_EXTAUTHZ_*`
variables (`HOST`, `FAILUREMODEALLOW`, `MAXREQUESTBYTES`, `TIMEOUT`,
`PROTOCOL`, `PATHPREFIX`) from the given mapping, or from `os.environ` when
none is given. Without a `HOST` it returns a disabled `ExternalAuthzConfig`;
otherwise it returns one holding the authorization cluster and HTTP filter,
and raises `ConfigError` for an unknown protocol, a malformed `host:port` or a
port above 65535. Pass it to `new_http_connection_manager` to place the filter
ahead of the router.

`ext_authz_cluster()` and `external_authz_filter()` build the cluster and
filter directly from a host, port and `ExtAuthzProtocol` (`grpc`, `http`,
`https`) or from an `ExtAuthzSettings`.

## What this package does not do

It only builds configuration. It does not run an xDS management server or a
health-check endpoint, has no command-line program, and does not watch a
Kubernetes cluster or reconcile Ingress resources; serving the built
configuration to Envoy is left to the caller.