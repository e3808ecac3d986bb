"""External authorization (ext_authz) cluster and HTTP filter settings."""

from __future__ import annotations

import enum
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from kourier.config import ConfigError
from kourier.endpoints import (
    HTTP_PROTOCOL_OPTIONS_KEY,
    HTTP_PROTOCOL_OPTIONS_TYPE,
    DiscoveryType,
    format_duration,
    new_cluster,
    new_lb_endpoint,
)

EXT_AUTHZ_CLUSTER_NAME = "extAuthz"
EXT_AUTHZ_FILTER_NAME = "envoy.filters.http.ext_authz"
EXT_AUTHZ_TYPE = "type.googleapis.com/envoy.extensions.filters.http.ext_authz.v3.ExtAuthz"
EXT_AUTHZ_PER_ROUTE_TYPE = (
    "type.googleapis.com/envoy.extensions.filters.http.ext_authz.v3.ExtAuthzPerRoute"
)

ENV_PREFIX = "KOURIER_EXTAUTHZ"
UNIX_MAX_PORT = 65535
_UINT32_MAX = 2**32 - 1
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

_CONNECT_TIMEOUT = timedelta(seconds=5)
_CLIENT_HEADERS = ({"key": "client", "value": "kourier"},)

_TRUE_VALUES = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_VALUES = frozenset({"0", "f", "F", "FALSE", "false", "False"})
_DECIMAL_INT = re.compile(r"[+-]?[0-9]+")


class ExtAuthzProtocol(str, enum.Enum):
    """Protocol used to talk to the external authorization service."""

    GRPC = "grpc"
    HTTP = "http"
    HTTPS = "https"


@dataclass
class ExtAuthzSettings:
    """Settings for external authorization, as read from the environment."""

    host: str = ""
    failure_mode_allow: bool = False
    max_request_bytes: int = 8192
    timeout: int = 2000
    protocol: ExtAuthzProtocol | str = ExtAuthzProtocol.GRPC
    path_prefix: str = ""


@dataclass
class ExternalAuthzConfig:
    """Resolved external authorization configuration."""

    enabled: bool = False
    cluster: dict[str, Any] | None = None
    http_filter: dict[str, Any] | None = None


def is_valid_ext_authz_protocol(protocol: ExtAuthzProtocol | str) -> bool:
    """Tell whether ``protocol`` is one of the supported protocols."""
    return protocol in {member.value for member in ExtAuthzProtocol}


def _client_headers() -> list[dict[str, str]]:
    return [dict(header) for header in _CLIENT_HEADERS]


def ext_authz_cluster(
    host: str, port: int, protocol: ExtAuthzProtocol | str
) -> dict[str, Any]:
    """Create the cluster that points at the external authorization service."""
    protocol = ExtAuthzProtocol(protocol)
    if protocol is ExtAuthzProtocol.GRPC:
        protocol_config = {"http2_protocol_options": {}}
    else:
        protocol_config = {"http_protocol_options": {}}

    cluster = new_cluster(
        EXT_AUTHZ_CLUSTER_NAME,
        _CONNECT_TIMEOUT,
        [new_lb_endpoint(host, port)],
        False,
        None,
        DiscoveryType.STRICT_DNS,
    )
    cluster["typed_extension_protocol_options"] = {
        HTTP_PROTOCOL_OPTIONS_KEY: {
            "@type": HTTP_PROTOCOL_OPTIONS_TYPE,
            "explicit_http_config": protocol_config,
        }
    }
    return cluster


def external_authz_filter(settings: ExtAuthzSettings) -> dict[str, Any]:
    """Create the ext_authz HTTP filter for the given settings."""
    protocol = ExtAuthzProtocol(settings.protocol)
    timeout = format_duration(timedelta(milliseconds=settings.timeout))

    typed_config: dict[str, Any] = {
        "@type": EXT_AUTHZ_TYPE,
        "transport_api_version": "V3",
        "with_request_body": {
            "max_request_bytes": settings.max_request_bytes,
            "allow_partial_message": True,
        },
    }
    if settings.failure_mode_allow:
        typed_config["failure_mode_allow"] = True

    if protocol is ExtAuthzProtocol.GRPC:
        typed_config["grpc_service"] = {
            "envoy_grpc": {"cluster_name": EXT_AUTHZ_CLUSTER_NAME},
            "timeout": timeout,
            "initial_metadata": _client_headers(),
        }
    else:
        http_service: dict[str, Any] = {
            "server_uri": {
                "uri": f"{protocol.value}://{settings.host}",
                "cluster": EXT_AUTHZ_CLUSTER_NAME,
                "timeout": timeout,
            },
        }
        if settings.path_prefix:
            http_service["path_prefix"] = settings.path_prefix
        http_service["authorization_request"] = {"headers_to_add": _client_headers()}
        typed_config["http_service"] = http_service

    return {"name": EXT_AUTHZ_FILTER_NAME, "typed_config": typed_config}


def _split_host_port(hostport: str) -> tuple[str, str]:
    if hostport.startswith("["):
        end = hostport.find("]")
        if end < 0:
            raise ConfigError(f"address {hostport}: missing ']' in address")
        host, rest = hostport[1:end], hostport[end + 1 :]
        if not rest:
            raise ConfigError(f"address {hostport}: missing port in address")
        if not rest.startswith(":"):
            raise ConfigError(f"address {hostport}: unexpected text after ']'")
        port = rest[1:]
        if "[" in host:
            raise ConfigError(f"address {hostport}: unexpected '[' in address")
    else:
        host, sep, port = hostport.rpartition(":")
        if not sep:
            raise ConfigError(f"address {hostport}: missing port in address")
        if ":" in host:
            raise ConfigError(f"address {hostport}: too many colons in address")
        if "[" in host or "]" in host:
            raise ConfigError(f"address {hostport}: unexpected bracket in address")
    if "[" in port or "]" in port:
        raise ConfigError(f"address {hostport}: unexpected bracket in port")
    return host, port


def _parse_bool(key: str, value: str) -> bool:
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigError(f"{key}: invalid boolean {value!r}")


def _parse_int(key: str, value: str, low: int, high: int) -> int:
    try:
        number = int(value, 0)
    except ValueError as exc:
        raise ConfigError(f"{key}: invalid integer {value!r}") from exc
    if not low <= number <= high:
        raise ConfigError(f"{key}: value {value!r} out of range")
    return number


def _read_settings(environ: Mapping[str, str]) -> ExtAuthzSettings:
    def lookup(field: str) -> str | None:
        value = environ.get(f"{ENV_PREFIX}_{field}")
        return value if value else None

    settings = ExtAuthzSettings(host=environ.get(f"{ENV_PREFIX}_HOST", ""))
    if (value := lookup("FAILUREMODEALLOW")) is not None:
        settings.failure_mode_allow = _parse_bool(f"{ENV_PREFIX}_FAILUREMODEALLOW", value)
    if (value := lookup("MAXREQUESTBYTES")) is not None:
        settings.max_request_bytes = _parse_int(
            f"{ENV_PREFIX}_MAXREQUESTBYTES", value, 0, _UINT32_MAX
        )
    if (value := lookup("TIMEOUT")) is not None:
        settings.timeout = _parse_int(f"{ENV_PREFIX}_TIMEOUT", value, _INT64_MIN, _INT64_MAX)
    if (value := lookup("PROTOCOL")) is not None:
        settings.protocol = value
    if (value := lookup("PATHPREFIX")) is not None:
        settings.path_prefix = value
    return settings


def load_external_authz(environ: Mapping[str, str] | None = None) -> ExternalAuthzConfig:
    """Read the external authorization configuration from the environment.

    Returns a disabled configuration when no ext_authz host is set and raises
    ConfigError when the settings are invalid.
    """
    env = os.environ if environ is None else environ
    if not env.get(f"{ENV_PREFIX}_HOST", ""):
        return ExternalAuthzConfig(enabled=False)

    settings = _read_settings(env)
    if not is_valid_ext_authz_protocol(settings.protocol):
        valid = ", ".join(member.value for member in ExtAuthzProtocol)
        raise ConfigError(f"protocol {settings.protocol} is invalid, must be in [{valid}]")
    settings.protocol = ExtAuthzProtocol(settings.protocol)

    host, port_text = _split_host_port(settings.host)
    if not _DECIMAL_INT.fullmatch(port_text):
        raise ConfigError(f"invalid port {port_text!r}")
    port = int(port_text)
    if port > UNIX_MAX_PORT:
        raise ConfigError(f"port {port} bigger than {UNIX_MAX_PORT}")
    if port < 0:
        raise ConfigError(f"port {port} is negative")

    return ExternalAuthzConfig(
        enabled=True,
        cluster=ext_authz_cluster(host, port, settings.protocol),
        http_filter=external_authz_filter(settings),
    )