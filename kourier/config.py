"""Kourier controller settings and the ``config-kourier`` config map."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

CONTROLLER_NAME = "net-kourier-controller"

INTERNAL_SERVICE_NAME = "kourier-internal"
EXTERNAL_SERVICE_NAME = "kourier"

HTTP_PORT_EXTERNAL = 8080
HTTP_PORT_INTERNAL = 8081
HTTPS_PORT_INTERNAL = 8444
HTTPS_PORT_EXTERNAL = 8443
HTTP_PORT_PROB = 8090
HTTPS_PORT_PROB = 9443

INTERNAL_KOURIER_DOMAIN = "internalkourier"

GATEWAY_NAMESPACE_ENV = "KOURIER_GATEWAY_NAMESPACE"
SYSTEM_NAMESPACE_ENV = "SYSTEM_NAMESPACE"

KOURIER_INGRESS_CLASS_NAME = "kourier.ingress.networking.knative.dev"

CLUSTER_DOMAIN = "cluster.local"

CONFIG_NAME = "config-kourier"

ENABLE_SERVICE_ACCESS_LOGGING_KEY = "enable-service-access-logging"
ENABLE_PROXY_PROTOCOL_KEY = "enable-proxy-protocol"
CLUSTER_CERT_KEY = "cluster-cert-secret"

_DISABLE_HTTP2_ANNOTATION_KEYS = ("kourier.knative.dev/disable-http2",)

_TRUE_VALUES = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_VALUES = frozenset({"0", "f", "F", "FALSE", "false", "False"})


class ConfigError(ValueError):
    """Raised when configuration cannot be read or is invalid."""


@dataclass
class KourierConfig:
    """Configuration for Kourier."""

    enable_service_access_logging: bool = True
    enable_proxy_protocol: bool = False
    cluster_cert_secret: str = ""


def _service_hostname(name: str, namespace: str) -> str:
    return f"{name}.{namespace}.svc.{CLUSTER_DOMAIN}"


def service_hostnames() -> tuple[str, str]:
    """Return the external and internal service hostnames."""
    namespace = gateway_namespace()
    return (
        _service_hostname(EXTERNAL_SERVICE_NAME, namespace),
        _service_hostname(INTERNAL_SERVICE_NAME, namespace),
    )


def gateway_namespace() -> str:
    """Return the namespace where the gateway is deployed."""
    namespace = os.environ.get(GATEWAY_NAMESPACE_ENV, "")
    if namespace:
        return namespace
    system_namespace = os.environ.get(SYSTEM_NAMESPACE_ENV, "")
    if not system_namespace:
        raise ConfigError(
            f"neither {GATEWAY_NAMESPACE_ENV} nor {SYSTEM_NAMESPACE_ENV} is set"
        )
    return system_namespace


def get_disable_http2(annotations: Mapping[str, str] | None) -> str:
    """Return the value of the disable-http2 annotation, or an empty string."""
    if not annotations:
        return ""
    for key in _DISABLE_HTTP2_ANNOTATION_KEYS:
        if key in annotations:
            return annotations[key]
    return ""


def default_config() -> KourierConfig:
    """Return the default Kourier configuration."""
    return KourierConfig()


def _parse_bool(key: str, value: str) -> bool:
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigError(f"failed to parse {key!r}: invalid boolean {value!r}")


def new_config_from_map(config_map: Mapping[str, str] | None) -> KourierConfig:
    """Build a configuration from config map data, starting from the defaults."""
    config = default_config()
    data = config_map or {}
    if ENABLE_SERVICE_ACCESS_LOGGING_KEY in data:
        config.enable_service_access_logging = _parse_bool(
            ENABLE_SERVICE_ACCESS_LOGGING_KEY, data[ENABLE_SERVICE_ACCESS_LOGGING_KEY]
        )
    if ENABLE_PROXY_PROTOCOL_KEY in data:
        config.enable_proxy_protocol = _parse_bool(
            ENABLE_PROXY_PROTOCOL_KEY, data[ENABLE_PROXY_PROTOCOL_KEY]
        )
    if CLUSTER_CERT_KEY in data:
        config.cluster_cert_secret = data[CLUSTER_CERT_KEY]
    return config


def new_config_from_configmap(configmap: Any) -> KourierConfig:
    """Build a configuration from a config map object or its mapping form."""
    if isinstance(configmap, Mapping):
        data = configmap.get("data")
    else:
        data = getattr(configmap, "data", None)
    return new_config_from_map(data)