"""Builders for Envoy clusters, endpoints and weighted clusters."""

from __future__ import annotations

import enum
from collections.abc import Iterable, Mapping
from datetime import timedelta
from typing import Any

HTTP_PROTOCOL_OPTIONS_KEY = "envoy.extensions.upstreams.http.v3.HttpProtocolOptions"
HTTP_PROTOCOL_OPTIONS_TYPE = "type.googleapis.com/" + HTTP_PROTOCOL_OPTIONS_KEY


class DiscoveryType(str, enum.Enum):
    """Service discovery type of a cluster."""

    STATIC = "STATIC"
    STRICT_DNS = "STRICT_DNS"
    LOGICAL_DNS = "LOGICAL_DNS"
    EDS = "EDS"
    ORIGINAL_DST = "ORIGINAL_DST"


def format_duration(value: timedelta | int | float) -> str:
    """Format a duration (a timedelta or seconds) as an Envoy duration string."""
    if isinstance(value, timedelta):
        total_nanos = (
            (value.days * 86400 + value.seconds) * 1_000_000_000
            + value.microseconds * 1000
        )
    else:
        total_nanos = round(value * 1_000_000_000)
    sign = "-" if total_nanos < 0 else ""
    seconds, nanos = divmod(abs(total_nanos), 1_000_000_000)
    if nanos == 0:
        fraction = ""
    elif nanos % 1_000_000 == 0:
        fraction = f".{nanos // 1_000_000:03d}"
    elif nanos % 1000 == 0:
        fraction = f".{nanos // 1000:06d}"
    else:
        fraction = f".{nanos:09d}"
    return f"{sign}{seconds}{fraction}s"


def headers_to_add(headers: Mapping[str, str] | None) -> list[dict[str, Any]]:
    """Turn a header mapping into header options that replace existing values."""
    if not headers:
        return []
    return [
        {"header": {"key": name, "value": value}, "append": False}
        for name, value in headers.items()
    ]


def new_lb_endpoint(ip: str, port: int) -> dict[str, Any]:
    """Create a load-balancer endpoint for a TCP socket address."""
    return {
        "endpoint": {
            "address": {
                "socket_address": {
                    "protocol": "TCP",
                    "address": ip,
                    "port_value": port,
                    "ipv4_compat": True,
                }
            }
        }
    }


def new_cluster(
    name: str,
    connect_timeout: timedelta | int | float,
    endpoints: Iterable[dict[str, Any]],
    is_http2: bool,
    transport_socket: dict[str, Any] | None,
    discovery_type: DiscoveryType | str,
) -> dict[str, Any]:
    """Create a cluster with the given settings."""
    cluster: dict[str, Any] = {
        "name": name,
        "type": DiscoveryType(discovery_type).value,
        "connect_timeout": format_duration(connect_timeout),
        "load_assignment": {
            "cluster_name": name,
            "endpoints": [{"lb_endpoints": list(endpoints)}],
        },
    }
    if transport_socket is not None:
        cluster["transport_socket"] = transport_socket
    if is_http2:
        cluster["typed_extension_protocol_options"] = {
            HTTP_PROTOCOL_OPTIONS_KEY: {
                "@type": HTTP_PROTOCOL_OPTIONS_TYPE,
                "explicit_http_config": {"http2_protocol_options": {}},
            }
        }
    return cluster


def new_weighted_cluster(
    name: str, traffic_perc: int, headers: Mapping[str, str] | None
) -> dict[str, Any]:
    """Create a weighted cluster entry for a route."""
    weighted: dict[str, Any] = {"name": name, "weight": traffic_perc}
    to_add = headers_to_add(headers)
    if to_add:
        weighted["request_headers_to_add"] = to_add
    return weighted