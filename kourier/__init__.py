"""Builders for Envoy configuration used by a Knative ingress gateway."""

__version__ = "0.1.0"
__all__ = ["config", "endpoints", "ext_authz", "routes"]