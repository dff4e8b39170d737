"""Validation rules for Spore digital objects, clusters, proxies, agents and extensions."""

__version__ = "0.1.0"

__all__ = [
    "actions",
    "chain",
    "cluster",
    "cluster_agent",
    "cluster_proxy",
    "errors",
    "extension",
    "mime",
    "registry",
    "spore",
    "types",
]