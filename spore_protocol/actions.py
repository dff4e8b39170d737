"""Co-build actions that Spore, Cluster, Proxy and Agent scripts check against."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any

_ID_LEN = 32


def _normalise_id(value, name: str) -> bytes:
    value = bytes(value)
    if len(value) != _ID_LEN:
        raise ValueError(f"{name} must be {_ID_LEN} bytes, got {len(value)}")
    return value


class _SporeAction:
    """Normalises every id and hash field of an action to 32 raw bytes."""

    def __post_init__(self):
        for item in fields(self):
            if item.name.endswith("_id") or item.name == "data_hash":
                normalised = _normalise_id(getattr(self, item.name), item.name)
                object.__setattr__(self, item.name, normalised)


@dataclass(frozen=True)
class MintSpore(_SporeAction):
    """A new Spore is created for the address `to`."""

    spore_id: bytes
    data_hash: bytes
    to: Any


@dataclass(frozen=True)
class TransferSpore(_SporeAction):
    """A Spore moves from one address to another."""

    spore_id: bytes
    from_: Any
    to: Any


@dataclass(frozen=True)
class BurnSpore(_SporeAction):
    """A Spore is destroyed by its owner."""

    spore_id: bytes
    from_: Any


@dataclass(frozen=True)
class MintCluster(_SporeAction):
    """A new Cluster is created for the address `to`."""

    cluster_id: bytes
    data_hash: bytes
    to: Any


@dataclass(frozen=True)
class TransferCluster(_SporeAction):
    """A Cluster moves from one address to another."""

    cluster_id: bytes
    from_: Any
    to: Any


@dataclass(frozen=True)
class MintProxy(_SporeAction):
    """A Cluster Proxy is created for the address `to`."""

    cluster_id: bytes
    proxy_id: bytes
    to: Any


@dataclass(frozen=True)
class TransferProxy(_SporeAction):
    """A Cluster Proxy moves from one address to another."""

    cluster_id: bytes
    proxy_id: bytes
    from_: Any
    to: Any


@dataclass(frozen=True)
class BurnProxy(_SporeAction):
    """A Cluster Proxy is destroyed by its owner."""

    cluster_id: bytes
    proxy_id: bytes
    from_: Any


@dataclass(frozen=True)
class MintAgent(_SporeAction):
    """A Cluster Agent is created through a Cluster Proxy."""

    cluster_id: bytes
    proxy_id: bytes
    to: Any


@dataclass(frozen=True)
class TransferAgent(_SporeAction):
    """A Cluster Agent moves from one address to another."""

    cluster_id: bytes
    from_: Any
    to: Any


@dataclass(frozen=True)
class BurnAgent(_SporeAction):
    """A Cluster Agent is destroyed by its owner."""

    cluster_id: bytes
    from_: Any


@dataclass(frozen=True)
class CoBuildAction:
    """One entry of a co-build message: the script it is meant for and its payload.

    The payload is normally one of the Spore actions above; entries meant for
    other protocols may carry anything.
    """

    script_hash: bytes
    action: Any

    def __post_init__(self):
        object.__setattr__(
            self, "script_hash", _normalise_id(self.script_hash, "script_hash")
        )