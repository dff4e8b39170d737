"""Code hashes by which the Spore scripts recognise each other."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .chain import blake2b_256

_HASH_LEN = 32


def code_hash(binary):
    """The code hash of a script binary."""
    return blake2b_256(binary)


def _frozen_hashes(frozen, key: str) -> tuple[bytes, ...]:
    if not frozen:
        return ()
    hashes = []
    for value in frozen.get(key, ()):
        if isinstance(value, str):
            value = bytes.fromhex(value.removeprefix("0x"))
        value = bytes(value)
        if len(value) != _HASH_LEN:
            raise ValueError(f"frozen {key} hash must be {_HASH_LEN} bytes")
        hashes.append(value)
    return tuple(hashes)


@dataclass(frozen=True)
class CodeHashes:
    """Accepted code hashes: earlier frozen releases first, the current build last."""

    cluster: tuple[bytes, ...] = ()
    cluster_agent: tuple[bytes, ...] = ()
    cluster_proxy: tuple[bytes, ...] = ()
    mutant: tuple[bytes, ...] = ()
    lua_lib: bytes | None = None

    @classmethod
    def from_binaries(cls, build_dir, frozen=None):
        """Hash the binaries in build_dir and append them to the frozen hashes.

        frozen maps "cluster", "cluster_agent", "cluster_proxy" and "mutant"
        to hashes (bytes or hex strings) of earlier deployments.
        """
        build_dir = Path(build_dir)

        def current(name: str) -> bytes:
            return code_hash((build_dir / name).read_bytes())

        return cls(
            cluster=_frozen_hashes(frozen, "cluster") + (current("cluster"),),
            cluster_agent=_frozen_hashes(frozen, "cluster_agent")
            + (current("cluster_agent"),),
            cluster_proxy=_frozen_hashes(frozen, "cluster_proxy")
            + (current("cluster_proxy"),),
            mutant=_frozen_hashes(frozen, "mutant") + (current("spore_extension_lua"),),
            lua_lib=current("libckblua.so"),
        )