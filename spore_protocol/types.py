"""Molecule encoding of Spore and Cluster cell data."""

from __future__ import annotations

from dataclasses import dataclass
from itertools import pairwise

_HEADER = 4


def _u32(data: bytes, at: int) -> int:
    return int.from_bytes(data[at:at + _HEADER], "little")


def _pack_u32(value: int) -> bytes:
    return value.to_bytes(_HEADER, "little")


def _as_bytes(value) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else bytes(value)


def encode_bytes(data):
    """Encode data as a molecule Bytes: little-endian u32 length, then the data."""
    data = bytes(data)
    return _pack_u32(len(data)) + data


def _encode_opt(data) -> bytes:
    return b"" if data is None else encode_bytes(data)


def encode_table(fields):
    """Encode already-encoded fields as a molecule table."""
    fields = [bytes(f) for f in fields]
    position = _HEADER * (1 + len(fields))
    offsets = []
    for item in fields:
        offsets.append(position)
        position += len(item)
    return b"".join([_pack_u32(position), *map(_pack_u32, offsets), *fields])


def decode_table(raw, expected_fields, compatible):
    """Split a molecule table into its raw fields, checking its header.

    In compatible mode, fields beyond expected_fields are allowed and returned.
    """
    raw = bytes(raw)
    if len(raw) < _HEADER:
        raise ValueError("table header is too short")
    total = _u32(raw, 0)
    if total != len(raw):
        raise ValueError("table size does not match its header")
    if len(raw) == _HEADER and expected_fields == 0:
        return []
    if len(raw) < 2 * _HEADER:
        raise ValueError("table header is too short")
    first = _u32(raw, _HEADER)
    if first % _HEADER or first < 2 * _HEADER:
        raise ValueError("table has an invalid first offset")
    count = first // _HEADER - 1
    if compatible:
        if count < expected_fields:
            raise ValueError("table has too few fields")
    elif count != expected_fields:
        raise ValueError("table has the wrong number of fields")
    if len(raw) < first:
        raise ValueError("table header is truncated")
    offsets = [_u32(raw, _HEADER * (1 + i)) for i in range(count)] + [total]
    if any(start > end for start, end in pairwise(offsets)):
        raise ValueError("table offsets are out of order")
    return [raw[start:end] for start, end in pairwise(offsets)]


def _decode_bytes(item: bytes) -> bytes:
    if len(item) < _HEADER or _u32(item, 0) != len(item) - _HEADER:
        raise ValueError("invalid Bytes field")
    return item[_HEADER:]


def _decode_opt(item: bytes) -> bytes | None:
    return None if not item else _decode_bytes(item)


@dataclass
class SporeData:
    """Data of a Spore cell."""

    content_type: bytes
    content: bytes
    cluster_id: bytes | None = None

    def __post_init__(self):
        self.content_type = _as_bytes(self.content_type)
        self.content = bytes(self.content)
        if self.cluster_id is not None:
            self.cluster_id = bytes(self.cluster_id)

    def to_bytes(self):
        """Serialize as a molecule table."""
        return encode_table(
            [
                encode_bytes(self.content_type),
                encode_bytes(self.content),
                _encode_opt(self.cluster_id),
            ]
        )

    @classmethod
    def from_bytes(cls, raw):
        """Decode a molecule table, tolerating extra trailing fields."""
        fields = decode_table(raw, 3, compatible=True)
        return cls(
            content_type=_decode_bytes(fields[0]),
            content=_decode_bytes(fields[1]),
            cluster_id=_decode_opt(fields[2]),
        )


@dataclass
class ClusterData:
    """Data of a Cluster cell (the three-field layout)."""

    name: bytes
    description: bytes
    mutant_id: bytes | None = None

    def __post_init__(self):
        self.name = _as_bytes(self.name)
        self.description = _as_bytes(self.description)
        if self.mutant_id is not None:
            self.mutant_id = bytes(self.mutant_id)

    def to_bytes(self):
        """Serialize as a molecule table."""
        return encode_table(
            [
                encode_bytes(self.name),
                encode_bytes(self.description),
                _encode_opt(self.mutant_id),
            ]
        )

    @classmethod
    def from_bytes(cls, raw):
        """Decode a three-field molecule table, tolerating extra trailing fields."""
        fields = decode_table(raw, 3, compatible=True)
        return cls(
            name=_decode_bytes(fields[0]),
            description=_decode_bytes(fields[1]),
            mutant_id=_decode_opt(fields[2]),
        )