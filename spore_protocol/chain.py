"""Transaction model and the cell queries shared by the Spore scripts."""

from __future__ import annotations

import enum
import hashlib
from dataclasses import dataclass, field
from typing import Any, Callable

from .actions import (
    BurnAgent,
    BurnProxy,
    BurnSpore,
    CoBuildAction,
    MintAgent,
    MintCluster,
    MintProxy,
    MintSpore,
    TransferAgent,
    TransferCluster,
    TransferProxy,
    TransferSpore,
)
from .errors import ErrorCode, SporeError
from .types import ClusterData, decode_table, encode_bytes, encode_table

_PERSONALIZATION = b"ckb-default-hash"
_HASH_LEN = 32

_SPORE_ACTIONS = (
    MintSpore,
    TransferSpore,
    BurnSpore,
    MintCluster,
    TransferCluster,
    MintProxy,
    TransferProxy,
    BurnProxy,
    MintAgent,
    TransferAgent,
    BurnAgent,
)


def blake2b_256(data):
    """Blake2b-256 with the chain's default personalization."""
    return hashlib.blake2b(
        bytes(data), digest_size=_HASH_LEN, person=_PERSONALIZATION
    ).digest()


def _hash32(value, name: str) -> bytes:
    value = bytes(value)
    if len(value) != _HASH_LEN:
        raise ValueError(f"{name} must be {_HASH_LEN} bytes, got {len(value)}")
    return value


class Source(enum.Enum):
    """Where in a transaction a cell is looked up."""

    INPUT = enum.auto()
    OUTPUT = enum.auto()
    CELL_DEP = enum.auto()
    GROUP_INPUT = enum.auto()
    GROUP_OUTPUT = enum.auto()


@dataclass(frozen=True)
class Script:
    """A lock or type script: code hash, hash type and arguments."""

    code_hash: bytes
    hash_type: int = 0
    args: bytes = b""

    def __post_init__(self):
        object.__setattr__(self, "code_hash", _hash32(self.code_hash, "code_hash"))
        if not 0 <= self.hash_type <= 0xFF:
            raise ValueError(f"hash_type {self.hash_type} does not fit in a byte")
        object.__setattr__(self, "args", bytes(self.args))

    def to_bytes(self):
        """Serialize as a molecule table."""
        return encode_table(
            [self.code_hash, bytes([self.hash_type]), encode_bytes(self.args)]
        )

    def hash(self):
        """The script hash."""
        return blake2b_256(self.to_bytes())


@dataclass(frozen=True)
class OutPoint:
    """A reference to an output of an earlier transaction."""

    tx_hash: bytes
    index: int = 0

    def __post_init__(self):
        object.__setattr__(self, "tx_hash", _hash32(self.tx_hash, "tx_hash"))
        if not 0 <= self.index < 1 << 32:
            raise ValueError(f"out point index {self.index} does not fit in u32")

    def to_bytes(self):
        """Serialize as a molecule struct: tx hash, then u32 index."""
        return self.tx_hash + self.index.to_bytes(4, "little")


@dataclass(frozen=True)
class CellInput:
    """A transaction input: the spent out point and its since value."""

    previous_output: OutPoint
    since: int = 0

    def __post_init__(self):
        if not 0 <= self.since < 1 << 64:
            raise ValueError(f"since {self.since} does not fit in u64")

    def to_bytes(self):
        """Serialize as a molecule struct: u64 since, then the out point."""
        return self.since.to_bytes(8, "little") + self.previous_output.to_bytes()


@dataclass(frozen=True)
class Cell:
    """A live cell: capacity, lock, optional type script and data."""

    capacity: int
    lock: Script
    type_: Script | None = None
    data: bytes = b""

    def __post_init__(self):
        object.__setattr__(self, "data", bytes(self.data))


@dataclass
class Transaction:
    """A resolved transaction together with its co-build message, if any."""

    inputs: list[Cell] = field(default_factory=list)
    outputs: list[Cell] = field(default_factory=list)
    cell_deps: list[Cell] = field(default_factory=list)
    cell_inputs: list[CellInput] = field(default_factory=list)
    message: list[CoBuildAction] | None = None


@dataclass
class ScriptContext:
    """The running script, the transaction it checks and the known code hashes."""

    transaction: Transaction
    script: Script
    code_hashes: Any = None

    def cells(self, source):
        """The cells visible from source, in transaction order."""
        tx = self.transaction
        if source is Source.INPUT:
            return list(tx.inputs)
        if source is Source.OUTPUT:
            return list(tx.outputs)
        if source is Source.CELL_DEP:
            return list(tx.cell_deps)
        if source is Source.GROUP_INPUT:
            return [cell for cell in tx.inputs if cell.type_ == self.script]
        if source is Source.GROUP_OUTPUT:
            return [cell for cell in tx.outputs if cell.type_ == self.script]
        raise ValueError(f"unknown source {source!r}")


def _position(cells, predicate: Callable[[Cell], bool]) -> int | None:
    return next((i for i, cell in enumerate(cells) if predicate(cell)), None)


def calc_type_id(tx_first_input, output_index):
    """Type id of an output: hash of the first input and the output index."""
    if isinstance(tx_first_input, CellInput):
        tx_first_input = tx_first_input.to_bytes()
    hasher = hashlib.blake2b(digest_size=_HASH_LEN, person=_PERSONALIZATION)
    hasher.update(bytes(tx_first_input))
    hasher.update(output_index.to_bytes(8, "little"))
    return hasher.digest()


def load_self_id(context):
    """The first 32 bytes of the running script's arguments."""
    args = context.script.args
    if len(args) < _HASH_LEN:
        raise SporeError(ErrorCode.LENGTH_NOT_ENOUGH)
    return args[:_HASH_LEN]


def load_type_args(context, index, source):
    """Type script arguments of a cell, or empty bytes when there are none."""
    cells = context.cells(source)
    if not 0 <= index < len(cells) or cells[index].type_ is None:
        return b""
    return cells[index].type_.args


def verify_type_id(context, output_index):
    """Return the type id when the output's type args start with it, else None."""
    cell_inputs = context.transaction.cell_inputs
    if not cell_inputs:
        return None
    expected = calc_type_id(cell_inputs[0], output_index)
    args = load_type_args(context, output_index, Source.OUTPUT)
    if args[:_HASH_LEN] == expected:
        return expected
    return None


def find_position_by_type_args(context, args, source, filter_fn=None):
    """Index of the first cell whose type args equal args and whose code hash passes."""
    args = bytes(args)

    def matches(cell: Cell) -> bool:
        if cell.type_ is None:
            return False
        if filter_fn is not None and not filter_fn(cell.type_.code_hash):
            return False
        return cell.type_.args == args

    return _position(context.cells(source), matches)


def find_position_by_type(context, type_script, source):
    """Index of the first cell with exactly this type script."""
    wanted = type_script.to_bytes()
    return _position(
        context.cells(source),
        lambda cell: cell.type_ is not None and cell.type_.to_bytes() == wanted,
    )


def find_position_by_type_hash(context, type_hash, source):
    """Index of the first cell whose type script hashes to type_hash."""
    type_hash = bytes(type_hash)
    return _position(
        context.cells(source),
        lambda cell: cell.type_ is not None and cell.type_.hash() == type_hash,
    )


def find_position_by_type_and_data(context, target_data, source, filter_fn=None):
    """Index of the first cell holding target_data whose type hash passes filter_fn."""
    target_data = bytes(target_data)

    def matches(cell: Cell) -> bool:
        if cell.data != target_data:
            return False
        if filter_fn is None:
            return True
        return cell.type_ is not None and filter_fn(cell.type_.hash())

    return _position(context.cells(source), matches)


def find_position_by_lock_hash(context, lock_hash, source):
    """Index of the first cell whose lock script hashes to lock_hash."""
    lock_hash = bytes(lock_hash)
    return _position(context.cells(source), lambda cell: cell.lock.hash() == lock_hash)


def calc_capacity_sum(context, lock_hash, source):
    """Total capacity of the cells locked by lock_hash."""
    lock_hash = bytes(lock_hash)
    return sum(
        cell.capacity
        for cell in context.cells(source)
        if cell.lock.hash() == lock_hash
    )


def check_spore_address(context, group_source, address):
    """Check that the first group cell is locked by the action's address script."""
    group = context.cells(group_source)
    if not group:
        raise SporeError(ErrorCode.INDEX_OUT_OF_BOUND)
    lock = group[0].lock
    if not isinstance(address, Script) or address.to_bytes() != lock.to_bytes():
        raise SporeError(ErrorCode.SPORE_ACTION_ADDRESSES_MISMATCH)


def extract_spore_action(context):
    """The single co-build action addressed to the running script."""
    message = context.transaction.message
    if message is None:
        raise SporeError(ErrorCode.INVALID_COBUILD_WITNESS_LAYOUT)
    script_hash = context.script.hash()
    matching = [entry for entry in message if entry.script_hash == script_hash]
    if len(matching) != 1:
        raise SporeError(ErrorCode.SPORE_ACTION_DUPLICATED)
    action = matching[0].action
    if not isinstance(action, _SPORE_ACTIONS):
        raise SporeError(ErrorCode.INVALID_COBUILD_MESSAGE)
    return action


def compatible_load_cluster_data(raw_cluster_data):
    """Decode cluster data in either the two-field or the three-field layout."""
    try:
        fields = decode_table(raw_cluster_data, 2, compatible=True)
        if len(fields) == 2:
            return ClusterData.from_bytes(encode_table([*fields, b""]))
        return ClusterData.from_bytes(raw_cluster_data)
    except ValueError as exc:
        raise SporeError(ErrorCode.INVALID_CLUSTER_DATA) from exc