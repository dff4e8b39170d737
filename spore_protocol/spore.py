"""Type script rules for Spore cells: minting, transfer and burning."""

from __future__ import annotations

import enum

from .actions import BurnSpore, MintSpore, TransferSpore
from .chain import (
    Source,
    blake2b_256,
    calc_capacity_sum,
    check_spore_address,
    compatible_load_cluster_data,
    extract_spore_action,
    find_position_by_lock_hash,
    find_position_by_type,
    find_position_by_type_args,
    load_self_id,
    verify_type_id,
)
from .errors import ErrorCode, LuaScriptError, SporeError, exit_code
from .mime import Mime
from .registry import CodeHashes
from .types import SporeData

MUTANT_ID_LEN = 32
MUTANT_ID_WITH_PAYMENT_LEN = MUTANT_ID_LEN + 8


class Operation(enum.Enum):
    """What is being done to a Spore; the value is the extension's mode argument."""

    MINT = b"0"
    TRANSFER = b"1"
    BURN = b"2"


def _hashes(context) -> CodeHashes:
    return context.code_hashes or CodeHashes()


def _digit_arg(value: int) -> bytes:
    """A single ASCII digit for value, wrapping as a byte; empty if it wraps to NUL."""
    byte = (0x30 + value) & 0xFF
    return bytes([byte]) if byte else b""


def _load_spore_data(raw: bytes) -> SporeData:
    try:
        return SporeData.from_bytes(raw)
    except ValueError as exc:
        raise SporeError(ErrorCode.INVALID_SPORE_DATA) from exc


def _check_payment(context, mutant_cell) -> None:
    args = mutant_cell.type_.args
    # Only bytes [32, 40) are read; anything after is left to the extension's author.
    if len(args) <= MUTANT_ID_LEN:
        return
    if len(args) < MUTANT_ID_WITH_PAYMENT_LEN:
        raise SporeError(ErrorCode.INVALID_EXTENSION_PAYMENT_FORMAT)
    lock_hash = mutant_cell.lock.hash()
    input_capacity = calc_capacity_sum(context, lock_hash, Source.INPUT)
    output_capacity = calc_capacity_sum(context, lock_hash, Source.OUTPUT)
    minimal_payment = int.from_bytes(
        args[MUTANT_ID_LEN:MUTANT_ID_WITH_PAYMENT_LEN], "little"
    )
    if input_capacity + minimal_payment > output_capacity:
        raise SporeError(ErrorCode.EXTENSION_PAYMENT_NOT_ENOUGH)


def _run_extension(context, mime: Mime, op: Operation, indexes, executor) -> bool:
    """Hand over to the first applied extension; True when one took over.

    The extension replaces the running script, so nothing after it is checked
    and any further mutants are never reached.
    """
    if not mime.mutants:
        return False
    mutant_id = mime.mutants[0]
    mutant_hashes = _hashes(context).mutant
    deps = context.cells(Source.CELL_DEP)
    mutant_index = next(
        (
            i
            for i, cell in enumerate(deps)
            if cell.type_ is not None
            and cell.type_.code_hash in mutant_hashes
            and cell.type_.args[:MUTANT_ID_LEN] == mutant_id
        ),
        None,
    )
    if mutant_index is None:
        raise SporeError(ErrorCode.EXTENSION_CELL_NOT_IN_DEP)
    mutant_cell = deps[mutant_index]
    if op is Operation.MINT:
        _check_payment(context, mutant_cell)
    if executor is None:
        raise ValueError("an executor is needed to run spore extensions")
    argv = [op.value, _digit_arg(mutant_index), *(_digit_arg(i) for i in indexes)]
    executor(mutant_cell.type_.code_hash, argv)
    return True


def _check_multipart(raw_content_type: bytes, mime: Mime, content: bytes) -> None:
    boundary_range = mime.get_param(raw_content_type, "boundary")
    if boundary_range is None:
        raise SporeError(ErrorCode.INVALID_CONTENT_TYPE)
    try:
        boundary = raw_content_type[boundary_range].decode("utf-8")
    except UnicodeDecodeError as exc:
        raise SporeError(ErrorCode.BOUNDARY_ENCODING) from exc
    if f"--{boundary}".encode("utf-8") not in content:
        raise SporeError(ErrorCode.INVALID_MULTIPART_CONTENT)


def _check_cluster(context, cluster_id: bytes, mime: Mime) -> None:
    hashes = _hashes(context)

    def is_cluster(code_hash: bytes) -> bool:
        return code_hash in hashes.cluster

    def is_agent(code_hash: bytes) -> bool:
        return code_hash in hashes.cluster_agent

    dep_index = find_position_by_type_args(context, cluster_id, Source.CELL_DEP, is_cluster)
    if dep_index is None:
        raise SporeError(ErrorCode.CLUSTER_CELL_NOT_IN_DEP)
    deps = context.cells(Source.CELL_DEP)
    cluster_data = compatible_load_cluster_data(deps[dep_index].data)

    if cluster_data.mutant_id is not None and cluster_data.mutant_id not in mime.mutants:
        raise SporeError(ErrorCode.CLUSTER_REQUIRES_MUTANT_APPLIED)

    def present(filter_fn, source) -> bool:
        return find_position_by_type_args(context, cluster_id, source, filter_fn) is not None

    cluster_moves = present(is_cluster, Source.INPUT) and present(is_cluster, Source.OUTPUT)
    agent_moves = present(is_agent, Source.INPUT) and present(is_agent, Source.OUTPUT)
    if cluster_moves or agent_moves:
        return

    agent_index = find_position_by_type_args(context, cluster_id, Source.CELL_DEP, is_agent)
    owner = deps[agent_index] if agent_index is not None else deps[dep_index]
    lock_hash = owner.lock.hash()
    for source in (Source.OUTPUT, Source.INPUT):
        if find_position_by_lock_hash(context, lock_hash, source) is None:
            raise SporeError(ErrorCode.CLUSTER_OWNERSHIP_VERIFY_FAILED)


def _process_creation(context, index: int, executor) -> None:
    raw = context.cells(Source.OUTPUT)[index].data
    spore_data = _load_spore_data(raw)
    if not spore_data.content:
        raise SporeError(ErrorCode.EMPTY_CONTENT)
    if not spore_data.content_type:
        raise SporeError(ErrorCode.INVALID_CONTENT_TYPE)
    spore_id = verify_type_id(context, index)
    if spore_id is None:
        raise SporeError(ErrorCode.INVALID_SPORE_ID)

    content_type = spore_data.content_type
    mime = Mime.parse(content_type)
    if _run_extension(context, mime, Operation.MINT, [index], executor):
        return

    if content_type[mime.main_type] == b"multipart":
        _check_multipart(content_type, mime, spore_data.content)

    if spore_data.cluster_id is not None:
        _check_cluster(context, spore_data.cluster_id, mime)

    action = extract_spore_action(context)
    if not isinstance(action, MintSpore):
        raise SporeError(ErrorCode.SPORE_ACTION_MISMATCH)
    if action.spore_id != spore_id or action.data_hash != blake2b_256(raw):
        raise SporeError(ErrorCode.SPORE_ACTION_FIELD_MISMATCH)
    check_spore_address(context, Source.GROUP_OUTPUT, action.to)


def _process_destruction(context, executor) -> None:
    spore_data = _load_spore_data(context.cells(Source.GROUP_INPUT)[0].data)
    mime = Mime.parse(spore_data.content_type)
    if mime.immortal:
        raise SporeError(ErrorCode.DESTROY_IMMORTAL_NFT)

    if mime.mutants:
        index = find_position_by_type(context, context.script, Source.INPUT)
        if index is None:
            raise SporeError(ErrorCode.INDEX_OUT_OF_BOUND)
        if _run_extension(context, mime, Operation.BURN, [index], executor):
            return

    action = extract_spore_action(context)
    if not isinstance(action, BurnSpore):
        raise SporeError(ErrorCode.SPORE_ACTION_MISMATCH)
    if action.spore_id != load_self_id(context):
        raise SporeError(ErrorCode.SPORE_ACTION_FIELD_MISMATCH)
    check_spore_address(context, Source.GROUP_INPUT, action.from_)


def _process_transfer(context, executor) -> None:
    input_raw = context.cells(Source.GROUP_INPUT)[0].data
    output_raw = context.cells(Source.GROUP_OUTPUT)[0].data
    input_data = _load_spore_data(input_raw)
    _load_spore_data(output_raw)
    if input_raw != output_raw:
        raise SporeError(ErrorCode.MODIFY_SPORE_PERMANENT_FIELD)

    mime = Mime.parse(input_data.content_type)
    if mime.mutants:
        input_index = find_position_by_type(context, context.script, Source.INPUT)
        output_index = find_position_by_type(context, context.script, Source.OUTPUT)
        if input_index is None or output_index is None:
            raise SporeError(ErrorCode.INDEX_OUT_OF_BOUND)
        if _run_extension(
            context, mime, Operation.TRANSFER, [input_index, output_index], executor
        ):
            return

    action = extract_spore_action(context)
    if not isinstance(action, TransferSpore):
        raise SporeError(ErrorCode.SPORE_ACTION_MISMATCH)
    if action.spore_id != load_self_id(context):
        raise SporeError(ErrorCode.SPORE_ACTION_FIELD_MISMATCH)
    check_spore_address(context, Source.GROUP_INPUT, action.from_)
    check_spore_address(context, Source.GROUP_OUTPUT, action.to)


def verify(context, executor=None):
    """Check the transaction against the Spore rules; raise SporeError on failure.

    executor(code_hash, argv) runs an extension in place of this script, raising
    on failure; once it returns, verification is over.
    """
    outputs = context.cells(Source.GROUP_OUTPUT)
    if len(outputs) > 1:
        raise SporeError(ErrorCode.CONFLICT_CREATION)
    inputs = context.cells(Source.GROUP_INPUT)
    if len(inputs) > 1:
        raise SporeError(ErrorCode.MULTIPLE_SPEND)

    match (len(inputs), len(outputs)):
        case (0, 1):
            index = find_position_by_type(context, context.script, Source.OUTPUT)
            if index is None:
                raise SporeError(ErrorCode.INDEX_OUT_OF_BOUND)
            _process_creation(context, index, executor)
        case (1, 0):
            _process_destruction(context, executor)
        case (1, 1):
            _process_transfer(context, executor)
        case _:
            raise RuntimeError("the script has no cell in the transaction")


def program_entry(context, executor=None):
    """Run the Spore checks and return the exit code: 0 on success."""
    try:
        verify(context, executor)
    except (SporeError, LuaScriptError) as error:
        return exit_code(error)
    return 0