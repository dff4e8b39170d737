"""Type script rules for Cluster cells: creation and transfer, never destruction."""

from __future__ import annotations

from .actions import MintCluster, TransferCluster
from .chain import (
    Source,
    blake2b_256,
    check_spore_address,
    extract_spore_action,
    find_position_by_type,
    find_position_by_type_args,
    load_self_id,
    verify_type_id,
)
from .errors import ErrorCode, SporeError, exit_code
from .registry import CodeHashes
from .types import ClusterData


def _load_cluster_data(raw: bytes) -> ClusterData:
    try:
        return ClusterData.from_bytes(raw)
    except ValueError as exc:
        raise SporeError(ErrorCode.INVALID_CLUSTER_DATA) from exc


def _process_creation(context, index: int) -> None:
    raw = context.cells(Source.OUTPUT)[index].data
    cluster_data = _load_cluster_data(raw)
    if not cluster_data.name:
        raise SporeError(ErrorCode.EMPTY_NAME)
    cluster_id = verify_type_id(context, index)
    if cluster_id is None:
        raise SporeError(ErrorCode.INVALID_CLUSTER_ID)

    if cluster_data.mutant_id is not None:
        mutants = (context.code_hashes or CodeHashes()).mutant
        position = find_position_by_type_args(
            context, context.script.args, Source.CELL_DEP, lambda h: h in mutants
        )
        if position is None:
            raise SporeError(ErrorCode.MUTANT_NOT_IN_DEPS)

    action = extract_spore_action(context)
    if not isinstance(action, MintCluster):
        raise SporeError(ErrorCode.SPORE_ACTION_MISMATCH)
    if action.cluster_id != cluster_id or action.data_hash != blake2b_256(raw):
        raise SporeError(ErrorCode.SPORE_ACTION_FIELD_MISMATCH)
    check_spore_address(context, Source.GROUP_OUTPUT, action.to)


def _process_transfer(context) -> None:
    input_raw = context.cells(Source.GROUP_INPUT)[0].data
    output_raw = context.cells(Source.GROUP_OUTPUT)[0].data
    _load_cluster_data(input_raw)
    _load_cluster_data(output_raw)
    if input_raw != output_raw:
        raise SporeError(ErrorCode.MODIFY_CLUSTER_PERMANENT_FIELD)

    action = extract_spore_action(context)
    if not isinstance(action, TransferCluster):
        raise SporeError(ErrorCode.SPORE_ACTION_MISMATCH)
    if action.cluster_id != load_self_id(context):
        raise SporeError(ErrorCode.SPORE_ACTION_FIELD_MISMATCH)
    check_spore_address(context, Source.GROUP_INPUT, action.from_)
    check_spore_address(context, Source.GROUP_OUTPUT, action.to)


def verify(context):
    """Check the transaction against the Cluster rules; raise SporeError on failure."""
    outputs = context.cells(Source.GROUP_OUTPUT)
    if len(outputs) > 1:
        raise SporeError(ErrorCode.INVALID_CLUSTER_OPERATION)
    inputs = context.cells(Source.GROUP_INPUT)
    if len(inputs) > 1:
        raise SporeError(ErrorCode.INVALID_CLUSTER_OPERATION)

    match (len(inputs), len(outputs)):
        case (0, 1):
            index = find_position_by_type(context, context.script, Source.OUTPUT) or 0
            _process_creation(context, index)
        case (1, 0):
            raise SporeError(ErrorCode.INVALID_CLUSTER_OPERATION)
        case (1, 1):
            _process_transfer(context)
        case _:
            raise RuntimeError("the script has no cell in the transaction")


def program_entry(context):
    """Run the Cluster checks and return the exit code: 0 on success."""
    try:
        verify(context)
    except SporeError as error:
        return exit_code(error)
    return 0