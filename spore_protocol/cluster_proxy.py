"""Type script rules for Cluster Proxy cells."""

from __future__ import annotations

from .actions import BurnProxy, MintProxy, TransferProxy
from .chain import (
    Source,
    check_spore_address,
    extract_spore_action,
    find_position_by_lock_hash,
    find_position_by_type,
    find_position_by_type_args,
    load_self_id,
    verify_type_id,
)
from .errors import ErrorCode, SporeError, exit_code
from .registry import CodeHashes

CLUSTER_PROXY_ID_LEN = 32
CLUSTER_PROXY_ID_WITH_PAYMENT_LEN = CLUSTER_PROXY_ID_LEN + 8


def _process_creation(context, index: int) -> None:
    cluster_hashes = (context.code_hashes or CodeHashes()).cluster

    def is_cluster(code_hash: bytes) -> bool:
        return code_hash in cluster_hashes

    cluster_id = context.cells(Source.GROUP_OUTPUT)[0].data
    dep_index = find_position_by_type_args(context, cluster_id, Source.CELL_DEP, is_cluster)
    if dep_index is None:
        raise SporeError(ErrorCode.CLUSTER_CELL_NOT_IN_DEP)

    if len(context.script.args) not in (
        CLUSTER_PROXY_ID_LEN,
        CLUSTER_PROXY_ID_WITH_PAYMENT_LEN,
    ):
        raise SporeError(ErrorCode.INVALID_PROXY_ARGS)

    proxy_id = verify_type_id(context, index)
    if proxy_id is None:
        raise SporeError(ErrorCode.INVALID_PROXY_ID)

    in_input = find_position_by_type_args(context, cluster_id, Source.INPUT, is_cluster)
    in_output = find_position_by_type_args(context, cluster_id, Source.OUTPUT, is_cluster)
    if in_input is None or in_output is None:
        lock_hash = context.cells(Source.CELL_DEP)[dep_index].lock.hash()
        for source in (Source.OUTPUT, Source.INPUT):
            if find_position_by_lock_hash(context, lock_hash, source) is None:
                raise SporeError(ErrorCode.CLUSTER_OWNERSHIP_VERIFY_FAILED)

    action = extract_spore_action(context)
    if not isinstance(action, MintProxy):
        raise SporeError(ErrorCode.SPORE_ACTION_MISMATCH)
    if action.proxy_id != proxy_id or action.cluster_id != cluster_id:
        raise SporeError(ErrorCode.SPORE_ACTION_FIELD_MISMATCH)
    check_spore_address(context, Source.GROUP_OUTPUT, action.to)


def _process_transfer(context) -> None:
    input_data = context.cells(Source.GROUP_INPUT)[0].data
    output_data = context.cells(Source.GROUP_OUTPUT)[0].data
    if input_data != output_data:
        raise SporeError(ErrorCode.IMMUTABLE_PROXY_FIELD_MODIFICATION)

    action = extract_spore_action(context)
    if not isinstance(action, TransferProxy):
        raise SporeError(ErrorCode.SPORE_ACTION_MISMATCH)
    if input_data != action.cluster_id or load_self_id(context) != action.proxy_id:
        raise SporeError(ErrorCode.SPORE_ACTION_FIELD_MISMATCH)
    check_spore_address(context, Source.GROUP_INPUT, action.from_)
    check_spore_address(context, Source.GROUP_OUTPUT, action.to)


def _process_destruction(context) -> None:
    cluster_id = context.cells(Source.GROUP_INPUT)[0].data
    proxy_id = load_self_id(context)

    action = extract_spore_action(context)
    if not isinstance(action, BurnProxy):
        raise SporeError(ErrorCode.SPORE_ACTION_MISMATCH)
    if cluster_id != action.cluster_id or proxy_id != action.proxy_id:
        raise SporeError(ErrorCode.SPORE_ACTION_FIELD_MISMATCH)
    check_spore_address(context, Source.GROUP_INPUT, action.from_)


def verify(context):
    """Check the transaction against the Cluster Proxy rules; raise SporeError on failure."""
    outputs = context.cells(Source.GROUP_OUTPUT)
    if len(outputs) > 1:
        raise SporeError(ErrorCode.INVALID_PROXY_OPERATION)
    inputs = context.cells(Source.GROUP_INPUT)
    if len(inputs) > 1:
        raise SporeError(ErrorCode.INVALID_PROXY_OPERATION)

    match (len(inputs), len(outputs)):
        case (0, 1):
            index = find_position_by_type(context, context.script, Source.OUTPUT) or 0
            _process_creation(context, index)
        case (1, 0):
            _process_destruction(context)
        case (1, 1):
            _process_transfer(context)
        case _:
            raise RuntimeError("the script has no cell in the transaction")


def program_entry(context):
    """Run the Cluster Proxy checks and return the exit code: 0 on success."""
    try:
        verify(context)
    except SporeError as error:
        return exit_code(error)
    return 0