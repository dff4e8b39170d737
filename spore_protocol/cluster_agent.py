"""Type script rules for Cluster Agent cells."""

from __future__ import annotations

from .actions import BurnAgent, MintAgent, TransferAgent
from .chain import (
    Source,
    calc_capacity_sum,
    check_spore_address,
    extract_spore_action,
    find_position_by_type,
    find_position_by_type_hash,
    load_self_id,
)
from .errors import ErrorCode, SporeError, exit_code
from .registry import CodeHashes

CLUSTER_PROXY_ID_LEN = 32
CLUSTER_PROXY_ID_WITH_PAYMENT_LEN = CLUSTER_PROXY_ID_LEN + 8


def _has_conflict_agent(context, source, cell_data: bytes) -> bool:
    code_hash = context.script.code_hash
    count = sum(
        1
        for cell in context.cells(source)
        if cell.type_ is not None
        and cell.type_.code_hash == code_hash
        and cell.data == cell_data
    )
    return count > 1


def _process_creation(context) -> None:
    proxy_type_hash = context.cells(Source.GROUP_OUTPUT)[0].data
    proxy_index = find_position_by_type_hash(context, proxy_type_hash, Source.CELL_DEP)
    if proxy_index is None:
        raise SporeError(ErrorCode.PROXY_CELL_NOT_IN_DEP)
    proxy_cell = context.cells(Source.CELL_DEP)[proxy_index]
    proxy_type = proxy_cell.type_
    if proxy_type.code_hash not in (context.code_hashes or CodeHashes()).cluster_proxy:
        raise SporeError(ErrorCode.REF_CELL_NOT_CLUSTER_PROXY)

    cluster_id = proxy_cell.data
    if context.script.args != cluster_id:
        raise SporeError(ErrorCode.INVALID_AGENT_ARGS)

    in_input = find_position_by_type_hash(context, proxy_type_hash, Source.INPUT)
    in_output = find_position_by_type_hash(context, proxy_type_hash, Source.OUTPUT)
    if in_input is None or in_output is None:
        proxy_args = proxy_type.args
        if len(proxy_args) == CLUSTER_PROXY_ID_WITH_PAYMENT_LEN:
            minimal_payment = int.from_bytes(
                proxy_args[CLUSTER_PROXY_ID_LEN:CLUSTER_PROXY_ID_WITH_PAYMENT_LEN],
                "little",
            )
            lock_hash = proxy_cell.lock.hash()
            input_capacity = calc_capacity_sum(context, lock_hash, Source.INPUT)
            output_capacity = calc_capacity_sum(context, lock_hash, Source.OUTPUT)
            if input_capacity + minimal_payment > output_capacity:
                raise SporeError(ErrorCode.PAYMENT_NOT_ENOUGH)
            if _has_conflict_agent(context, Source.OUTPUT, proxy_type_hash):
                raise SporeError(ErrorCode.CONFLICT_AGENT_CELLS)
        elif len(proxy_args) != CLUSTER_PROXY_ID_LEN:
            raise SporeError(ErrorCode.PAYMENT_METHOD_NOT_SUPPORT)

    action = extract_spore_action(context)
    if not isinstance(action, MintAgent):
        raise SporeError(ErrorCode.SPORE_ACTION_MISMATCH)
    if (
        cluster_id != action.cluster_id
        or proxy_type.args[:CLUSTER_PROXY_ID_LEN] != action.proxy_id
    ):
        raise SporeError(ErrorCode.SPORE_ACTION_FIELD_MISMATCH)
    check_spore_address(context, Source.GROUP_OUTPUT, action.to)


def _process_transfer(context) -> None:
    input_data = context.cells(Source.GROUP_INPUT)[0].data
    output_data = context.cells(Source.GROUP_OUTPUT)[0].data
    if input_data != output_data or not input_data:
        raise SporeError(ErrorCode.IMMUTABLE_AGENT_FIELD_MODIFICATION)

    action = extract_spore_action(context)
    if not isinstance(action, TransferAgent):
        raise SporeError(ErrorCode.SPORE_ACTION_MISMATCH)
    if load_self_id(context) != action.cluster_id:
        raise SporeError(ErrorCode.SPORE_ACTION_FIELD_MISMATCH)
    check_spore_address(context, Source.GROUP_INPUT, action.from_)
    check_spore_address(context, Source.GROUP_OUTPUT, action.to)


def _process_destruction(context) -> None:
    action = extract_spore_action(context)
    if not isinstance(action, BurnAgent):
        raise SporeError(ErrorCode.SPORE_ACTION_MISMATCH)
    if load_self_id(context) != action.cluster_id:
        raise SporeError(ErrorCode.SPORE_ACTION_FIELD_MISMATCH)
    check_spore_address(context, Source.GROUP_INPUT, action.from_)


def verify(context):
    """Check the transaction against the Cluster Agent rules; raise SporeError on failure."""
    outputs = context.cells(Source.GROUP_OUTPUT)
    if len(outputs) > 1:
        raise SporeError(ErrorCode.INVALID_AGENT_OPERATION)
    inputs = context.cells(Source.GROUP_INPUT)
    if len(inputs) > 1:
        raise SporeError(ErrorCode.INVALID_AGENT_OPERATION)

    match (len(inputs), len(outputs)):
        case (0, 1):
            find_position_by_type(context, context.script, Source.OUTPUT)
            _process_creation(context)
        case (1, 0):
            _process_destruction(context)
        case (1, 1):
            _process_transfer(context)
        case _:
            raise RuntimeError("the script has no cell in the transaction")


def program_entry(context):
    """Run the Cluster Agent checks and return the exit code: 0 on success."""
    try:
        verify(context)
    except SporeError as error:
        return exit_code(error)
    return 0