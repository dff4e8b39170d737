import pytest

from spore_protocol.actions import BurnAgent, CoBuildAction, MintAgent, TransferAgent
from spore_protocol.chain import (
    Cell,
    CellInput,
    OutPoint,
    Script,
    ScriptContext,
    Transaction,
    blake2b_256,
    calc_type_id,
)
from spore_protocol.cluster_agent import program_entry, verify
from spore_protocol.errors import ErrorCode, SporeError
from spore_protocol.registry import CodeHashes
from spore_protocol.types import ClusterData

LOCK = Script(code_hash=bytes([0x11]) * 32)
OTHER_LOCK = Script(code_hash=bytes([0x22]) * 32)
CLUSTER_CODE = bytes([0xC1]) * 32
PROXY_CODE = bytes([0xB1]) * 32
AGENT_CODE = bytes([0xA1]) * 32
DATA1 = 2
CAPACITY_UNIT = 100_000_000
PAYMENT = (1 * CAPACITY_UNIT).to_bytes(8, "little")
HASHES = CodeHashes(
    cluster=(CLUSTER_CODE,), cluster_proxy=(PROXY_CODE,), cluster_agent=(AGENT_CODE,)
)
CLUSTER_DATA = ClusterData(name="Spore Cluster", description="Test Cluster").to_bytes()


def normal_input(n=0):
    return CellInput(OutPoint(tx_hash=bytes([n + 1]) * 32, index=0))


def normal_cell(type_=None, data=b"", capacity=1000, lock=LOCK):
    return Cell(capacity=capacity, lock=lock, type_=type_, data=data)


def message(*pairs):
    return [CoBuildAction(script_hash=s.hash(), action=a) for s, a in pairs]


def expect(code, context):
    with pytest.raises(SporeError) as info:
        verify(context)
    assert info.value.code is code


def make_mint(
    agent_capacity=2 * CAPACITY_UNIT,
    proxy_suffix=PAYMENT,
    proxy_code=PROXY_CODE,
    agent_args=None,
    with_proxy_dep=True,
    conflicting_agent=False,
    proxy_in_tx=False,
):
    seed = normal_input()
    cluster_id = calc_type_id(seed, 0)
    cluster_type = Script(code_hash=CLUSTER_CODE, hash_type=DATA1, args=cluster_id + PAYMENT)
    cluster_dep = normal_cell(cluster_type, CLUSTER_DATA, capacity=len(CLUSTER_DATA))
    proxy_id = calc_type_id(seed, 1)
    proxy_type = Script(code_hash=proxy_code, hash_type=DATA1, args=proxy_id + proxy_suffix)
    proxy_dep = normal_cell(proxy_type, cluster_id, capacity=32)
    agent_type = Script(
        code_hash=AGENT_CODE,
        hash_type=DATA1,
        args=cluster_id if agent_args is None else agent_args,
    )
    outputs = [normal_cell(agent_type, proxy_type.hash(), capacity=agent_capacity)]
    inputs = [normal_cell()]
    if conflicting_agent:
        other = Script(code_hash=AGENT_CODE, hash_type=DATA1, args=bytes([5]) * 32)
        outputs.append(normal_cell(other, proxy_type.hash()))
    if proxy_in_tx:
        inputs.append(normal_cell(proxy_type, cluster_id))
        outputs.append(normal_cell(proxy_type, cluster_id))
    action = MintAgent(cluster_id=cluster_id, proxy_id=proxy_id, to=LOCK)
    deps = [cluster_dep, proxy_dep] if with_proxy_dep else [cluster_dep]
    tx = Transaction(
        inputs=inputs,
        cell_inputs=[seed],
        outputs=outputs,
        cell_deps=deps,
        message=message((agent_type, action)),
    )
    return ScriptContext(tx, agent_type, HASHES)


def make_transfer(new_agent_data, new_cluster_index):
    seed = normal_input()
    old_cluster_id = calc_type_id(seed, 0)
    old_data = blake2b_256(b"12345676890")
    old_type = Script(code_hash=AGENT_CODE, hash_type=DATA1, args=old_cluster_id + PAYMENT)
    new_cluster_id = calc_type_id(seed, new_cluster_index)
    new_type = Script(code_hash=AGENT_CODE, hash_type=DATA1, args=new_cluster_id + PAYMENT)
    action = TransferAgent(cluster_id=new_cluster_id, from_=LOCK, to=LOCK)
    tx = Transaction(
        inputs=[normal_cell(old_type, old_data, capacity=len(old_data))],
        cell_inputs=[normal_input(1)],
        outputs=[normal_cell(new_type, new_agent_data)],
        message=message((new_type, action)),
    )
    return tx, old_type, new_type


def make_burn(action_cluster_id=None, from_=LOCK):
    seed = normal_input()
    cluster_id = calc_type_id(seed, 0)
    agent_data = blake2b_256(b"12345676890")
    agent_type = Script(code_hash=AGENT_CODE, hash_type=DATA1, args=cluster_id + PAYMENT)
    action = BurnAgent(
        cluster_id=cluster_id if action_cluster_id is None else action_cluster_id,
        from_=from_,
    )
    tx = Transaction(
        inputs=[normal_cell(agent_type, agent_data, capacity=32)],
        cell_inputs=[normal_input(1)],
        outputs=[normal_cell()],
        message=message((agent_type, action)),
    )
    return ScriptContext(tx, agent_type, HASHES)


def test_cluster_agent_mint():
    assert program_entry(make_mint()) == 0


def test_mint_with_payment_not_enough():
    expect(ErrorCode.PAYMENT_NOT_ENOUGH, make_mint(agent_capacity=1000))


def test_mint_with_proxy_in_transaction_skips_payment():
    assert program_entry(make_mint(agent_capacity=1000, proxy_in_tx=True)) == 0


def test_mint_without_payment_args():
    assert program_entry(make_mint(agent_capacity=1000, proxy_suffix=b"")) == 0


def test_mint_with_unsupported_payment_method():
    expect(ErrorCode.PAYMENT_METHOD_NOT_SUPPORT, make_mint(proxy_suffix=b"\x01\x02\x03"))


def test_mint_with_unregistered_proxy():
    expect(ErrorCode.REF_CELL_NOT_CLUSTER_PROXY, make_mint(proxy_code=bytes([0x99]) * 32))


def test_mint_with_wrong_agent_args():
    expect(ErrorCode.INVALID_AGENT_ARGS, make_mint(agent_args=bytes([3]) * 32))


def test_mint_without_proxy_dep():
    context = make_mint(with_proxy_dep=False)
    assert program_entry(context) == int(ErrorCode.PROXY_CELL_NOT_IN_DEP)


def test_mint_with_conflicting_agent():
    expect(ErrorCode.CONFLICT_AGENT_CELLS, make_mint(conflicting_agent=True))


def test_cluster_agent_transfer():
    tx, _, new_type = make_transfer(blake2b_256(b"12345676890"), 0)
    assert program_entry(ScriptContext(tx, new_type, HASHES)) == 0


def test_cluster_agent_transfer_failed_with_wrong_data():
    tx, _, new_type = make_transfer(b"\x01", 0)
    expect(ErrorCode.IMMUTABLE_AGENT_FIELD_MODIFICATION, ScriptContext(tx, new_type, HASHES))


def test_cluster_agent_transfer_failed_with_wrong_cluster_id():
    tx, _, new_type = make_transfer(blake2b_256(b"12345676890"), 1)
    expect(ErrorCode.PROXY_CELL_NOT_IN_DEP, ScriptContext(tx, new_type, HASHES))


def test_transfer_with_empty_data():
    tx, old_type, _ = make_transfer(b"", 0)
    tx.inputs[0] = normal_cell(old_type, b"")
    expect(ErrorCode.IMMUTABLE_AGENT_FIELD_MODIFICATION, ScriptContext(tx, old_type, HASHES))


def test_cluster_agent_burn():
    assert program_entry(make_burn()) == 0


def test_burn_with_wrong_cluster_id():
    expect(ErrorCode.SPORE_ACTION_FIELD_MISMATCH, make_burn(action_cluster_id=bytes(32)))


def test_burn_with_wrong_owner():
    expect(ErrorCode.SPORE_ACTION_ADDRESSES_MISMATCH, make_burn(from_=OTHER_LOCK))


def test_conflict_creation():
    context = make_mint()
    context.transaction.outputs.append(context.transaction.outputs[0])
    expect(ErrorCode.INVALID_AGENT_OPERATION, context)