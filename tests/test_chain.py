import pytest

from spore_protocol.actions import BurnSpore, CoBuildAction, MintSpore
from spore_protocol.chain import (
    Cell,
    CellInput,
    OutPoint,
    Script,
    ScriptContext,
    Source,
    Transaction,
    blake2b_256,
    calc_capacity_sum,
    calc_type_id,
    check_spore_address,
    compatible_load_cluster_data,
    extract_spore_action,
    find_position_by_lock_hash,
    find_position_by_type,
    find_position_by_type_and_data,
    find_position_by_type_args,
    find_position_by_type_hash,
    load_self_id,
    load_type_args,
    verify_type_id,
)
from spore_protocol.errors import ErrorCode, SporeError
from spore_protocol.types import ClusterData, decode_table, encode_bytes, encode_table

LOCK = Script(code_hash=bytes(32), hash_type=1)
OTHER_LOCK = Script(code_hash=bytes(32), hash_type=1, args=b"\x01")
SPORE_CODE = bytes([1]) * 32
OTHER_CODE = bytes([2]) * 32
SPORE = Script(code_hash=SPORE_CODE, hash_type=2, args=bytes([7]) * 32)


def cell_input(n):
    return CellInput(previous_output=OutPoint(tx_hash=bytes([n]) * 32, index=0))


def make_context(tx, script=SPORE):
    return ScriptContext(transaction=tx, script=script)


def test_blake2b_256_of_empty_input():
    assert blake2b_256(b"").hex() == (
        "44f4c69744d5f8c55d642062949dcae49bc4e7ef43d388c5a12f42b5633d163e"
    )


def test_script_serialization_layout():
    script = Script(code_hash=bytes(32), hash_type=1, args=b"\xab")
    expected = (
        bytes.fromhex("36000000" "10000000" "30000000" "31000000")
        + bytes(32)
        + b"\x01"
        + bytes.fromhex("01000000ab")
    )
    assert script.to_bytes() == expected
    assert script.hash() == blake2b_256(expected)


def test_script_rejects_bad_fields():
    with pytest.raises(ValueError):
        Script(code_hash=bytes(31))
    with pytest.raises(ValueError):
        Script(code_hash=bytes(32), hash_type=256)


def test_out_point_and_cell_input_layout():
    out_point = OutPoint(tx_hash=bytes([0xAA]) * 32, index=1)
    assert out_point.to_bytes() == bytes([0xAA]) * 32 + b"\x01\x00\x00\x00"
    cell = CellInput(previous_output=out_point, since=2)
    assert cell.to_bytes() == b"\x02" + bytes(7) + out_point.to_bytes()
    assert len(cell.to_bytes()) == 44


def test_cells_by_source_and_group():
    spore_in = Cell(capacity=10, lock=LOCK, type_=SPORE)
    plain_in = Cell(capacity=20, lock=LOCK)
    plain_out = Cell(capacity=5, lock=LOCK)
    spore_out = Cell(capacity=25, lock=LOCK, type_=SPORE)
    dep = Cell(capacity=1, lock=LOCK, data=b"dep")
    tx = Transaction(
        inputs=[spore_in, plain_in], outputs=[plain_out, spore_out], cell_deps=[dep]
    )
    context = make_context(tx)
    assert context.cells(Source.INPUT) == [spore_in, plain_in]
    assert context.cells(Source.OUTPUT) == [plain_out, spore_out]
    assert context.cells(Source.CELL_DEP) == [dep]
    assert context.cells(Source.GROUP_INPUT) == [spore_in]
    assert context.cells(Source.GROUP_OUTPUT) == [spore_out]


def test_calc_type_id_depends_on_input_and_index():
    first = cell_input(1)
    assert calc_type_id(first, 0) == calc_type_id(first.to_bytes(), 0)
    assert len(calc_type_id(first, 0)) == 32
    assert calc_type_id(first, 0) != calc_type_id(first, 1)
    assert calc_type_id(first, 0) != calc_type_id(cell_input(2), 0)


def test_verify_type_id():
    first = cell_input(3)
    type_id = calc_type_id(first, 0)
    output = Cell(
        capacity=1,
        lock=LOCK,
        type_=Script(code_hash=SPORE_CODE, args=type_id + b"\x00" * 8),
    )
    tx = Transaction(outputs=[output], cell_inputs=[first])
    context = make_context(tx)
    assert verify_type_id(context, 0) == type_id
    assert verify_type_id(context, 1) is None

    short = Cell(capacity=1, lock=LOCK, type_=Script(code_hash=SPORE_CODE, args=type_id[:31]))
    assert verify_type_id(make_context(Transaction(outputs=[short], cell_inputs=[first])), 0) is None
    assert verify_type_id(make_context(Transaction(outputs=[output])), 0) is None


def test_verify_type_id_with_wrong_index():
    first = cell_input(4)
    output = Cell(
        capacity=1, lock=LOCK, type_=Script(code_hash=SPORE_CODE, args=calc_type_id(first, 1))
    )
    tx = Transaction(outputs=[output], cell_inputs=[first])
    assert verify_type_id(make_context(tx), 0) is None


def test_load_type_args():
    typed = Cell(capacity=1, lock=LOCK, type_=SPORE)
    untyped = Cell(capacity=1, lock=LOCK)
    context = make_context(Transaction(outputs=[typed, untyped]))
    assert load_type_args(context, 0, Source.OUTPUT) == SPORE.args
    assert load_type_args(context, 1, Source.OUTPUT) == b""
    assert load_type_args(context, 5, Source.OUTPUT) == b""


def test_load_self_id():
    script = Script(code_hash=SPORE_CODE, args=bytes(range(40)))
    assert load_self_id(make_context(Transaction(), script)) == bytes(range(32))
    short = Script(code_hash=SPORE_CODE, args=bytes(8))
    with pytest.raises(SporeError) as err:
        load_self_id(make_context(Transaction(), short))
    assert err.value.code is ErrorCode.LENGTH_NOT_ENOUGH


def test_find_position_by_type_args_with_filter():
    args = bytes([9]) * 32
    deps = [
        Cell(capacity=1, lock=LOCK),
        Cell(capacity=1, lock=LOCK, type_=Script(code_hash=OTHER_CODE, args=args)),
        Cell(capacity=1, lock=LOCK, type_=Script(code_hash=SPORE_CODE, args=args)),
    ]
    context = make_context(Transaction(cell_deps=deps))
    assert find_position_by_type_args(context, args, Source.CELL_DEP, None) == 1
    assert (
        find_position_by_type_args(
            context, args, Source.CELL_DEP, lambda code: code == SPORE_CODE
        )
        == 2
    )
    assert find_position_by_type_args(context, bytes(32), Source.CELL_DEP, None) is None


def test_find_position_by_type_and_hash():
    outputs = [Cell(capacity=1, lock=LOCK), Cell(capacity=1, lock=LOCK, type_=SPORE)]
    context = make_context(Transaction(outputs=outputs))
    assert find_position_by_type(context, SPORE, Source.OUTPUT) == 1
    assert find_position_by_type(context, OTHER_LOCK, Source.OUTPUT) is None
    assert find_position_by_type_hash(context, SPORE.hash(), Source.OUTPUT) == 1
    assert find_position_by_type_hash(context, LOCK.hash(), Source.OUTPUT) is None


def test_find_position_by_type_and_data():
    outputs = [
        Cell(capacity=1, lock=LOCK, data=b"x"),
        Cell(capacity=1, lock=LOCK, type_=SPORE, data=b"x"),
    ]
    context = make_context(Transaction(outputs=outputs))
    assert find_position_by_type_and_data(context, b"x", Source.OUTPUT, None) == 0
    assert (
        find_position_by_type_and_data(
            context, b"x", Source.OUTPUT, lambda h: h == SPORE.hash()
        )
        == 1
    )
    assert find_position_by_type_and_data(context, b"y", Source.OUTPUT, None) is None


def test_lock_hash_queries():
    inputs = [
        Cell(capacity=100, lock=LOCK),
        Cell(capacity=30, lock=OTHER_LOCK),
        Cell(capacity=50, lock=LOCK),
    ]
    context = make_context(Transaction(inputs=inputs))
    assert find_position_by_lock_hash(context, OTHER_LOCK.hash(), Source.INPUT) == 1
    assert find_position_by_lock_hash(context, SPORE.hash(), Source.INPUT) is None
    assert calc_capacity_sum(context, LOCK.hash(), Source.INPUT) == 150
    assert calc_capacity_sum(context, OTHER_LOCK.hash(), Source.INPUT) == 30
    assert calc_capacity_sum(context, SPORE.hash(), Source.OUTPUT) == 0


def test_check_spore_address():
    tx = Transaction(outputs=[Cell(capacity=1, lock=LOCK, type_=SPORE)])
    context = make_context(tx)
    assert check_spore_address(context, Source.GROUP_OUTPUT, LOCK) is None
    with pytest.raises(SporeError) as err:
        check_spore_address(context, Source.GROUP_OUTPUT, OTHER_LOCK)
    assert err.value.code is ErrorCode.SPORE_ACTION_ADDRESSES_MISMATCH
    with pytest.raises(SporeError) as err:
        check_spore_address(context, Source.GROUP_INPUT, LOCK)
    assert err.value.code is ErrorCode.INDEX_OUT_OF_BOUND


def test_extract_spore_action():
    action = BurnSpore(spore_id=SPORE.args, from_=LOCK)
    foreign = CoBuildAction(script_hash=OTHER_LOCK.hash(), action=b"other")
    tx = Transaction(message=[foreign, CoBuildAction(script_hash=SPORE.hash(), action=action)])
    assert extract_spore_action(make_context(tx)) == action


@pytest.mark.parametrize(
    "message, code",
    [
        (None, ErrorCode.INVALID_COBUILD_WITNESS_LAYOUT),
        ([], ErrorCode.SPORE_ACTION_DUPLICATED),
        (
            [
                CoBuildAction(SPORE.hash(), BurnSpore(spore_id=bytes(32), from_=LOCK)),
                CoBuildAction(
                    SPORE.hash(),
                    MintSpore(spore_id=bytes(32), data_hash=bytes(32), to=LOCK),
                ),
            ],
            ErrorCode.SPORE_ACTION_DUPLICATED,
        ),
        ([CoBuildAction(SPORE.hash(), b"garbage")], ErrorCode.INVALID_COBUILD_MESSAGE),
    ],
)
def test_extract_spore_action_errors(message, code):
    with pytest.raises(SporeError) as err:
        extract_spore_action(make_context(Transaction(message=message)))
    assert err.value.code is code


def test_compatible_load_cluster_data():
    name = b"Test Cluster Name"
    description = b"Test Cluster Description"
    raw_v1 = encode_table([encode_bytes(name), encode_bytes(description)])
    cluster_v2 = compatible_load_cluster_data(raw_v1)
    assert cluster_v2.name == name
    assert cluster_v2.description == description
    assert cluster_v2.mutant_id is None

    with_mutant = ClusterData(name=name, description=description, mutant_id=b"mock mutant_id")
    raw = with_mutant.to_bytes()
    fields = decode_table(raw, 2, compatible=True)
    assert len(fields) == 3
    assert len(fields) - 2 == 1
    loaded = compatible_load_cluster_data(raw)
    assert loaded.mutant_id == b"mock mutant_id"
    assert loaded == with_mutant


def test_compatible_load_cluster_data_rejects_garbage():
    with pytest.raises(SporeError) as err:
        compatible_load_cluster_data(b"\x01\x02")
    assert err.value.code is ErrorCode.INVALID_CLUSTER_DATA
    one_field = encode_table([encode_bytes(b"name")])
    with pytest.raises(SporeError) as err:
        compatible_load_cluster_data(one_field)
    assert err.value.code is ErrorCode.INVALID_CLUSTER_DATA