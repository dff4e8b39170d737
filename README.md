# spore_protocol

The validation rules of the Spore protocol, written as plain Python and run
against an in-memory model of a transaction.

Spores are on-chain digital objects with a content type and content. They can
belong to a cluster, clusters can be shared through cluster proxies and
cluster agents, and a spore may name mutant extensions whose Lua code runs
when it is minted, transferred or burned. Each of these kinds of cell has a
verifier that decides whether a transaction touching it is valid.

The package has no dependencies beyond the standard library.

## Installation

```
pip install .
```

For running the tests:

```
pip install .[test]
pytest
```

## Modules

- `spore_protocol.errors`: `ErrorCode`, the numbered error codes of the
  protocol; `SporeError`, raised by every failed check and carrying an
  `ErrorCode` as `code`; `LuaScriptError`, for a failure code (a signed byte)
  reported by an extension's Lua code; and `exit_code`, which returns the
  error's code as an integer, or 0 for `None`.
- `spore_protocol.mime`: `Mime`, a parser for content types such as
  `image/png;immortal=true;mutant[]=<64 hex digits>,<64 hex digits>`.
  `Mime.parse` takes raw UTF-8 bytes and strips surrounding whitespace;
  `Mime.str_parse` takes a string. The result holds byte ranges (slices) of
  the main type, subtype and parameters, the `immortal` flag and the decoded
  `mutants` ids. `Mime.get_param` returns the value range of a named
  parameter, or `None`.
- `spore_protocol.types`: `SporeData` (content type, content, optional
  cluster id) and `ClusterData` (name, description, optional mutant id), each
  with `to_bytes` and `from_bytes` in the molecule table layout, and the
  helpers `encode_bytes`, `encode_table` and `decode_table`. Decoding tolerates
  extra trailing fields and raises `ValueError` on malformed data.
- `spore_protocol.actions`: the co-build actions (`MintSpore`,
  `TransferSpore`, `BurnSpore`, `MintCluster`, `TransferCluster`, `MintProxy`,
  `TransferProxy`, `BurnProxy`, `MintAgent`, `TransferAgent`, `BurnAgent`) as
  frozen dataclasses whose id and hash fields must be 32 bytes, and
  `CoBuildAction`, which ties an action to the hash of the script it is meant
  for. Addresses (`to`, `from_`) are lock `Script`s.
- `spore_protocol.chain`: the transaction model (`Script`, `OutPoint`,
  `CellInput`, `Cell`, `Transaction`, `ScriptContext`, `Source`), plus
  `blake2b_256` with the chain's personalisation, `calc_type_id`,
  `verify_type_id`, `load_self_id`, `load_type_args`, the `find_position_by_*`
  lookups, `calc_capacity_sum`, `check_spore_address`, `extract_spore_action`
  and `compatible_load_cluster_data`, which reads both the two-field and the
  three-field cluster layout.
- `spore_protocol.registry`: `CodeHashes`, the trusted code hashes for
  clusters, cluster agents, cluster proxies and mutant extensions, plus the
  hash of the Lua library; `CodeHashes.from_binaries` hashes the files
  `cluster`, `cluster_agent`, `cluster_proxy`, `spore_extension_lua` and
  `libckblua.so` in a directory and appends them to optional earlier ("frozen")
  hashes. `code_hash` hashes a single binary.
- `spore_protocol.spore`, `spore_protocol.cluster`,
  `spore_protocol.cluster_proxy`, `spore_protocol.cluster_agent`,
  `spore_protocol.extension`: the verifiers. Each has a `verify` function,
  which raises on failure, and a `program_entry` function, which returns 0 on
  success or the error's exit code. `spore.Operation` names the mint, transfer
  and burn modes handed to extensions.

## Examples

Parsing a content type:

```python
from spore_protocol.errors import SporeError
from spore_protocol.mime import Mime

mime = Mime.str_parse("image/png;immortal=true")
assert mime.immortal

try:
    Mime.str_parse("image/")
except SporeError as err:
    print(err.code.name, int(err.code))  # ILLFORMED 80
```

Verifying a cluster mint. The context names the script being checked; its
group cells are the inputs and outputs whose type script equals it.

```python
from spore_protocol import cluster
from spore_protocol.actions import CoBuildAction, MintCluster
from spore_protocol.chain import (
    Cell, CellInput, OutPoint, Script, ScriptContext, Transaction,
    blake2b_256, calc_type_id,
)
from spore_protocol.registry import CodeHashes
from spore_protocol.types import ClusterData

lock = Script(code_hash=bytes(32))
funding = CellInput(OutPoint(tx_hash=bytes(32), index=0))
cluster_id = calc_type_id(funding, 0)
cluster_type = Script(code_hash=b"\x11" * 32, hash_type=2, args=cluster_id)
data = ClusterData(name="Spore Cluster", description="Test Cluster").to_bytes()

tx = Transaction(
    inputs=[Cell(capacity=1000, lock=lock)],
    outputs=[Cell(capacity=1000, lock=lock, type_=cluster_type, data=data)],
    cell_inputs=[funding],
    message=[
        CoBuildAction(cluster_type.hash(), MintCluster(cluster_id, blake2b_256(data), lock))
    ],
)
context = ScriptContext(tx, cluster_type, CodeHashes())
assert cluster.program_entry(context) == 0
```

## Extensions

Mutant extensions are run through callables that the caller supplies:

- `spore.verify(context, executor)`: when a spore's content type names
  mutants, the extension cell for the first one is looked up among the cell
  deps (and, on mint, its payment checked), then
  `executor(code_hash, argv)` is called with `argv` such as
  `[b"0", b"<dep index>", b"<output index>"]`. The executor takes the place of
  the remaining checks and should raise on failure.
- `extension.verify(context, argv, runner)`: with no `argv` the extension cell
  itself is checked (creation or an unchanged transfer; it cannot be
  destroyed). With `argv` of `[mode, extension_index, *indexes]` the
  extension's Lua code, prefixed with `local spore_ext_mode = ...` and the
  index variables, is passed to `runner(code)`, which returns the script's exit
  code. The Lua library must be present among the cell deps with the hash
  recorded in `CodeHashes.lua_lib`.

## What it does not do

The package checks transactions that are already built in memory. It does
not talk to a node, fetch or submit transactions, serialise co-build
messages or witnesses, or sign anything. It contains no Lua interpreter and no
way of loading script binaries as code: running extensions is left to the
`executor` and `runner` callables you pass in.