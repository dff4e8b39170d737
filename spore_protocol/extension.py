"""Type script rules for Spore extension (Lua) cells, and their execution mode."""

from __future__ import annotations

import re

from .chain import Source, find_position_by_type, verify_type_id
from .errors import ErrorCode, LuaScriptError, SporeError, exit_code
from .registry import CodeHashes, code_hash

SPORE_EXT_NORMAL_ARG_LEN = 32
SPORE_EXT_MINIMAL_PAYMENT_ARG_LEN = 32 + 8

_INDEX = re.compile(r"\+?[0-9]+")
_MAX_INDEX = (1 << 64) - 1


class _LuaLib:
    """The Lua library found among the cell deps, driven through a runner.

    runner(code) evaluates Lua source bytes and returns the script's exit code.
    """

    def __init__(self, context, runner):
        lib_hash = (context.code_hashes or CodeHashes()).lua_lib
        found = lib_hash is not None and any(
            code_hash(cell.data) == lib_hash for cell in context.cells(Source.CELL_DEP)
        )
        if not found:
            raise SporeError(ErrorCode.FAILED_TO_LOAD_LUA_LIB)
        self._runner = runner

    def execute(self, code: bytes) -> None:
        if self._runner is None:
            raise SporeError(ErrorCode.INVALID_LUA_LIB)
        ret = ((int(self._runner(bytes(code))) + 128) & 0xFF) - 128
        if ret == 0:
            return
        # Scripts are advised to fail with -127..-1 or 100..127.
        if 0 < ret < ErrorCode.UNKNOWN:
            raise SporeError(ErrorCode.INVALID_LUA_SCRIPT)
        raise LuaScriptError(ret)


def _cell_data(context, index: int, source) -> bytes:
    cells = context.cells(source)
    if not 0 <= index < len(cells):
        raise SporeError(ErrorCode.INDEX_OUT_OF_BOUND)
    return cells[index].data


def _process_creation(context, index: int, runner) -> None:
    if verify_type_id(context, index) is None:
        raise SporeError(ErrorCode.INVALID_EXTENSION_ID)
    type_script = context.cells(Source.OUTPUT)[index].type_
    args = type_script.args if type_script is not None else b""
    if len(args) not in (SPORE_EXT_NORMAL_ARG_LEN, SPORE_EXT_MINIMAL_PAYMENT_ARG_LEN):
        raise SporeError(ErrorCode.INVALID_EXTENSION_ARG)
    lua_lib = _LuaLib(context, runner)
    code = b"local spore_ext_mode = 0\n" + _cell_data(context, index, Source.OUTPUT)
    lua_lib.execute(code)


def _process_transfer(context) -> None:
    input_data = context.cells(Source.GROUP_INPUT)[0].data
    output_data = context.cells(Source.GROUP_OUTPUT)[0].data
    if input_data != output_data:
        raise SporeError(ErrorCode.MODIFY_EXTENSION_PERMANENT_FIELD)


def _execute_with_prefix(context, extension_index: int, prefix: str, runner) -> None:
    ext_code = _cell_data(context, extension_index, Source.CELL_DEP)
    lua_lib = _LuaLib(context, runner)
    lua_lib.execute(prefix.encode("utf-8") + ext_code)


def _arg_bytes(value) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else bytes(value)


def _parse_index(argv, position: int) -> int:
    try:
        raw = argv[position]
    except IndexError:
        raise SporeError(ErrorCode.INVALID_LUA_PARAMETERS) from None
    text = _arg_bytes(raw).decode("utf-8", errors="replace")
    if not _INDEX.fullmatch(text):
        raise SporeError(ErrorCode.INVALID_LUA_PARAMETERS)
    value = int(text)
    if value > _MAX_INDEX:
        raise SporeError(ErrorCode.INVALID_LUA_PARAMETERS)
    return value


def _verify_internal(context, runner) -> None:
    outputs = context.cells(Source.GROUP_OUTPUT)
    if len(outputs) > 1:
        raise SporeError(ErrorCode.CONFLICT_CREATION)
    inputs = context.cells(Source.GROUP_INPUT)
    if len(inputs) > 1:
        raise SporeError(ErrorCode.MULTIPLE_SPEND)

    match (len(inputs), len(outputs)):
        case (0, 1):
            index = find_position_by_type(context, context.script, Source.OUTPUT) or 0
            _process_creation(context, index, runner)
        case (1, 1):
            _process_transfer(context)
        case _:
            # Extension cells can never be destroyed.
            raise SporeError(ErrorCode.INVALID_EXTENSION_OPERATION)


def _verify_external(context, argv, runner) -> None:
    mode = _arg_bytes(argv[0])
    if mode == b"0":
        extension_index = _parse_index(argv, 1)
        target_index = _parse_index(argv, 2)
        prefix = (
            "local spore_ext_mode = 1\n"
            f"local spore_output_index = {target_index}\n"
        )
    elif mode == b"1":
        extension_index = _parse_index(argv, 1)
        input_index = _parse_index(argv, 2)
        output_index = _parse_index(argv, 3)
        prefix = (
            "local spore_ext_mode = 2\n"
            f"local spore_input_index = {input_index}\n"
            f"local spore_output_index = {output_index}\n"
        )
    elif mode == b"2":
        extension_index = _parse_index(argv, 1)
        input_index = _parse_index(argv, 2)
        prefix = (
            "local spore_ext_mode = 3\n"
            f"local spore_input_index = {input_index}\n"
        )
    else:
        raise SporeError(ErrorCode.INVALID_EXTENSION_OPERATION)
    _execute_with_prefix(context, extension_index, prefix, runner)


def verify(context, argv=None, runner=None):
    """Check an extension cell, or run an extension for a Spore when argv is given.

    With no argv the extension cell itself is checked (creation or transfer).
    With argv = [mode, extension_index, *indexes] the extension's Lua code in the
    given cell dep is run for a Spore mint ("0"), transfer ("1") or burn ("2").
    runner(code) evaluates Lua code and returns its exit code.
    Raises SporeError or LuaScriptError on failure.
    """
    if not argv:
        _verify_internal(context, runner)
    else:
        _verify_external(context, list(argv), runner)


def program_entry(context, argv=None, runner=None):
    """Run the extension and return the exit code: 0 on success."""
    try:
        verify(context, argv, runner)
    except (SporeError, LuaScriptError) as error:
        return exit_code(error)
    return 0