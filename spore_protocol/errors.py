"""Error codes reported by the Spore scripts, and the exceptions that carry them."""

from __future__ import annotations

from enum import IntEnum


class ErrorCode(IntEnum):
    """Exit codes of the Spore scripts."""

    INDEX_OUT_OF_BOUND = 1
    ITEM_MISSING = 2
    LENGTH_NOT_ENOUGH = 3
    ENCODING = 4

    # common
    INVALID_CLUSTER_DATA = 5
    CLUSTER_CELL_NOT_IN_DEP = 6
    CLUSTER_OWNERSHIP_VERIFY_FAILED = 7
    INVALID_COBUILD_WITNESS_LAYOUT = 8
    INVALID_COBUILD_MESSAGE = 9
    SPORE_ACTION_DUPLICATED = 10
    SPORE_ACTION_MISMATCH = 11
    SPORE_ACTION_FIELD_MISMATCH = 12
    SPORE_ACTION_ADDRESSES_MISMATCH = 13

    # extension (Lua) errors
    MODIFY_EXTENSION_PERMANENT_FIELD = 15
    CONFLICT_EXTENSION_CREATION = 16
    EXTENSION_MULTIPLE_SPEND = 17
    INVALID_EXTENSION_OPERATION = 18
    INVALID_EXTENSION_ID = 19
    INVALID_EXTENSION_ARG = 20
    INVALID_LUA_SCRIPT = 21
    INVALID_LUA_LIB = 22
    INVALID_LUA_PARAMETERS = 23
    FAILED_TO_LOAD_LUA_LIB = 24
    FAILED_TO_CREATE_LUA_INSTANCE = 25

    # cluster proxy errors
    INVALID_PROXY_OPERATION = 30
    IMMUTABLE_PROXY_FIELD_MODIFICATION = 31
    INVALID_PROXY_ID = 32
    INVALID_PROXY_ARGS = 33

    # cluster agent errors
    INVALID_AGENT_OPERATION = 40
    IMMUTABLE_AGENT_FIELD_MODIFICATION = 41
    INVALID_AGENT_ARGS = 42
    PROXY_CELL_NOT_IN_DEP = 43
    PAYMENT_NOT_ENOUGH = 44
    PAYMENT_METHOD_NOT_SUPPORT = 45
    REF_CELL_NOT_CLUSTER_PROXY = 46
    CONFLICT_AGENT_CELLS = 47

    # cluster errors
    INVALID_CLUSTER_OPERATION = 50
    MODIFY_CLUSTER_PERMANENT_FIELD = 51
    EMPTY_NAME = 52
    INVALID_CLUSTER_ID = 53
    MUTANT_NOT_IN_DEPS = 54

    # spore errors
    BOUNDARY_ENCODING = 60
    MODIFY_SPORE_PERMANENT_FIELD = 61
    INVALID_SPORE_DATA = 62
    INVALID_SPORE_ID = 63
    INVALID_CONTENT_TYPE = 64
    DESTROY_IMMORTAL_NFT = 65
    EMPTY_CONTENT = 66
    CONFLICT_CREATION = 67
    MULTIPLE_SPEND = 68
    INVALID_MULTIPART_CONTENT = 69
    MIME_PARSING_ERROR = 70
    EXTENSION_CELL_NOT_IN_DEP = 71
    EXTENSION_PAYMENT_NOT_ENOUGH = 72
    CLUSTER_REQUIRES_MUTANT_APPLIED = 73
    INVALID_EXTENSION_PAYMENT_FORMAT = 74

    # mime errors
    ILLFORMED = 80
    INVALID_MAIN_TYPE = 81
    INVALID_SUB_TYPE = 82
    INVALID_PARAMS = 83
    INVALID_PARAM_VALUE = 84
    MUTANT_ID_NOT_VALID = 85
    DUPLICATE_MUTANT_ID = 86
    CONTENT_OUT_OF_RANGE = 87

    UNKNOWN = 88


class SporeError(Exception):
    """A script failure identified by an ErrorCode."""

    def __init__(self, code):
        self.code = ErrorCode(code)
        super().__init__(f"{self.code.name} ({int(self.code)})")


class LuaScriptError(Exception):
    """A failure code returned by an extension's Lua script."""

    def __init__(self, code):
        code = int(code)
        if not -128 <= code <= 127:
            raise ValueError(f"Lua exit code {code} does not fit in a signed byte")
        self.code = code
        super().__init__(f"Lua script exited with code {code}")


def exit_code(error):
    """Return the script exit code for an error, or 0 when there is none."""
    if error is None:
        return 0
    if isinstance(error, (SporeError, LuaScriptError)):
        return int(error.code)
    raise TypeError(f"no exit code for {type(error).__name__}")