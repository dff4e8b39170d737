"""Parsing of Spore content types (MIME types with Spore parameters)."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from itertools import takewhile

from .errors import ErrorCode, SporeError

_RESTRICTED_EXTRA = frozenset(b"!#$&-^_.+%*'")
_VALUE_EXTRA = _RESTRICTED_EXTRA | {ord(",")}
_OWS = b" \t"
_HEX_DIGITS = frozenset(b"0123456789abcdefABCDEF")
_MUTANT_PARAM = b"mutant[]"
_IMMORTAL_PARAM = b"immortal"

_WHITESPACE = "".join(
    chr(c)
    for c in [0x09, 0x0A, 0x0B, 0x0C, 0x0D, 0x20, 0x85, 0xA0, 0x1680]
    + list(range(0x2000, 0x200B))
    + [0x2028, 0x2029, 0x202F, 0x205F, 0x3000]
)


class _ParamKind(enum.Enum):
    GENERIC = enum.auto()
    IMMORTAL = enum.auto()
    MUTANT = enum.auto()


def _is_alnum(byte: int) -> bool:
    return 0x30 <= byte <= 0x39 or 0x41 <= byte <= 0x5A or 0x61 <= byte <= 0x7A


def _is_restricted_char(byte: int) -> bool:
    return _is_alnum(byte) or byte in _RESTRICTED_EXTRA


def _is_restricted_value_char(byte: int) -> bool:
    return _is_alnum(byte) or byte in _VALUE_EXTRA


def _is_restricted_name(name: bytes) -> bool:
    return (
        bool(name)
        and (_is_alnum(name[0]) or name[0] == ord("*"))
        and all(_is_restricted_char(b) for b in name)
    )


def _is_restricted_name_patched(name: bytes) -> bool:
    return name == _MUTANT_PARAM or _is_restricted_name(name)


def _all_ows(data: bytes) -> bool:
    return all(b in _OWS for b in data)


def _fail(code: ErrorCode):
    raise SporeError(code)


def _parse_quoted_value(data: bytes) -> int:
    """Length of a quoted value up to and including its closing quote."""
    escaped = False
    for length, byte in enumerate(data, 1):
        if escaped:
            escaped = False
        elif byte == ord("\\"):
            escaped = True
        elif byte == ord('"'):
            return length
        elif byte == ord("\n"):
            _fail(ErrorCode.INVALID_PARAM_VALUE)
    _fail(ErrorCode.INVALID_PARAM_VALUE)


def _parse_param(source: bytes, offset: int):
    """Parse the parameter starting at offset; None when nothing is left."""
    if offset >= len(source):
        return None
    rest = source[offset:]
    lhs, sep, rhs = rest.partition(b";")
    if sep and _all_ows(lhs):
        if _all_ows(rhs):
            return None
    elif _all_ows(rest):
        return None
    else:
        _fail(ErrorCode.INVALID_PARAMS)

    name, eq, value = rhs.partition(b"=")
    if not eq:
        _fail(ErrorCode.INVALID_PARAMS)
    value = value.partition(b";")[0]

    key_len = len(name.lstrip(_OWS))
    key_start = offset + len(lhs) + 1 + len(name) - key_len
    key_range = slice(key_start, key_start + key_len)
    key = source[key_range]
    if not _is_restricted_name_patched(key):
        _fail(ErrorCode.INVALID_PARAMS)
    if key == _IMMORTAL_PARAM:
        kind = _ParamKind.IMMORTAL
    elif key == _MUTANT_PARAM:
        kind = _ParamKind.MUTANT
    else:
        kind = _ParamKind.GENERIC

    value_start = key_range.stop + 1
    if value.startswith(b'"'):
        value_end = value_start + _parse_quoted_value(value[1:]) + 1
    else:
        value_end = value_start + sum(
            1 for _ in takewhile(_is_restricted_value_char, value)
        )
    return kind, key_range, slice(value_start, value_end), value_end


def _decode_mutant_ids(value: bytes, known: list[bytes]) -> None:
    for part in value.split(b","):
        hex_id = part.strip(_OWS)
        if len(hex_id) != 64 or not all(b in _HEX_DIGITS for b in hex_id):
            _fail(ErrorCode.MUTANT_ID_NOT_VALID)
        mutant_id = bytes.fromhex(hex_id.decode("ascii"))
        if mutant_id in known:
            _fail(ErrorCode.DUPLICATE_MUTANT_ID)
        known.append(mutant_id)


@dataclass
class Mime:
    """A parsed content type; ranges are byte slices into the parsed text."""

    main_type: slice
    sub_type: slice
    mutants: list[bytes] = field(default_factory=list)
    immortal: bool = False
    params: list[tuple[slice, slice]] = field(default_factory=list)

    @classmethod
    def parse(cls, raw_content_type):
        """Parse raw UTF-8 content-type bytes, ignoring surrounding whitespace."""
        try:
            text = bytes(raw_content_type).decode("utf-8")
        except UnicodeDecodeError:
            _fail(ErrorCode.ILLFORMED)
        return cls.str_parse(text.strip(_WHITESPACE))

    @classmethod
    def str_parse(cls, content_type):
        """Parse a content-type string such as 'image/png;immortal=true'."""
        data = content_type.encode("utf-8")
        slash = data.find(b"/")
        if slash < 0:
            _fail(ErrorCode.ILLFORMED)
        main_type = slice(0, slash)
        if not _is_restricted_name(data[main_type]):
            _fail(ErrorCode.INVALID_MAIN_TYPE)
        if not any(_is_restricted_char(b) for b in data[slash:]):
            _fail(ErrorCode.ILLFORMED)

        semicolon = data.find(b";", slash)
        sub_end = semicolon if semicolon >= 0 else len(data)
        sub_type = slice(slash + 1, sub_end)

        params: list[tuple[slice, slice]] = []
        mutants: list[bytes] = []
        immortal = False
        offset = sub_end
        while (parsed := _parse_param(data, offset)) is not None:
            kind, name_range, value_range, offset = parsed
            params.append((name_range, value_range))
            if kind is _ParamKind.MUTANT:
                _decode_mutant_ids(data[value_range], mutants)
            elif kind is _ParamKind.IMMORTAL:
                immortal = data[value_range] == b"true"

        return cls(
            main_type=main_type,
            sub_type=sub_type,
            mutants=mutants,
            immortal=immortal,
            params=params,
        )

    def get_param(self, content_type, param):
        """Return the value range of a parameter in content_type, or None."""
        if isinstance(content_type, str):
            content_type = content_type.encode("utf-8")
        content = bytes(content_type)
        wanted = param.encode("utf-8")
        for name_range, value_range in self.params:
            if len(content) < name_range.stop:
                _fail(ErrorCode.CONTENT_OUT_OF_RANGE)
            if content[name_range] == wanted:
                if len(content) < value_range.stop:
                    _fail(ErrorCode.CONTENT_OUT_OF_RANGE)
                return value_range
        return None