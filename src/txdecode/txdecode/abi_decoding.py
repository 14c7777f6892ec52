"""
Bounds-checked ABI head/tail decoding of function parameters.

Static types occupy their slot in the head; dynamic types (``bytes``,
``string``, ``T[]`` and any array/tuple containing one) store an offset into
the tail. Every read is checked against the buffer so a wrong candidate fails
with :class:`DecodeLayoutError` instead of reading garbage.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from eth_utils import to_checksum_address

from .errors import DecodeLayoutError
from .selector import SELECTOR_SIZE
from .signatures import FunctionDescriptor, canonical_type, split_array_dimensions

WORD = 32

Dims = List[Optional[int]]
Components = List[Dict[str, Any]]


@dataclass
class DecodedValue:
    kind: str
    type: str
    value: Any
    bits: Optional[int] = None
    size: Optional[int] = None
    name: Optional[str] = None


def decode_parameters(descriptor: FunctionDescriptor, calldata: bytes) -> List[DecodedValue]:
    """Decode the bytes after the selector against ``descriptor``'s inputs."""
    try:
        values = decode_abi(descriptor.inputs, bytes(calldata[SELECTOR_SIZE:]))
    except DecodeLayoutError as exc:
        exc.details.setdefault("signature", descriptor.signature)
        raise
    for entry, value in zip(descriptor.inputs, values):
        value.name = entry.get("name") or None
    return values


def decode_abi(inputs: Components, data: bytes) -> List[DecodedValue]:
    if len(data) % WORD != 0:
        raise DecodeLayoutError(
            f"Parameter region length {len(data)} is not a multiple of {WORD} bytes.",
            length=len(data),
        )
    prepared = [_prepare(entry) for entry in inputs]
    head_size = sum(_head_size(base, dims, comps) for base, dims, comps in prepared)
    if head_size > len(data):
        raise DecodeLayoutError(
            f"Parameter region too short: expected at least {head_size} bytes, got {len(data)}.",
            length=len(data),
            expected=head_size,
        )
    return _decode_components(prepared, data, 0)


def _prepare(entry: Dict[str, Any]) -> Tuple[str, Dims, Components]:
    base, dims = split_array_dimensions(entry.get("type", ""))
    return base, dims, entry.get("components") or []


def _type_string(base: str, dims: Dims, components: Components) -> str:
    if base == "tuple":
        base = canonical_type({"type": "tuple", "components": components})
    return base + "".join(f"[{dim if dim is not None else ''}]" for dim in reversed(dims))


def _is_dynamic(base: str, dims: Dims, components: Components) -> bool:
    if dims:
        if dims[0] is None:
            return True
        return _is_dynamic(base, dims[1:], components)

    if base in {"bytes", "string"}:
        return True
    if base == "tuple":
        return any(_is_dynamic(*_prepare(comp)) for comp in components)
    return False


def _static_size(base: str, dims: Dims, components: Components) -> int:
    if dims:
        return dims[0] * _static_size(base, dims[1:], components)
    if base == "tuple":
        return sum(_static_size(*_prepare(comp)) for comp in components)
    return WORD


def _head_size(base: str, dims: Dims, components: Components) -> int:
    if _is_dynamic(base, dims, components):
        return WORD
    return _static_size(base, dims, components)


def _read_word(data: bytes, offset: int) -> bytes:
    end = offset + WORD
    if offset < 0 or end > len(data):
        raise DecodeLayoutError(
            f"Read of word at offset {offset} exceeds data length {len(data)}.",
            offset=offset,
        )
    return data[offset:end]


def _read_uint(data: bytes, offset: int) -> int:
    return int.from_bytes(_read_word(data, offset), "big")


def _follow_offset(data: bytes, head_offset: int, data_base: int) -> int:
    target = data_base + _read_uint(data, head_offset)
    if target + WORD > len(data):
        raise DecodeLayoutError(
            f"Offset at {head_offset} points to {target}, beyond data length {len(data)}.",
            offset=head_offset,
        )
    return target


def _decode_components(prepared: List[Tuple[str, Dims, Components]], data: bytes, base_offset: int) -> List[DecodedValue]:
    values: List[DecodedValue] = []
    cursor = base_offset
    for base, dims, comps in prepared:
        values.append(_decode_type(base, dims, comps, data, cursor, base_offset))
        cursor += _head_size(base, dims, comps)
    return values


def _decode_type(
    base: str,
    dims: Dims,
    components: Components,
    data: bytes,
    head_offset: int,
    data_base: int,
) -> DecodedValue:
    if dims:
        return _decode_array(base, dims, components, data, head_offset, data_base)
    if base == "tuple":
        return _decode_tuple(components, data, head_offset, data_base)
    if base in {"bytes", "string"}:
        return _decode_dynamic_bytes(base, data, head_offset, data_base)
    return _decode_elementary(base, _read_word(data, head_offset))


def _decode_elementary(base: str, word: bytes) -> DecodedValue:
    if base == "address":
        if any(word[:12]):
            raise DecodeLayoutError("Address word has non-zero high-order bytes.")
        return DecodedValue("address", base, to_checksum_address("0x" + word[12:].hex()), bits=160)

    if base == "bool":
        flag = int.from_bytes(word, "big")
        if flag > 1:
            raise DecodeLayoutError(f"Boolean word has value {flag}.")
        return DecodedValue("bool", base, bool(flag))

    if base.startswith("uint"):
        bits = int(base[4:])
        value = int.from_bytes(word, "big")
        if value >> bits:
            raise DecodeLayoutError(f"Value does not fit in {base}.")
        return DecodedValue("uint", base, value, bits=bits)

    if base.startswith("int"):
        bits = int(base[3:])
        value = int.from_bytes(word, "big", signed=True)
        bound = 1 << (bits - 1)
        if not -bound <= value < bound:
            raise DecodeLayoutError(f"Value does not fit in {base}.")
        return DecodedValue("int", base, value, bits=bits)

    if base == "function":
        if any(word[24:]):
            raise DecodeLayoutError("Function word has non-zero padding.")
        return DecodedValue("function", base, word[:24], size=24)

    if base.startswith("bytes"):
        size = int(base[5:])
        if any(word[size:]):
            raise DecodeLayoutError(f"{base} word has non-zero padding.")
        return DecodedValue("fixed_bytes", base, word[:size], size=size)

    raise DecodeLayoutError(f"Unsupported ABI type '{base}'.")


def _decode_dynamic_bytes(base: str, data: bytes, head_offset: int, data_base: int) -> DecodedValue:
    start = _follow_offset(data, head_offset, data_base)
    length = _read_uint(data, start)
    data_start = start + WORD
    padded_end = data_start + -(-length // WORD) * WORD
    if padded_end > len(data):
        raise DecodeLayoutError(
            f"{base} of length {length} at {start} exceeds data length {len(data)}.",
            offset=start,
        )
    raw = data[data_start : data_start + length]
    if base == "bytes":
        return DecodedValue("bytes", base, raw, size=length)
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeLayoutError(f"string at {start} is not valid UTF-8.", offset=start) from exc
    return DecodedValue("string", base, text, size=length)


def _decode_array(
    base: str,
    dims: Dims,
    components: Components,
    data: bytes,
    head_offset: int,
    data_base: int,
) -> DecodedValue:
    dim = dims[0]
    inner = dims[1:]
    type_str = _type_string(base, dims, components)
    element_dynamic = _is_dynamic(base, inner, components)
    element_head = WORD if element_dynamic else _static_size(base, inner, components)

    if dim is None:
        array_base = _follow_offset(data, head_offset, data_base)
        length = _read_uint(data, array_base)
        elements_base = array_base + WORD
    elif element_dynamic:
        length = dim
        elements_base = _follow_offset(data, head_offset, data_base)
    else:
        length = dim
        elements_base = head_offset

    # elements count as at least one byte each
    if length * max(element_head, 1) > len(data) - elements_base:
        raise DecodeLayoutError(
            f"Array {type_str} of length {length} at {elements_base} exceeds data length {len(data)}.",
            offset=elements_base,
        )

    items = [
        _decode_type(base, inner, components, data, elements_base + element_head * idx, elements_base)
        for idx in range(length)
    ]
    kind = "array" if dim is None else "fixed_array"
    return DecodedValue(kind, type_str, items, size=length)


def _decode_tuple(components: Components, data: bytes, head_offset: int, data_base: int) -> DecodedValue:
    prepared = [_prepare(comp) for comp in components]
    if _is_dynamic("tuple", [], components):
        tuple_base = _follow_offset(data, head_offset, data_base)
    else:
        tuple_base = head_offset
    fields = _decode_components(prepared, data, tuple_base)
    for idx, (comp, value) in enumerate(zip(components, fields)):
        value.name = comp.get("name") or f"field{idx}"
    return DecodedValue("tuple", _type_string("tuple", [], components), fields)
