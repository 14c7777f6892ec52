"""Human-readable rendering of decoded calldata."""

from typing import Any, Dict, List

from .abi_decoding import DecodedValue
from .decoder import DecodeResult

ZERO_ADDRESS = "0x" + "0" * 40
BYTES_PREVIEW = 32


def _group_digits(digits: str) -> str:
    if len(digits) <= 6:
        return digits
    head = len(digits) % 3 or 3
    groups = [digits[:head]] + [digits[i : i + 3] for i in range(head, len(digits), 3)]
    return "_".join(groups)


def format_value(value: DecodedValue) -> str:
    if value.kind == "address":
        if value.value.lower() == ZERO_ADDRESS:
            return f"{value.value} (Zero Address)"
        return value.value

    if value.kind in {"uint", "int"}:
        number = value.value
        sign = "-" if number < 0 else ""
        return f"{sign}{_group_digits(str(abs(number)))} ({value.type})"

    if value.kind == "bool":
        return "true" if value.value else "false"

    if value.kind in {"bytes", "fixed_bytes", "function"}:
        raw: bytes = value.value
        if len(raw) <= BYTES_PREVIEW:
            return "0x" + raw.hex()
        return f"0x{raw[:BYTES_PREVIEW].hex()}... ({len(raw)} bytes)"

    if value.kind == "string":
        return f'"{value.value}"'

    if value.kind in {"array", "fixed_array"}:
        return "[" + ", ".join(format_value(item) for item in value.value) + "]"

    if value.kind == "tuple":
        return "(" + ", ".join(f"{item.name}: {format_value(item)}" for item in value.value) + ")"

    return repr(value.value)


def render_rows(result: DecodeResult) -> List[Dict[str, str]]:
    """One row per parameter: name, canonical type and formatted value."""
    rows: List[Dict[str, str]] = []
    for idx, (entry, value) in enumerate(zip(result.descriptor.inputs, result.values)):
        rows.append(
            {
                "name": entry.get("name") or f"param{idx}",
                "type": value.type,
                "value": format_value(value),
            }
        )
    return rows


def to_jsonable(value: DecodedValue) -> Any:
    if value.kind in {"array", "fixed_array"}:
        return [to_jsonable(item) for item in value.value]
    if value.kind == "tuple":
        names = [item.name for item in value.value]
        return {
            item.name if item.name and names.count(item.name) == 1 else f"field{idx}": to_jsonable(item)
            for idx, item in enumerate(value.value)
        }
    if isinstance(value.value, bytes):
        return "0x" + value.value.hex()
    if isinstance(value.value, int) and not isinstance(value.value, bool):
        return str(value.value)
    return value.value


def result_to_dict(result: DecodeResult) -> Dict[str, Any]:
    return {
        "function": result.function_name,
        "signature": result.descriptor.signature,
        "selector": result.selector,
        "source": result.source,
        "candidates_tried": result.candidates_tried,
        "params": [
            {**row, "raw": to_jsonable(value)}
            for row, value in zip(render_rows(result), result.values)
        ],
    }
