"""
Solidity function signature parsing.

Turns signature text such as ``transfer(address,uint256)`` or
``function swap((address,uint24)[] memory path, uint amountIn) external``
into a :class:`FunctionDescriptor` whose parameters use the JSON ABI entry
shape (``{"name", "type", "components"}``). The descriptor's selector is
always derived from its canonical signature, never taken from the input text.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .errors import SignatureSyntaxError
from .selector import compute_selector, selector_hex

IDENTIFIER_PATTERN = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")
SIZED_INT_PATTERN = re.compile(r"^(u?int)([0-9]+)$")
SIZED_BYTES_PATTERN = re.compile(r"^bytes([0-9]+)$")

LOCATION_KEYWORDS = {"memory", "calldata", "storage", "indexed"}
TRAILING_KEYWORDS = {
    "external",
    "public",
    "internal",
    "private",
    "pure",
    "view",
    "payable",
    "nonpayable",
    "virtual",
    "override",
}
ELEMENTARY_TYPES = {"address", "bool", "string", "bytes", "function"}
TYPE_ALIASES = {"uint": "uint256", "int": "int256", "byte": "bytes1"}
MAX_NESTING_DEPTH = 32


@dataclass
class FunctionDescriptor:
    """A function name plus ordered, typed parameter slots."""

    name: str
    inputs: List[Dict[str, Any]] = field(default_factory=list)
    state_mutability: Optional[str] = None

    @property
    def input_types(self) -> List[str]:
        return [canonical_type(entry) for entry in self.inputs]

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.input_types)})"

    @property
    def selector(self) -> bytes:
        return compute_selector(self.signature)

    @property
    def selector_hex(self) -> str:
        return selector_hex(self.selector)

    def to_abi(self) -> Dict[str, Any]:
        entry: Dict[str, Any] = {"type": "function", "name": self.name, "inputs": self.inputs}
        if self.state_mutability:
            entry["stateMutability"] = self.state_mutability
        return entry

    @classmethod
    def from_abi(cls, entry: Dict[str, Any]) -> "FunctionDescriptor":
        """Build a descriptor from a JSON ABI function entry, validating every type."""
        if not isinstance(entry, dict):
            raise ValueError("ABI entry must be an object.")
        name = entry.get("name")
        if not isinstance(name, str) or not IDENTIFIER_PATTERN.fullmatch(name):
            raise ValueError(f"Invalid ABI function name {name!r}.")
        inputs = entry.get("inputs") or []
        if not isinstance(inputs, list):
            raise ValueError(f"ABI inputs for {name} must be a list.")
        mutability = entry.get("stateMutability")
        return cls(
            name=name,
            inputs=[_normalize_abi_param(param) for param in inputs],
            state_mutability=mutability if isinstance(mutability, str) else None,
        )


def canonical_type(entry: Dict[str, Any]) -> str:
    """Canonical type string for a parameter entry; tuples render as ``(t1,t2)``."""
    typ = entry["type"]
    if not typ.startswith("tuple"):
        return typ
    suffix = typ[len("tuple"):]
    components = entry.get("components") or []
    return "(" + ",".join(canonical_type(comp) for comp in components) + ")" + suffix


def split_array_dimensions(typ: str) -> Tuple[str, List[Optional[int]]]:
    """
    Split ``uint256[2][]`` into ``("uint256", [None, 2])``.

    Dimensions are returned outermost first; in Solidity the last bracket is
    the outermost one (``T[2][]`` is a dynamic array of ``T[2]``).
    """
    base = typ.strip()
    dims: List[Optional[int]] = []
    while base.endswith("]"):
        lidx = base.rfind("[")
        if lidx < 0:
            raise ValueError(f"Unbalanced array brackets in type '{typ}'.")
        dim_str = base[lidx + 1 : -1].strip()
        if dim_str == "":
            dims.append(None)
        elif dim_str.isdigit() and int(dim_str) > 0:
            dims.append(int(dim_str))
        else:
            raise ValueError(f"Invalid array dimension '{dim_str}' in type '{typ}'.")
        base = base[:lidx].rstrip()
    return base, dims


def normalize_elementary(name: str) -> Optional[str]:
    """Return the canonical elementary type for ``name`` or ``None`` if it is not one."""
    name = TYPE_ALIASES.get(name, name)
    if name in ELEMENTARY_TYPES:
        return name
    match = SIZED_INT_PATTERN.match(name)
    if match:
        bits = int(match.group(2))
        if 8 <= bits <= 256 and bits % 8 == 0 and not match.group(2).startswith("0"):
            return name
        return None
    match = SIZED_BYTES_PATTERN.match(name)
    if match:
        size = int(match.group(1))
        if 1 <= size <= 32 and not match.group(1).startswith("0"):
            return name
    return None


def parse_signature(text: str) -> FunctionDescriptor:
    """
    Parse a Solidity-style function signature.

    Accepts an optional ``function`` keyword, parameter names, data-location
    keywords, nested tuples (``(...)`` or ``tuple(...)``), array suffixes and
    trailing mutability / ``returns (...)`` clauses.

    Raises:
        SignatureSyntaxError: If the text does not match the grammar.
    """
    if not isinstance(text, str):
        raise SignatureSyntaxError(repr(text), "signature must be a string")
    return _SignatureReader(text).parse_function()


class _SignatureReader:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        self.depth = 0

    def error(self, reason: str) -> SignatureSyntaxError:
        return SignatureSyntaxError(self.text, f"{reason} at position {self.pos}")

    def skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def peek(self) -> str:
        self.skip_ws()
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def expect(self, char: str) -> None:
        if self.peek() != char:
            raise self.error(f"expected '{char}'")
        self.pos += 1

    def identifier(self) -> Optional[str]:
        self.skip_ws()
        match = IDENTIFIER_PATTERN.match(self.text, self.pos)
        if not match:
            return None
        self.pos = match.end()
        return match.group(0)

    def parse_function(self) -> FunctionDescriptor:
        name = self.identifier()
        if name == "function":
            name = self.identifier()
        if not name:
            raise self.error("missing function name")
        self.expect("(")
        inputs = self.parse_param_list()

        mutability: Optional[str] = None
        while True:
            start = self.pos
            word = self.identifier()
            if word is None:
                break
            if word in TRAILING_KEYWORDS:
                if word in {"pure", "view", "payable", "nonpayable"}:
                    mutability = word
                continue
            if word == "returns":
                self.expect("(")
                self.parse_param_list()
                continue
            self.pos = start
            raise self.error(f"unexpected token '{word}'")

        if self.peek():
            raise self.error("unexpected trailing text")
        return FunctionDescriptor(name=name, inputs=inputs, state_mutability=mutability)

    def parse_param_list(self) -> List[Dict[str, Any]]:
        if self.depth >= MAX_NESTING_DEPTH:
            raise self.error("nesting too deep")
        self.depth += 1
        try:
            return self._param_list_body()
        finally:
            self.depth -= 1

    def _param_list_body(self) -> List[Dict[str, Any]]:
        params: List[Dict[str, Any]] = []
        if self.peek() == ")":
            self.pos += 1
            return params
        while True:
            params.append(self.parse_param())
            char = self.peek()
            if char == ",":
                self.pos += 1
                continue
            if char == ")":
                self.pos += 1
                return params
            raise self.error("expected ',' or ')'" if char else "unterminated parameter list")

    def parse_param(self) -> Dict[str, Any]:
        typ, components = self.parse_type()
        name = ""
        while True:
            start = self.pos
            word = self.identifier()
            if word is None:
                break
            if word in LOCATION_KEYWORDS:
                continue
            if name:
                self.pos = start
                raise self.error(f"unexpected token '{word}'")
            name = word
        entry: Dict[str, Any] = {"name": name, "type": typ}
        if components is not None:
            entry["components"] = components
        return entry

    def parse_type(self) -> Tuple[str, Optional[List[Dict[str, Any]]]]:
        components: Optional[List[Dict[str, Any]]] = None
        if self.peek() == "(":
            self.pos += 1
            components = self.parse_param_list()
            base = "tuple"
        else:
            word = self.identifier()
            if word is None:
                raise self.error("expected a type")
            if word == "tuple":
                self.expect("(")
                components = self.parse_param_list()
                base = "tuple"
            else:
                elementary = normalize_elementary(word)
                if elementary is None:
                    raise self.error(f"unknown type '{word}'")
                base = elementary
                if base == "address":
                    start = self.pos
                    if self.identifier() != "payable":
                        self.pos = start

        suffix = ""
        dims = 0
        while self.peek() == "[":
            dims += 1
            if dims > MAX_NESTING_DEPTH:
                raise self.error("too many array dimensions")
            self.pos += 1
            self.skip_ws()
            start = self.pos
            while self.pos < len(self.text) and self.text[self.pos].isdigit():
                self.pos += 1
            digits = self.text[start : self.pos]
            if digits.startswith("0"):
                raise self.error(f"invalid array size '{digits}'")
            self.expect("]")
            suffix += f"[{digits}]"
        return base + suffix, components


def _normalize_abi_param(param: Any) -> Dict[str, Any]:
    if not isinstance(param, dict):
        raise ValueError("ABI parameter must be an object.")
    typ = param.get("type")
    if not isinstance(typ, str) or not typ:
        raise ValueError("ABI parameter is missing a type.")
    base, _dims = split_array_dimensions(typ)
    name = param.get("name") or ""
    if not isinstance(name, str):
        raise ValueError("ABI parameter name must be a string.")

    entry: Dict[str, Any] = {"name": name}
    if base == "tuple":
        components = param.get("components")
        if not isinstance(components, list):
            raise ValueError(f"Tuple parameter '{name}' has no components.")
        entry["type"] = typ.replace(" ", "")
        entry["components"] = [_normalize_abi_param(comp) for comp in components]
        return entry

    elementary = normalize_elementary(base)
    if elementary is None:
        raise ValueError(f"Unsupported ABI type '{typ}'.")
    entry["type"] = elementary + typ.strip()[len(base):].replace(" ", "")
    return entry
