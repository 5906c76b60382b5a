"""
The ZingTTP variable model.

Variables are plain Python values drawn from a closed set of types:

    None   -> Null
    bool   -> Boolean
    int    -> Int (signed 128-bit)
    float  -> Float
    str    -> String
    list   -> List of variables
    dict   -> Map from key string to variable

The store is a tree: containers own their children and every assignment
stores a deep copy, so no two locations ever share a container.
"""
import re
from typing import Any, Dict, List, Optional

from zing.zing_debug import dbg

INT_MIN = -(1 << 127)
INT_MAX = (1 << 127) - 1

_INT_RE = re.compile(
    r"""[+-]?(?:
        0[xX][0-9a-fA-F](?:_?[0-9a-fA-F])*
      | 0[oO][0-7](?:_?[0-7])*
      | 0[bB][01](?:_?[01])*
      | [0-9](?:_?[0-9])*
    )""",
    re.VERBOSE,
)


class VariableTypeError(TypeError):
    """Raised when a Python value outside the closed variable types is stored."""


def type_name(value: Any) -> str:
    match value:
        case None:
            return "null"
        case bool():
            return "boolean"
        case int():
            return "int"
        case float():
            return "float"
        case str():
            return "string"
        case list():
            return "list"
        case dict():
            return "map"
    raise VariableTypeError(f"{type(value).__name__} is not a variable type")


# =================================================================
# Copy
# =================================================================

def copy_value(value: Any) -> Any:
    """Returns a deep copy of a variable. No substructure is shared."""
    match value:
        case None | bool() | int() | float() | str():
            return value
        case list():
            return [copy_value(item) for item in value]
        case dict():
            return {str(key): copy_value(item) for key, item in value.items()}
    raise VariableTypeError(f"{type(value).__name__} is not a variable type")


# =================================================================
# Path resolution
# =================================================================

def split_path(path: str) -> List[str]:
    """Splits a dotted path, dropping empty segments anywhere."""
    return [segment for segment in path.split(".") if segment]


def _list_index(segment: str) -> Optional[int]:
    if not segment.isascii() or not segment.isdigit():
        return None
    return int(segment)


def get(root: Any, path: str) -> Any:
    """Looks up `path` below `root`.

    Maps are entered by exact key and lists by non-negative decimal index.
    Anything that cannot be followed resolves to None. An empty path returns
    the root itself.
    """
    value = root
    for segment in split_path(path):
        match value:
            case dict():
                if segment not in value:
                    dbg("Variable", path, "has no key", segment)
                    return None
                value = value[segment]
            case list():
                idx = _list_index(segment)
                if idx is None or idx >= len(value):
                    dbg("Variable", path, "has no index", segment)
                    return None
                value = value[idx]
            case _:
                return None
    return value


def set_path(root: Dict[str, Any], path: str, value: Any) -> bool:
    """Stores a copy of `value` at `path` below the root map.

    Existing maps along the path are followed; missing (or non-map) parts of
    the path are created as nested maps around the copy. Storing None where
    new maps would be needed does nothing. Returns True if the store changed.
    """
    segments = split_path(path)
    if not segments:
        raise KeyError(f"'{path}' is not a valid variable path")
    type_name(value)

    container = root
    depth = 0
    while depth < len(segments) - 1:
        child = container.get(segments[depth])
        if not isinstance(child, dict):
            break
        container = child
        depth += 1

    remaining = segments[depth:]
    if len(remaining) > 1 and value is None:
        dbg("Not creating", ".".join(segments[:depth + 1]), "to store null")
        return False

    result = copy_value(value)
    for segment in reversed(remaining[1:]):
        result = {segment: result}

    # Dropping the old reference releases the previous subtree.
    container[remaining[0]] = result
    return True


# =================================================================
# Type inference
# =================================================================

def _parse_int(text: str) -> Optional[int]:
    if not _INT_RE.fullmatch(text):
        return None
    sign = -1 if text[0] == "-" else 1
    digits = text.lstrip("+-").replace("_", "")
    match digits[:2].lower():
        case "0x":
            number = int(digits[2:], 16)
        case "0o":
            number = int(digits[2:], 8)
        case "0b":
            number = int(digits[2:], 2)
        case _:
            number = int(digits, 10)
    number *= sign
    if number < INT_MIN or number > INT_MAX:
        return None
    return number


def _parse_float(text: str) -> Optional[float]:
    if text != text.strip() or not text.isascii():
        return None
    try:
        return float(text)
    except ValueError:
        return None


def parse_literal(text: str) -> Any:
    """Infers a typed variable from synthesized text.

    Rules, first match wins: empty -> None; "null" -> None; "true"/"false" ->
    bool (all case-insensitive); integer with optional 0x/0o/0b prefix -> int;
    float -> float; text wrapped in one pair of matching quotes -> the text
    inside; anything else -> the text itself.
    """
    if not text:
        return None
    lowered = text.lower()
    if lowered == "null":
        return None
    if lowered == "true":
        return True
    if lowered == "false":
        return False

    number = _parse_int(text)
    if number is not None:
        return number
    real = _parse_float(text)
    if real is not None:
        return real

    if len(text) > 1 and text[0] == text[-1] and text[0] in "'\"":
        return text[1:-1]
    return text

