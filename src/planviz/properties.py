"""Helpers for reading DataFusion expression annotations out of property values.

Property values are kept verbatim by the parser (``[a@0 ASC, b@1]``,
``Hash([k@0], 16)`` ...); every operator layout reads them through the
functions here so nested brackets and ``@N`` column indices are handled the
same way everywhere.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = {")", "]", "}"}

_FUNCTION_RE = re.compile(r"^(\w+)\s*\(")
_ALIAS_RE = re.compile(r"\s+as\s+([^\s@]+)", re.IGNORECASE)
_PROJECTION_ALIAS_RE = re.compile(r"\s+as\s+(.+?)(?:\s*@|$)", re.IGNORECASE)
_BEFORE_INDEX_RE = re.compile(r"^([^@]+)")
_INDEX_RE = re.compile(r"@\d+")
_JOIN_PAIR_RE = re.compile(r"\(([^,]+),\s*([^)]+)\)")
_HASH_RE = re.compile(r"^Hash\(\[([^\]]+)\],\s*(\d+)\)$")
_ROUND_ROBIN_RE = re.compile(r"^RoundRobinBatch\((\d+)\)$")
_TRAILING_COUNT_RES = (re.compile(r"\((\d+)\)$"), re.compile(r",\s*(\d+)\)$"))
_TOPK_RE = re.compile(r"TopK\(fetch=(\d+)\)")
_FETCH_RE = re.compile(r"fetch=(\d+)")
_FILE_GROUPS_RE = re.compile(r"groups?:\s*(\[.*\])")


def split_top_level(text: str, separator: str = ",") -> List[str]:
    """Split on ``separator`` outside of any ``()``, ``[]`` or ``{}`` nesting."""
    items: List[str] = []
    depth = 0
    current: List[str] = []
    for ch in text:
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            depth -= 1
        elif ch == separator and depth == 0:
            items.append("".join(current).strip())
            current = []
            continue
        current.append(ch)
    tail = "".join(current).strip()
    if tail:
        items.append(tail)
    return items


def bracket_content(value: str, opener: str = "[") -> Optional[str]:
    """Contents of the first balanced ``opener`` group in ``value``, or None."""
    closer = _OPENERS[opener]
    start = value.find(opener)
    if start < 0:
        return None
    depth = 0
    for pos in range(start, len(value)):
        ch = value[pos]
        if ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return value[start + 1 : pos]
    return None


def bracket_items(value: Optional[str]) -> List[str]:
    if not value:
        return []
    content = bracket_content(value)
    if content is None:
        return []
    return split_top_level(content)


def strip_indices(expression: str) -> str:
    """``a@0 = b@3`` -> ``a = b``."""
    return _INDEX_RE.sub("", expression)


def column_name(expression: str) -> str:
    """Name before the ``@N`` index: ``ts@2 ASC`` -> ``ts``."""
    trimmed = expression.strip()
    match = _BEFORE_INDEX_RE.match(trimmed)
    return match.group(1).strip() if match else trimmed


def function_name(expression: str) -> Optional[str]:
    match = _FUNCTION_RE.match(expression.strip())
    return match.group(1) if match else None


def output_name(expression: str) -> str:
    """Name an expression exposes downstream.

    Function calls are named after the function, aliased expressions after
    the alias and plain references after the column.
    """
    trimmed = expression.strip()
    name = function_name(trimmed)
    if name:
        return name
    alias = _ALIAS_RE.search(trimmed)
    if alias:
        return alias.group(1).strip()
    return column_name(trimmed)


def projection_alias(expression: str) -> str:
    """Alias of a projection item (``x@0 as y`` -> ``y``), else its column name."""
    trimmed = expression.strip()
    alias = _PROJECTION_ALIAS_RE.search(trimmed)
    if alias:
        return alias.group(1).strip()
    return column_name(trimmed)


def projection_columns(value: Optional[str]) -> List[str]:
    return [column_name(item) for item in bracket_items(value)]


def sort_columns(value: Optional[str]) -> List[str]:
    """Column names of an ordering list such as ``[a@0 ASC NULLS LAST, b@1 DESC]``."""
    names = []
    for item in bracket_items(value):
        name = column_name(item)
        if name:
            names.append(name)
    return names


def join_keys(on: Optional[str]) -> List[str]:
    """Left-side key names of ``[(a@0, a@1), (b@2, b@0)]``, de-duplicated in order."""
    if not on:
        return []
    content = bracket_content(on)
    if content is None:
        return []
    keys: List[str] = []
    for match in _JOIN_PAIR_RE.finditer(content):
        key = column_name(match.group(1))
        if key and key not in keys:
            keys.append(key)
    return keys


def limit_text(properties: Mapping[str, str]) -> Optional[str]:
    """Display text for a row limit: ``limit=N``, ``fetch=N`` or ``TopK(fetch=N)``."""
    if properties.get("limit"):
        return f"limit={properties['limit']}"
    if properties.get("fetch"):
        return f"fetch={properties['fetch']}"
    for value in properties.values():
        if not value:
            continue
        topk = _TOPK_RE.search(value)
        if topk:
            return f"TopK(fetch={topk.group(1)})"
        fetch = _FETCH_RE.search(value)
        if fetch:
            return f"fetch={fetch.group(1)}"
    return None


@dataclass(frozen=True)
class Partitioning:
    text: str
    count: int
    kind: str


def parse_partitioning(value: str) -> Partitioning:
    """Simplify a ``partitioning`` value and pull out its partition count.

    ``Hash([a@0, b@1], 16)`` becomes ``Hash([a, b], 16)``; unknown schemes
    are kept verbatim with a best-effort trailing count (0 when absent).
    """
    value = value.strip()
    match = _HASH_RE.match(value)
    if match:
        columns = ", ".join(column_name(col) for col in match.group(1).split(","))
        count = int(match.group(2))
        return Partitioning(f"Hash([{columns}], {count})", count, "hash")

    match = _ROUND_ROBIN_RE.match(value)
    if match:
        count = int(match.group(1))
        return Partitioning(f"RoundRobinBatch({count})", count, "round_robin")

    count = 0
    for pattern in _TRAILING_COUNT_RES:
        match = pattern.search(value)
        if match:
            count = int(match.group(1))
            break
    return Partitioning(value, count, "other")


def parse_file_groups(properties: Mapping[str, str]) -> List[List[str]]:
    """Files per group from ``file_groups={2 groups: [[a.parquet, b.parquet], [c.parquet]]}``."""
    raw = properties.get("file_groups")
    if not raw:
        return []
    match = _FILE_GROUPS_RE.search(raw)
    if not match:
        return []

    groups: List[List[str]] = []
    current_group: List[str] = []
    current_file: List[str] = []
    depth = 0
    in_quotes = False

    def flush_file() -> None:
        name = "".join(current_file).strip().strip("\"'")
        if name:
            current_group.append(name)
        current_file.clear()

    for ch in match.group(1):
        if ch in "\"'":
            in_quotes = not in_quotes
            continue
        if in_quotes:
            current_file.append(ch)
            continue
        if ch == "[":
            if depth == 1:
                current_group = []
                current_file.clear()
            depth += 1
        elif ch == "]":
            depth -= 1
            if depth == 1:
                flush_file()
                if current_group:
                    groups.append(current_group)
                current_group = []
            elif depth == 0:
                break
        elif ch == "," and depth == 2:
            flush_file()
        elif depth >= 2:
            current_file.append(ch)
    return groups


def file_label(path: str) -> str:
    """Base name of a data file without its extension."""
    base = os.path.basename(path.replace("\\", "/")) or path
    stem, _ = os.path.splitext(base)
    return stem or base


def aggregate_names(aggr: Optional[str]) -> List[str]:
    """Column names referenced by aggregate expressions (``sum(t.value)`` -> ``value``)."""
    names: List[str] = []
    for item in bracket_items(aggr):
        qualified = re.search(r"\([^)]*\.(\w+)\)", item)
        if qualified:
            names.append(qualified.group(1))
            continue
        plain = re.search(r"\((\w+)\)", item)
        if plain:
            names.append(plain.group(1))
    return names


def date_bin_source(expression: str) -> Optional[str]:
    """Column bucketed by a ``date_bin(..., col@N)`` group-by, if any."""
    if function_name(expression) != "date_bin":
        return None
    columns = re.findall(r"(\w+)@\d+", expression)
    return columns[-1] if columns else None


def parse_properties(text: str) -> Dict[str, str]:
    """Split ``key=value, key2=[a, b]`` into an ordered mapping.

    Segments without a ``key=`` prefix continue the previous value; leading
    positional text (``FilterExec: a@0 > 5``) is stored under ``args``.
    """
    properties: Dict[str, str] = {}
    last_key: Optional[str] = None
    for segment in split_top_level(text):
        if not segment:
            continue
        match = re.match(r"^(\w+)\s*=(?!=)\s*(.*)$", segment, re.DOTALL)
        if match:
            last_key = match.group(1)
            properties[last_key] = match.group(2).strip()
        elif last_key is None:
            last_key = "args"
            properties[last_key] = segment
        else:
            properties[last_key] = f"{properties[last_key]}, {segment}"
    return properties


__all__ = [
    "Partitioning",
    "aggregate_names",
    "bracket_content",
    "bracket_items",
    "column_name",
    "date_bin_source",
    "file_label",
    "function_name",
    "join_keys",
    "limit_text",
    "output_name",
    "parse_file_groups",
    "parse_partitioning",
    "parse_properties",
    "projection_alias",
    "projection_columns",
    "sort_columns",
    "split_top_level",
    "strip_indices",
]
