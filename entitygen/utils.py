# File: entitygen/utils.py
"""
entitygen - Utility Functions & Helpers
=========================================
String transformation, code-formatting and timing utilities shared by the
model builder and every generator backend.

Performance strategy:
- All naming functions are decorated with ``@lru_cache(maxsize=None)``;
  each backend recomputes the same names independently, so repeated calls
  are amortised to O(1).
- No external dependencies beyond the Python standard library.
"""

from __future__ import annotations

import functools
import hashlib
import logging
import re
import time
from typing import Dict, FrozenSet, List, Optional, Sequence, Set

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitygen.utils")

# ---------------------------------------------------------------------------
# Pre-compiled regex patterns (compiled once at module load)
# ---------------------------------------------------------------------------

_CAMEL_TO_SNAKE_RE1: re.Pattern[str] = re.compile(r"([A-Z]+)([A-Z][a-z])")
_CAMEL_TO_SNAKE_RE2: re.Pattern[str] = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALPHANUM_RE: re.Pattern[str] = re.compile(r"[^a-zA-Z0-9]")
_MULTI_UNDERSCORE_RE: re.Pattern[str] = re.compile(r"_{2,}")
_LEADING_TRAILING_UNDERSCORE_RE: re.Pattern[str] = re.compile(r"^_+|_+$")
_IDENTIFIER_RE: re.Pattern[str] = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Python keywords that cannot be used as identifiers in generated code
_PYTHON_KEYWORDS: FrozenSet[str] = frozenset({
    "False", "None", "True", "and", "as", "assert", "async", "await",
    "break", "class", "continue", "def", "del", "elif", "else",
    "except", "finally", "for", "from", "global", "if", "import",
    "in", "is", "lambda", "nonlocal", "not", "or", "pass", "raise",
    "return", "try", "while", "with", "yield",
})


# ---------------------------------------------------------------------------
# Cached string transformation functions
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def to_snake_case(name: str) -> str:
    """
    Convert any string to snake_case.

    Examples:
        >>> to_snake_case("UserProfile")
        'user_profile'
        >>> to_snake_case("getHTTPResponse")
        'get_http_response'
        >>> to_snake_case("already_snake")
        'already_snake'
    """
    if not name:
        return ""
    s: str = _CAMEL_TO_SNAKE_RE1.sub(r"\1_\2", name)
    s = _CAMEL_TO_SNAKE_RE2.sub(r"\1_\2", s)
    s = _NON_ALPHANUM_RE.sub("_", s)
    s = _MULTI_UNDERSCORE_RE.sub("_", s)
    s = _LEADING_TRAILING_UNDERSCORE_RE.sub("", s)
    return s.lower()


@functools.lru_cache(maxsize=None)
def pluralize(word: str) -> str:
    """
    English pluralisation used for relation table names.

    Examples:
        >>> pluralize("user")
        'users'
        >>> pluralize("status")
        'statuses'
        >>> pluralize("category")
        'categories'
        >>> pluralize("key")
        'keys'
    """
    if word.endswith(("s", "sh", "ch", "x")):
        return f"{word}es"
    if word.endswith("y") and not word.endswith(("ay", "ey", "oy")):
        return f"{word[:-1]}ies"
    return f"{word}s"


def is_identifier(name: str) -> bool:
    """True when *name* is usable as a Python/SQL identifier."""
    return bool(_IDENTIFIER_RE.match(name)) and name not in _PYTHON_KEYWORDS


# ---------------------------------------------------------------------------
# Code formatting helpers
# ---------------------------------------------------------------------------


def make_docstring(text: str, indent_level: int = 1, size: int = 4) -> List[str]:
    """
    Create a properly formatted Python docstring as a list of lines.

    Single-line docstrings stay on one line; multi-line use triple-quote blocks.
    """
    prefix: str = " " * (indent_level * size)
    stripped: str = text.strip().replace('"""', "'''")

    if "\n" not in stripped and len(stripped) + len(prefix) + 6 <= 99:
        return [f'{prefix}"""{stripped}"""']

    parts: List[str] = [f'{prefix}"""']
    parts.extend(f"{prefix}{line}" if line.strip() else "" for line in stripped.split("\n"))
    parts.append(f'{prefix}"""')
    return parts


def py_literal(value: str) -> str:
    """Render *value* as a double-quoted Python string literal."""
    escaped: str = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


def build_import_block(imports: Dict[str, Set[str]]) -> List[str]:
    """
    Build a sorted, de-duplicated import block from a mapping of
    module → set of names.

    Standard-library style absolute modules come first, relative imports
    (leading dot) last.

    Example:
        >>> build_import_block({"typing": {"List", "Optional"}, "uuid": {"UUID"}})
        ['from typing import List, Optional', 'from uuid import UUID']
    """
    absolute: List[str] = sorted(m for m in imports if not m.startswith("."))
    relative: List[str] = sorted(m for m in imports if m.startswith("."))
    lines: List[str] = []
    for module in absolute + relative:
        names: List[str] = sorted(imports[module])
        if names:
            lines.append(f"from {module} import {', '.join(names)}")
        else:
            lines.append(f"import {module}")
    return lines


def add_import(imports: Dict[str, Set[str]], module: str, *names: str) -> None:
    """Register *names* from *module* in an import mapping."""
    imports.setdefault(module, set()).update(names)


def import_dotted(imports: Dict[str, Set[str]], path: str) -> str:
    """
    Register the import for a dotted class path and return the bare name.

    A path without a dot is returned unchanged (builtins, names already in
    scope).

    Example:
        >>> imports = {}
        >>> import_dotted(imports, "app.errors.AppError"), imports
        ('AppError', {'app.errors': {'AppError'}})
    """
    module, _, name = path.rpartition(".")
    if module:
        add_import(imports, module, name)
    return name


def render_module(
    docstring: str,
    imports: Dict[str, Set[str]],
    body: Sequence[str],
) -> str:
    """
    Assemble a generated Python module.

    The layout is fixed: docstring, ``from __future__`` import, sorted import
    block, two blank lines, body, trailing newline.
    """
    lines: List[str] = make_docstring(docstring, indent_level=0)
    lines.append("")
    lines.append("from __future__ import annotations")
    block: List[str] = build_import_block(imports)
    if block:
        lines.append("")
        lines.extend(block)
    lines.append("")
    lines.append("")
    lines.extend(body)
    while lines and not lines[-1].strip():
        lines.pop()
    return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# Checksum & metrics
# ---------------------------------------------------------------------------


def sha256_hex(content: str) -> str:
    """Return SHA-256 hex digest of a string."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def count_lines(content: str) -> int:
    """Count the number of lines in a string."""
    if not content:
        return 0
    return content.count("\n") + (1 if not content.endswith("\n") else 0)


# ---------------------------------------------------------------------------
# Timer context manager
# ---------------------------------------------------------------------------


class Timer:
    """
    Simple context-manager timer for profiling pipeline steps.

    Usage:
        with Timer("build entities") as t:
            ...
        print(t.elapsed)
    """

    __slots__ = ("label", "start_time", "end_time", "elapsed")

    def __init__(self, label: str = "operation") -> None:
        self.label: str = label
        self.start_time: float = 0.0
        self.end_time: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[object],
    ) -> None:
        self.end_time = time.perf_counter()
        self.elapsed = self.end_time - self.start_time
        logger.debug("Timer [%s]: %.4f seconds", self.label, self.elapsed)

    def __repr__(self) -> str:
        return f"<Timer {self.label}: {self.elapsed:.4f}s>"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "to_snake_case",
    "pluralize",
    "is_identifier",
    "make_docstring",
    "py_literal",
    "build_import_block",
    "add_import",
    "import_dotted",
    "render_module",
    "sha256_hex",
    "count_lines",
    "Timer",
]

logger.debug("entitygen.utils loaded — %d public symbols.", len(__all__))
