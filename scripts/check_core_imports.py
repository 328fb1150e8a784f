#!/usr/bin/env python3
"""
Keep gabclient.core independent of the endpoint wrappers.
Exits 1 and lists offending imports if any module under src/gabclient/core/
imports gabclient.endpoints (absolute or relative).
"""

from __future__ import annotations

import ast
import sys
from pathlib import Path
from typing import Iterator

REPO_ROOT = Path(__file__).resolve().parent.parent
CORE_DIR = REPO_ROOT / "src" / "gabclient" / "core"
CORE_PACKAGE = "gabclient.core"

FORBIDDEN_PREFIXES = ("gabclient.endpoints",)


def is_forbidden(module: str) -> bool:
    return any(
        module == prefix or module.startswith(prefix + ".")
        for prefix in FORBIDDEN_PREFIXES
    )


def resolve_relative(module: str, level: int) -> str:
    # level 1 is the core package itself
    parts = CORE_PACKAGE.split(".")
    base = parts[: len(parts) - (level - 1)]
    return ".".join(base + ([module] if module else []))


def imported_names(tree: ast.AST) -> Iterator[tuple[int, str]]:
    """Yield (lineno, dotted name) for every module an import could bind."""
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                yield node.lineno, alias.name
        elif isinstance(node, ast.ImportFrom):
            mod = node.module or ""
            if node.level:
                mod = resolve_relative(mod, node.level)
            yield node.lineno, mod
            # `from gabclient import endpoints` binds the subpackage
            for alias in node.names:
                yield node.lineno, f"{mod}.{alias.name}"


def scan_file(path: Path) -> list[str]:
    tree = ast.parse(path.read_text(), filename=str(path))
    seen: set[int] = set()
    errors: list[str] = []
    for lineno, name in imported_names(tree):
        if lineno in seen or not is_forbidden(name):
            continue
        seen.add(lineno)
        errors.append(f"{path}:{lineno}: core must not import '{name}'")
    return errors


def main() -> int:
    violations = [
        err for py_file in sorted(CORE_DIR.rglob("*.py")) for err in scan_file(py_file)
    ]
    for v in violations:
        print(v, file=sys.stderr)
    return 1 if violations else 0


if __name__ == "__main__":
    sys.exit(main())
