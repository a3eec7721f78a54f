from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import libcst as cst


@dataclass(frozen=True)
class SourceUnit:
    """One parsed Python module offered to a round."""

    module_name: str
    module: cst.Module
    path: Optional[Path] = None
    is_package: bool = False
    generated: bool = False

    @property
    def package_name(self) -> str:
        if self.is_package:
            return self.module_name
        return self.module_name.rpartition(".")[0]

    @property
    def display_name(self) -> str:
        return str(self.path) if self.path is not None else self.module_name

    @classmethod
    def from_code(
        cls,
        module_name: str,
        code: str,
        *,
        path: Optional[Path] = None,
        is_package: bool = False,
        generated: bool = False,
    ) -> "SourceUnit":
        return cls(
            module_name=module_name,
            module=cst.parse_module(code),
            path=path,
            is_package=is_package,
            generated=generated,
        )

    @classmethod
    def from_path(cls, path: Path, root: Path | None = None) -> "SourceUnit":
        code = path.read_text(encoding="utf-8")
        return cls.from_code(
            module_name_for(path, root),
            code,
            path=path,
            is_package=path.name == "__init__.py",
            generated=is_generated_code(code),
        )


def module_name_for(path: Path, project_root: Path | None) -> str:
    rel = path.with_suffix("")
    if project_root is not None:
        try:
            rel = rel.resolve().relative_to(project_root.resolve())
        except ValueError:
            pass
    parts = list(rel.parts)
    if parts and parts[0] == "src":
        parts = parts[1:]
    if parts and parts[-1] == "__init__":
        parts = parts[:-1]
    return ".".join(parts)


def iter_python_files(paths: list[Path]) -> list[Path]:
    files: list[Path] = []
    for path in paths:
        if path.is_dir():
            files.extend(
                sorted(
                    candidate
                    for candidate in path.rglob("*.py")
                    if "__pycache__" not in candidate.parts
                )
            )
        elif path.suffix == ".py":
            files.append(path)
    return files


def is_generated_code(code: str) -> bool:
    """True for modules written by the generator, recognised by their header."""
    for line in code.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        if not stripped.startswith("#"):
            return False
        if stripped.startswith("# @generated from "):
            return True
    return False
