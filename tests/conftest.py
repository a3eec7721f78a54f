from __future__ import annotations

import importlib
import sys
from pathlib import Path
from typing import Callable, Mapping

ROOT = Path(__file__).resolve().parents[1]
for entry in (ROOT, ROOT / "src"):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))


import pytest

from datacompat.logging import configure_logging


@pytest.fixture(autouse=True)
def _logging_scope():
    configure_logging(verbose=True)
    yield


@pytest.fixture
def import_generated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Callable[..., object]:
    """Write ``{module name: code}`` under ``tmp_path`` and import one module."""

    def _import(units: Mapping[str, str], module_name: str):
        for name, code in units.items():
            parts = name.split(".")
            for depth in range(1, len(parts)):
                package = tmp_path.joinpath(*parts[:depth])
                package.mkdir(parents=True, exist_ok=True)
                init = package / "__init__.py"
                if not init.exists():
                    init.write_text("", encoding="utf-8")
            tmp_path.joinpath(*parts[:-1], f"{parts[-1]}.py").write_text(code, encoding="utf-8")
        monkeypatch.syspath_prepend(str(tmp_path))
        top = module_name.split(".")[0]
        for key in [key for key in sys.modules if key == top or key.startswith(top + ".")]:
            monkeypatch.delitem(sys.modules, key)
        importlib.invalidate_caches()
        return importlib.import_module(module_name)

    return _import
