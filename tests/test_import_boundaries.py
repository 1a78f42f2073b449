from __future__ import annotations

import importlib.util
from pathlib import Path
from types import ModuleType

ROOT = Path(__file__).resolve().parents[1]


def _load_checker_module() -> ModuleType:
    module_path = ROOT / "tools" / "check_imports.py"
    spec = importlib.util.spec_from_file_location("check_imports_tool", module_path)
    assert spec is not None
    loader = spec.loader
    assert loader is not None
    module = importlib.util.module_from_spec(spec)
    loader.exec_module(module)
    return module


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_check_file_allows_core_importing_domain(tmp_path: Path) -> None:
    checker = _load_checker_module()
    source_root = tmp_path / "src" / "cast_studio"
    core_file = source_root / "core" / "graph.py"
    _write(core_file, "from cast_studio.domain.models import StoryProject\nfrom . import errors\n")
    assert checker.check_file(core_file, source_root) == []


def test_check_file_rejects_core_importing_adapters(tmp_path: Path) -> None:
    checker = _load_checker_module()
    source_root = tmp_path / "src" / "cast_studio"
    core_file = source_root / "core" / "graph.py"
    _write(core_file, "from cast_studio.adapters import sqlite_entity_store\n")
    violations = checker.check_file(core_file, source_root)
    assert len(violations) == 1
    assert "core must not import cast_studio.adapters" in violations[0]


def test_check_file_resolves_relative_imports(tmp_path: Path) -> None:
    checker = _load_checker_module()
    source_root = tmp_path / "src" / "cast_studio"
    domain_file = source_root / "domain" / "models.py"
    _write(domain_file, "from ..application.library import EntityLibrary\n")
    violations = checker.check_file(domain_file, source_root)
    assert violations == [f"{domain_file}: domain must not import cast_studio.application"]


def test_application_may_import_adapters_but_not_cli(tmp_path: Path) -> None:
    checker = _load_checker_module()
    source_root = tmp_path / "src" / "cast_studio"
    app_file = source_root / "application" / "workspace.py"
    _write(
        app_file,
        "import cast_studio.adapters.entity_store_factory\nfrom cast_studio import cli\n",
    )
    violations = checker.check_file(app_file, source_root)
    assert len(violations) == 1
    assert "application must not import cast_studio.cli" in violations[0]


def test_repository_sources_respect_layer_boundaries() -> None:
    checker = _load_checker_module()
    assert checker.check_import_boundaries() == []
