"""
Layer boundary tests.

1. autoexport_kernel/** may NOT import autoexport_engines,
   autoexport_services or autoexport_config.
2. autoexport_engines/** may NOT import autoexport_services,
   autoexport_config or SQLAlchemy.
3. autoexport_config/** may NOT import autoexport_services.
4. Engines never read the wall clock.

These tests read source code via AST.
"""

import ast
import glob
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]


def _python_files(package: str) -> list[Path]:
    return sorted(Path(p) for p in glob.glob(str(ROOT / package / "**" / "*.py"), recursive=True))


def _extract_imports(filepath: Path) -> list[tuple[int, str]]:
    tree = ast.parse(filepath.read_text(), filename=str(filepath))
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom) and node.module:
            results.append((node.lineno, node.module))
    return results


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found: list[str] = []
    for filepath in _python_files(package):
        for lineno, module in _extract_imports(filepath):
            for prefix in forbidden:
                if module == prefix or module.startswith(f"{prefix}."):
                    found.append(f"  {filepath.relative_to(ROOT)}:{lineno} imports '{module}'")
    return found


class TestLayerBoundaries:
    def test_packages_present(self):
        for package in ("autoexport_kernel", "autoexport_engines", "autoexport_config", "autoexport_services"):
            assert _python_files(package), f"{package} has no modules"

    def test_kernel_has_no_upward_imports(self):
        violations = _violations(
            "autoexport_kernel",
            ("autoexport_engines", "autoexport_services", "autoexport_config"),
        )
        assert not violations, "Kernel boundary violation:\n" + "\n".join(violations)

    def test_engines_are_pure(self):
        violations = _violations(
            "autoexport_engines",
            ("autoexport_services", "autoexport_config", "sqlalchemy"),
        )
        assert not violations, "Engine boundary violation:\n" + "\n".join(violations)

    def test_config_does_not_import_services(self):
        violations = _violations("autoexport_config", ("autoexport_services",))
        assert not violations, "Config boundary violation:\n" + "\n".join(violations)


class TestEnginesNeverReadTheClock:
    FORBIDDEN_CALLS = ("datetime.now", "date.today", "datetime.utcnow")

    def test_no_wall_clock_calls(self):
        violations: list[str] = []
        for filepath in _python_files("autoexport_engines"):
            source = filepath.read_text()
            for call in self.FORBIDDEN_CALLS:
                if f"{call}(" in source:
                    violations.append(f"  {filepath.relative_to(ROOT)} calls {call}()")
        assert not violations, "Engines must receive time as input:\n" + "\n".join(violations)
