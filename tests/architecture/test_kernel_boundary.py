"""
Kernel boundary tests.

Tests that enforce the kernel's architectural boundaries:

1. quote_kernel/domain/** performs no I/O: no SQLAlchemy, no database
   drivers, no config loading.

2. quote_kernel/** never imports quote_config.  Configuration values are
   passed in by the caller.

3. Folio numbers come from a locked counter row, never from MAX()+1.

These tests read source code via AST -- they cannot break anything.
"""

import ast
import inspect
import re
from pathlib import Path

from quote_kernel.services.folio_counter_service import FolioCounterService

ROOT = Path(__file__).resolve().parents[2]
KERNEL = ROOT / "quote_kernel"


def _extract_imports(filepath: Path) -> list[tuple[int, str]]:
    """Extract (line_number, module_string) for all imports in a file."""
    tree = ast.parse(filepath.read_text(), filename=str(filepath))
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                results.append((node.lineno, node.module))
    return results


def _violations(root: Path, forbidden: tuple[str, ...]) -> list[str]:
    found = []
    for path in sorted(root.rglob("*.py")):
        for lineno, module in _extract_imports(path):
            for name in forbidden:
                if module == name or module.startswith(f"{name}."):
                    found.append(f"{path.relative_to(ROOT)}:{lineno} imports {module}")
    return found


class TestDomainPurity:

    FORBIDDEN_MODULES = ("sqlalchemy", "psycopg2", "sqlite3", "yaml", "quote_kernel.db",
                         "quote_kernel.models", "quote_kernel.services",
                         "quote_kernel.selectors")

    def test_domain_no_orm_or_io_imports(self):
        violations = _violations(KERNEL / "domain", self.FORBIDDEN_MODULES)
        assert violations == [], "\n".join(violations)


class TestKernelNoUpwardDependencies:

    def test_kernel_does_not_import_config(self):
        violations = _violations(KERNEL, ("quote_config",))
        assert violations == [], "\n".join(violations)


class TestFolioCounterSafety:

    def test_next_value_uses_locked_row(self):
        source = Path(inspect.getfile(FolioCounterService)).read_text()
        match = re.search(
            r"def _locked_counter\s*\(.*?(?=\n    def \w|\nclass \w|\Z)",
            source,
            re.DOTALL,
        )
        assert match, "FolioCounterService._locked_counter not found"
        assert "with_for_update()" in match.group(0)

    def test_no_max_pattern_in_counter_service(self):
        source = inspect.getsource(FolioCounterService)
        for pattern in (r"MAX\s*\(", r"func\.max"):
            assert not re.findall(pattern, source, re.IGNORECASE), pattern
