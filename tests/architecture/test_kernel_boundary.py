"""
Layer boundaries between the billing packages.

1. billing_kernel/** may NOT import billing_engines, billing_services or
   billing_config.  The kernel never depends upward.

2. billing_engines/** may NOT import billing_services or billing_config,
   and may use only the domain and utils parts of the kernel.  Engines
   stay pure: no store, no database, no clock.

3. billing_config/** may NOT import billing_services or billing_engines.

These tests read source code via AST -- they cannot break anything.
"""

import ast
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _python_files(package: str) -> list[Path]:
    """Return all .py files of a top-level package."""
    return sorted((ROOT / package).rglob("*.py"))


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


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found: list[str] = []
    for filepath in _python_files(package):
        for lineno, module in _extract_imports(filepath):
            for prefix in forbidden:
                if module == prefix or module.startswith(f"{prefix}."):
                    found.append(f"  {filepath.relative_to(ROOT)}:{lineno} imports '{module}'")
    return found


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestKernelNoUpwardDependencies:

    def test_packages_present(self):
        for package in ("billing_kernel", "billing_engines", "billing_services", "billing_config"):
            assert _python_files(package), f"{package} has no modules"

    def test_kernel_does_not_import_upper_layers(self):
        violations = _violations(
            "billing_kernel", ("billing_engines", "billing_services", "billing_config"),
        )
        assert not violations, (
            "Kernel boundary violation -- billing_kernel/** must not import "
            "engines, services or config:\n" + "\n".join(violations)
        )


class TestEnginesArePure:

    def test_engines_do_not_import_services_or_config(self):
        violations = _violations("billing_engines", ("billing_services", "billing_config"))
        assert not violations, "\n".join(violations)

    def test_engines_use_only_kernel_domain_and_utils(self):
        violations = _violations(
            "billing_engines",
            (
                "billing_kernel.db",
                "billing_kernel.models",
                "billing_kernel.store",
                "billing_kernel.selectors",
                "billing_kernel.domain.clock",
                "sqlalchemy",
            ),
        )
        assert not violations, "\n".join(violations)


class TestConfigBoundary:

    def test_config_does_not_import_services_or_engines(self):
        violations = _violations("billing_config", ("billing_services", "billing_engines"))
        assert not violations, "\n".join(violations)
