"""
Every kernel service states its contract on the class.
"""

import ast
from pathlib import Path

import pytest

SERVICES_ROOT = Path(__file__).resolve().parents[2] / "escrow_kernel" / "services"


def _service_classes():
    for path in sorted(SERVICES_ROOT.glob("*.py")):
        tree = ast.parse(path.read_text())
        for node in tree.body:
            if isinstance(node, ast.ClassDef) and any(
                isinstance(base, ast.Name) and base.id == "BaseService" for base in node.bases
            ):
                yield pytest.param(node, id=node.name)


def test_services_are_discovered():
    names = {p.id for p in _service_classes()}
    assert {"AwardEngine", "EscrowService", "BidRegistry", "DisputeGate", "SettingsService"} <= names


@pytest.mark.parametrize("node", list(_service_classes()))
def test_service_docstring_has_contract_and_guarantees(node):
    doc = ast.get_docstring(node) or ""
    assert "Contract:" in doc
    assert "Guarantees:" in doc
