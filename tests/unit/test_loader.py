"""Unit tests for component module loaders."""

from __future__ import annotations

import pytest

from tandem.loader import DirectoryLoader, StaticLoader, load_modules

INVENTORY = '''
component = {
    "name": "Inventory",
    "methods": {"GetItems": lambda caller: ["apple"]},
    "signals": ["ItemAdded"],
}
'''

SHOP = '''
component = {"name": "Shop", "events": ["Opened"]}
'''


class TestDirectoryLoader:
    """Test recursive module discovery."""

    def test_loads_nested_modules(self, tmp_path):
        (tmp_path / "inventory.py").write_text(INVENTORY)
        (tmp_path / "town").mkdir()
        (tmp_path / "town" / "shop.py").write_text(SHOP)

        modules = DirectoryLoader().load(tmp_path)

        assert sorted(m.name for m in modules) == ["Inventory", "Shop"]
        inventory = next(m for m in modules if m.name == "Inventory")
        assert inventory.origin.endswith("inventory.py")
        assert inventory.declaration["signals"] == ["ItemAdded"]

    def test_ignores_non_modules(self, tmp_path):
        (tmp_path / "inventory.py").write_text(INVENTORY)
        (tmp_path / "README.md").write_text("# notes")
        (tmp_path / "assets").mkdir()
        (tmp_path / "assets" / "icon.txt").write_text("x")
        (tmp_path / "_private.py").write_text(SHOP)
        (tmp_path / "helpers.py").write_text("VALUE = 1\n")

        modules = DirectoryLoader().load(tmp_path)

        assert [m.name for m in modules] == ["Inventory"]

    def test_skips_non_mapping_attribute(self, tmp_path):
        (tmp_path / "odd.py").write_text("component = ['Inventory']\n")

        assert DirectoryLoader().load(tmp_path) == []

    def test_custom_attribute(self, tmp_path):
        (tmp_path / "svc.py").write_text('service = {"name": "Svc"}\n')

        modules = DirectoryLoader(attribute="service").load(tmp_path)

        assert [m.name for m in modules] == ["Svc"]

    def test_import_error_propagates(self, tmp_path):
        (tmp_path / "broken.py").write_text("raise RuntimeError('boom')\n")

        with pytest.raises(RuntimeError, match="boom"):
            DirectoryLoader().load(tmp_path)

    def test_missing_directory(self, tmp_path):
        with pytest.raises(NotADirectoryError):
            DirectoryLoader().load(tmp_path / "nope")


class TestLoadModules:
    """Test loader selection."""

    def test_none(self):
        assert load_modules(None) == []

    def test_mapping_list(self):
        modules = load_modules([{"name": "A"}, {"name": "B"}])

        assert [m.name for m in modules] == ["A", "B"]

    def test_directory_path(self, tmp_path):
        (tmp_path / "shop.py").write_text(SHOP)

        assert [m.name for m in load_modules(str(tmp_path))] == ["Shop"]

    def test_explicit_loader(self):
        modules = load_modules({"name": "Solo"}, loader=StaticLoader())

        assert [m.name for m in modules] == ["Solo"]

    def test_unsupported_root(self):
        with pytest.raises(TypeError):
            load_modules(42)
