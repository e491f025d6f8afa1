"""Tests for package exports and public API.

Verifies that every ``__init__.py`` defines ``__all__``, that each listed
name is importable, and that the subpackages import without cycles.
"""

import importlib

import pytest

PACKAGES = [
    "pg_snapdump",
    "pg_snapdump.adapters",
    "pg_snapdump.config",
    "pg_snapdump.dump",
    "pg_snapdump.schema",
]


class TestExports:
    """__all__ accuracy per package."""

    @pytest.mark.parametrize("package", PACKAGES)
    def test_all_names_are_importable(self, package: str) -> None:
        module = importlib.import_module(package)

        assert isinstance(module.__all__, list)
        for name in module.__all__:
            assert hasattr(module, name), f"'{name}' is in __all__ but not on {package}"

    def test_version(self) -> None:
        import pg_snapdump

        assert pg_snapdump.__version__ == "0.1.0"

    def test_top_level_entry_points(self) -> None:
        from pg_snapdump import (
            DumpSettings,
            SnapshotCoordinator,
            StreamSink,
            create_coordinator,
            dump_database,
            dump_to_csv,
        )

        assert callable(dump_database)
        assert callable(dump_to_csv)
        assert callable(create_coordinator)
        assert isinstance(SnapshotCoordinator, type)
        assert isinstance(StreamSink, type)
        assert DumpSettings().parallelism == 50

    def test_cli_entry_point(self) -> None:
        from pg_snapdump.cli import main

        assert callable(main)

    def test_config_models_reexport_settings(self) -> None:
        from pg_snapdump.config.models import DumpSettings as ConfigSettings
        from pg_snapdump.dump.models import DumpSettings

        assert ConfigSettings is DumpSettings
