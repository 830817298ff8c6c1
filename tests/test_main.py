"""
Tests for the CLI entry point.
"""

import json
import logging
import os
from unittest.mock import patch

import pytest

from storefront.main import main, parse_args
from storefront.models.product import Product
from storefront.pricing.fx_provider import RATE_KEY
from storefront.storage.catalog_store import PRODUCTS_KEY
from storefront.storage.kv_store import JsonFileKVStore
from storefront.utils.config_loader import CONFIG_PATH_ENV


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    monkeypatch.setenv("ADMIN_PASSWORD", "cli-pass")
    path = tmp_path / "config.yaml"
    path.write_text(f"paths:\n  data_dir: {tmp_path / 'data'}\n", encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestCLI:
    """Tests for CLI subcommands."""

    def test_parse_rate_set(self) -> None:
        args = parse_args(["rate", "set", "156.5"])
        assert (args.command, args.rate_command, args.value) == ("rate", "set", "156.5")

    def test_subcommand_required(self) -> None:
        with pytest.raises(SystemExit):
            parse_args([])

    def test_rate_show(self, config_file, capsys) -> None:
        assert main(["--config", str(config_file), "rate", "show"]) == 0
        assert "154.00" in capsys.readouterr().out

    def test_rate_set_with_password(self, config_file, tmp_path, capsys) -> None:
        with patch("storefront.main.getpass.getpass", return_value="cli-pass"):
            assert main(["--config", str(config_file), "rate", "set", "158"]) == 0
        kv = JsonFileKVStore(str(tmp_path / "data" / "storage.json"))
        assert kv.get_json(RATE_KEY) == 158.0

    def test_rate_set_wrong_password(self, config_file, tmp_path, capsys) -> None:
        with patch("storefront.main.getpass.getpass", return_value="nope"):
            assert main(["--config", str(config_file), "rate", "set", "158"]) == 1
        assert "Incorrect password" in capsys.readouterr().out

    def test_rate_set_invalid(self, config_file, capsys) -> None:
        with patch("storefront.main.getpass.getpass", return_value="cli-pass"):
            assert main(["--config", str(config_file), "rate", "set", "0"]) == 1
        assert "Please enter a valid rate." in capsys.readouterr().out

    def test_products_list_empty(self, config_file, capsys) -> None:
        assert main(["--config", str(config_file), "products", "list", "--search", "dress"]) == 0
        assert "No products found." in capsys.readouterr().out

    def test_stats(self, config_file, capsys) -> None:
        assert main(["--config", str(config_file), "stats"]) == 0
        assert "Total products:   0" in capsys.readouterr().out

    def test_serve_passes_config_path_to_app(self, config_file, monkeypatch) -> None:
        monkeypatch.setenv(CONFIG_PATH_ENV, "elsewhere.yaml")
        with patch("uvicorn.run") as run:
            assert main(["--config", str(config_file), "serve", "--port", "8123"]) == 0
        assert os.environ[CONFIG_PATH_ENV] == str(config_file.resolve())
        assert run.call_args.kwargs["port"] == 8123

    def test_products_export(self, config_file, tmp_path, capsys) -> None:
        output = tmp_path / "backup.json"
        with patch("storefront.main.getpass.getpass", return_value="cli-pass"):
            assert main(["--config", str(config_file), "products", "export", "-o", str(output)]) == 0
        assert json.loads(output.read_text(encoding="utf-8")) == []
        assert "Exported 0 products" in capsys.readouterr().out

    def test_products_clear(self, config_file, tmp_path, capsys) -> None:
        kv = JsonFileKVStore(str(tmp_path / "data" / "storage.json"))
        kv.set_json(PRODUCTS_KEY, [Product(id="abc123", name="Dress").to_dict()])
        with patch("storefront.main.getpass.getpass", return_value="cli-pass"):
            assert main(["--config", str(config_file), "products", "clear", "--yes"]) == 0
        assert "Deleted 1 products" in capsys.readouterr().out
        reloaded = JsonFileKVStore(str(tmp_path / "data" / "storage.json"))
        assert reloaded.get_json(PRODUCTS_KEY) == []

    def test_products_clear_cancelled(self, config_file, capsys) -> None:
        with patch("storefront.main.getpass.getpass", return_value="cli-pass"), \
                patch("builtins.input", return_value="n"):
            assert main(["--config", str(config_file), "products", "clear"]) == 1
        assert "Cancelled." in capsys.readouterr().out

    def test_products_show(self, config_file, tmp_path, capsys) -> None:
        kv = JsonFileKVStore(str(tmp_path / "data" / "storage.json"))
        product = Product(id="abc123", name="Dress", source_cost_usd=15.5, agent_fee_local=500, margin_local=300)
        kv.set_json(PRODUCTS_KEY, [product.to_dict()])
        assert main(["--config", str(config_file), "products", "show", "abc"]) == 0
        out = capsys.readouterr().out
        assert "ETB 2,387 (cost)" in out
        assert "ETB 800" in out

    def test_products_show_missing(self, config_file, capsys) -> None:
        assert main(["--config", str(config_file), "products", "show", "nope"]) == 1
