import argparse
import json
import logging

import pytest

import cli
from cli import JsonFormatter, build_parser, parse_selection
from schemas.bundle_schemas import BundleSelection
from services.errors import ErrorCode, create_error


class TestCli:
    def test_parse_gid_selection(self):
        selection = parse_selection("gid://shopify/Product/3:gid://shopify/ProductVariant/32:2")
        assert selection == BundleSelection("gid://shopify/Product/3", "gid://shopify/ProductVariant/32", 2)

    def test_parse_plain_selection(self):
        assert parse_selection("p1:v1:3") == BundleSelection("p1", "v1", 3)

    @pytest.mark.parametrize("raw", ["p1", "p1:v1:x", ":v1:1"])
    def test_parse_invalid_selection(self, raw):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_selection(raw)

    def test_parser(self):
        args = build_parser().parse_args(["price", "starter-kit", "--select", "p1:v1:2", "--skip-cache"])
        assert args.command == "price"
        assert args.selections == [BundleSelection("p1", "v1", 2)]
        assert args.skip_cache is True

    def test_json_formatter(self):
        record = logging.LogRecord("services.pricing", logging.INFO, __file__, 1, "priced %s", ("B",), None)
        payload = json.loads(JsonFormatter().format(record))
        assert payload["severity"] == "INFO"
        assert payload["logger"] == "services.pricing"
        assert payload["message"] == "priced B"

    def test_main_prints_error_payload(self, monkeypatch, capsys):
        async def failing_run(args):
            raise create_error(ErrorCode.BUNDLE_NOT_FOUND)

        monkeypatch.setattr(cli, "run", failing_run)
        monkeypatch.setattr(cli, "configure_logging", lambda level: None)

        assert cli.main(["resolve", "missing-kit"]) == 1
        output = json.loads(capsys.readouterr().out)
        assert output == {"error": "Bundle not found.", "code": "BUNDLE_NOT_FOUND"}

    def test_main_prints_result(self, monkeypatch, capsys):
        async def fake_run(args):
            return {"id": args.bundle_id}

        monkeypatch.setattr(cli, "run", fake_run)
        monkeypatch.setattr(cli, "configure_logging", lambda level: None)

        assert cli.main(["resolve", "starter-kit"]) == 0
        assert json.loads(capsys.readouterr().out) == {"id": "starter-kit"}
