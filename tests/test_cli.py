import json
from pathlib import Path

import yaml
from click.testing import CliRunner

from openapi_synth.cli import main

FIXTURES = Path(__file__).parent / "fixtures"
SDK = FIXTURES / "sdk"


def _write_json(path: Path, doc: dict) -> Path:
    path.write_text(json.dumps(doc), encoding="utf-8")
    return path


MALFORMED = {
    "openapi": "3.0.3",
    "info": {"title": "T", "version": "1"},
    "paths": {
        "/things/{id}": {
            "get": {
                "requestBody": {"content": {}},
                "responses": {
                    "200": {
                        "description": "ok",
                        "content": {"application/json": {"schema": {"$ref": "#/components/schemas/object"}}},
                    }
                },
            }
        }
    },
    "components": {"schemas": {}},
}


class TestCliGenerate:
    def test_generate_json(self, tmp_path):
        output = tmp_path / "out" / "openapi.json"
        runner = CliRunner()
        result = runner.invoke(main, ["generate", str(SDK), "-o", str(output)])

        assert result.exit_code == 0, result.output
        assert "Found 7 schemas." in result.output
        assert "Found 6 operations on 6 paths." in result.output
        assert "get-with-body: GET /product/202309/drafts" in result.output
        doc = json.loads(output.read_text(encoding="utf-8"))
        assert doc["info"]["title"] == "TikTok Shop API"
        assert "post" in doc["paths"]["/product/202309/drafts"]

    def test_generate_yaml_by_suffix(self, tmp_path):
        output = tmp_path / "openapi.yaml"
        result = CliRunner().invoke(main, ["generate", str(SDK), "-o", str(output)])
        assert result.exit_code == 0, result.output
        doc = yaml.safe_load(output.read_text(encoding="utf-8"))
        assert doc["openapi"] == "3.0.3"

    def test_generate_reports_remaining_issues(self, tmp_path):
        output = tmp_path / "openapi.json"
        report = tmp_path / "report.json"
        result = CliRunner().invoke(main, ["generate", str(SDK), "-o", str(output), "--report", str(report)])
        assert result.exit_code == 0, result.output
        assert "1 validation issues:" in result.output
        payload = json.loads(report.read_text(encoding="utf-8"))
        assert [i["kind"] for i in payload["issues"]] == ["dangling-ref"]
        assert [a["kind"] for a in payload["audit"]] == ["get-with-body"]

    def test_generate_stub_missing(self, tmp_path):
        output = tmp_path / "openapi.json"
        result = CliRunner().invoke(main, ["generate", str(SDK), "-o", str(output), "--stub-missing"])
        assert result.exit_code == 0, result.output
        assert "No validation issues found." in result.output
        doc = json.loads(output.read_text(encoding="utf-8"))
        assert "Order202309Order" in doc["components"]["schemas"]

    def test_generate_with_config(self, tmp_path):
        config = tmp_path / "synth.yaml"
        config.write_text("info:\n  title: Sandbox\nconventions: []\n", encoding="utf-8")
        output = tmp_path / "openapi.json"
        result = CliRunner().invoke(main, ["generate", str(SDK), "-o", str(output), "--config", str(config)])
        assert result.exit_code == 0, result.output
        doc = json.loads(output.read_text(encoding="utf-8"))
        assert doc["info"]["title"] == "Sandbox"
        names = [p["name"] for p in doc["paths"]["/product/202309/products/{product_id}"]["get"]["parameters"]]
        assert "app_key" not in names

    def test_generate_missing_directory(self, tmp_path):
        result = CliRunner().invoke(main, ["generate", str(tmp_path / "nope"), "-o", str(tmp_path / "o.json")])
        assert result.exit_code != 0
        assert "Source directory not found" in result.output
        assert not (tmp_path / "o.json").exists()

    def test_generate_separate_directories(self, tmp_path):
        output = tmp_path / "openapi.json"
        result = CliRunner().invoke(
            main,
            [
                "generate", str(tmp_path),
                "--api-dir", str(FIXTURES / "items" / "api"),
                "--model-dir", str(FIXTURES / "items" / "model"),
                "-o", str(output),
            ],
        )
        assert result.exit_code == 0, result.output
        doc = json.loads(output.read_text(encoding="utf-8"))
        assert list(doc["paths"]) == ["/items/{id}"]


class TestCliValidate:
    def test_validate_clean(self, tmp_path):
        path = _write_json(
            tmp_path / "ok.json",
            {"openapi": "3.0.3", "info": {"title": "T", "version": "1"}, "paths": {}, "components": {"schemas": {}}},
        )
        result = CliRunner().invoke(main, ["validate", str(path), "--strict"])
        assert result.exit_code == 0
        assert "No validation issues found." in result.output

    def test_validate_lists_issues(self, tmp_path):
        path = _write_json(tmp_path / "bad.json", MALFORMED)
        result = CliRunner().invoke(main, ["validate", str(path)])
        assert result.exit_code == 0
        assert "malformed-ref: 1" in result.output
        assert "get-with-body: 1" in result.output
        assert "path-parameter: 1" in result.output

    def test_validate_strict_fails(self, tmp_path):
        path = _write_json(tmp_path / "bad.json", MALFORMED)
        result = CliRunner().invoke(main, ["validate", str(path), "--strict"])
        assert result.exit_code == 1

    def test_validate_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n", encoding="utf-8")
        result = CliRunner().invoke(main, ["validate", str(path)])
        assert result.exit_code != 0
        assert "not a mapping" in result.output


class TestCliRepair:
    def test_repair_writes_clean_document(self, tmp_path):
        source = _write_json(tmp_path / "bad.json", MALFORMED)
        output = tmp_path / "fixed.json"
        result = CliRunner().invoke(main, ["repair", str(source), "-o", str(output)])

        assert result.exit_code == 0, result.output
        assert "Fixed 3 of 3 issues." in result.output
        fixed = json.loads(output.read_text(encoding="utf-8"))
        operation = fixed["paths"]["/things/{id}"]["post"]
        schema = operation["responses"]["200"]["content"]["application/json"]["schema"]
        assert schema == {"type": "object", "additionalProperties": True}
        assert operation["parameters"] == [{"name": "id", "in": "path", "required": True, "schema": {"type": "string"}}]

        again = CliRunner().invoke(main, ["validate", str(output), "--strict"])
        assert again.exit_code == 0

    def test_validate_reports_schema_conformance(self, tmp_path):
        doc = dict(MALFORMED)
        del doc["info"]
        path = _write_json(tmp_path / "noinfo.json", doc)
        result = CliRunner().invoke(main, ["validate", str(path)])
        assert result.exit_code == 0
        assert "schema: 1" in result.output
