from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
import yaml

from bugbounty_mcp.toolpacks.loader import (
    ToolpackLoader,
    ToolpackValidationError,
    _apply_json_pointer,
)


def _write_json(path: Path, payload: dict[str, object]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def _write_toolpack(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")


def _toolpack(**overrides: Any) -> dict[str, Any]:
    base: dict[str, Any] = {
        "id": "recon.subfinder",
        "version": "1.2.0",
        "description": "  Enumerate subdomains passively.  ",
        "timeoutMs": 60000,
        "inputSchema": {
            "type": "object",
            "properties": {"domain": {"type": "string"}},
            "required": ["domain"],
        },
        "execution": {"kind": "python", "module": "tests.helpers.toolpack_samples:echo"},
    }
    base.update(overrides)
    return base


def test_loads_toolpack_with_inline_schema(tmp_path: Path) -> None:
    _write_toolpack(tmp_path / "recon" / "subfinder.tool.yaml", _toolpack())
    loader = ToolpackLoader()
    loader.load_dir(tmp_path)

    toolpack = loader.get("recon.subfinder")
    assert toolpack.description == "Enumerate subdomains passively."
    assert toolpack.timeout_ms == 60000
    assert toolpack.input_schema["required"] == ["domain"]
    assert toolpack.execution["module"] == "tests.helpers.toolpack_samples:echo"
    assert toolpack.source_path.name == "subfinder.tool.yaml"


def test_resolves_relative_refs_with_fragments(tmp_path: Path) -> None:
    _write_json(
        tmp_path / "schemas" / "recon.json",
        {
            "definitions": {
                "domain": {"type": "string", "minLength": 1},
                "input": {
                    "type": "object",
                    "properties": {"domain": {"$ref": "#/definitions/domain"}},
                },
            }
        },
    )
    _write_toolpack(
        tmp_path / "subfinder.tool.yaml",
        _toolpack(inputSchema={"$ref": "./schemas/recon.json#/definitions/input"}),
    )
    loader = ToolpackLoader()
    loader.load_dir(tmp_path)

    schema = loader.get("recon.subfinder").input_schema
    assert schema == {
        "type": "object",
        "properties": {"domain": {"type": "string", "minLength": 1}},
    }


def test_toolpacks_are_listed_by_id_across_directories(tmp_path: Path) -> None:
    _write_toolpack(tmp_path / "a" / "z.tool.yaml", _toolpack(id="zeta.tool"))
    _write_toolpack(tmp_path / "b" / "a.tool.yaml", _toolpack(id="alpha.tool"))
    loader = ToolpackLoader()
    loader.load_dir(tmp_path / "a")
    loader.load_dir(tmp_path / "b")
    assert [toolpack.id for toolpack in loader.list()] == ["alpha.tool", "zeta.tool"]


def test_duplicate_ids_are_rejected(tmp_path: Path) -> None:
    _write_toolpack(tmp_path / "one.tool.yaml", _toolpack())
    _write_toolpack(tmp_path / "two.tool.yaml", _toolpack())
    with pytest.raises(ToolpackValidationError, match="Duplicate toolpack id"):
        ToolpackLoader().load_dir(tmp_path)


def test_snake_case_keys_are_not_recognised(tmp_path: Path) -> None:
    payload = _toolpack()
    payload["input_schema"] = payload.pop("inputSchema")
    _write_toolpack(tmp_path / "snake.tool.yaml", payload)
    with pytest.raises(ToolpackValidationError, match="missing required field\\(s\\): inputSchema"):
        ToolpackLoader().load_dir(tmp_path)


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"id": "Recon.Subfinder"}, "dotted lowercase"),
        ({"id": "subfinder"}, "dotted lowercase"),
        ({"version": "1.2"}, "major.minor.patch"),
        ({"version": "latest"}, "semantic versioning"),
        ({"timeoutMs": 0}, "timeoutMs"),
        ({"timeoutMs": True}, "timeoutMs"),
        ({"execution": {"kind": "shell", "module": "x:y"}}, "execution.kind"),
        ({"execution": {"kind": "python", "module": "pkg.mod.func"}}, "module:callable"),
        ({"inputSchema": {"type": "not-a-type"}}, "schema failed validation"),
        ({"inputSchema": {"$ref": "./missing.json"}}, "schema reference not found"),
    ],
)
def test_invalid_definitions(
    tmp_path: Path, overrides: dict[str, Any], message: str
) -> None:
    _write_toolpack(tmp_path / "bad.tool.yaml", _toolpack(**overrides))
    with pytest.raises(ToolpackValidationError, match=message):
        ToolpackLoader().load_dir(tmp_path)


def test_missing_fields_are_listed(tmp_path: Path) -> None:
    payload = _toolpack()
    del payload["description"]
    del payload["execution"]
    _write_toolpack(tmp_path / "bad.tool.yaml", payload)
    with pytest.raises(ToolpackValidationError, match="description, execution"):
        ToolpackLoader().load_dir(tmp_path)


def test_invalid_yaml_is_reported(tmp_path: Path) -> None:
    (tmp_path / "broken.tool.yaml").write_text("id: [unterminated\n", encoding="utf-8")
    with pytest.raises(ToolpackValidationError, match="Failed to parse YAML"):
        ToolpackLoader().load_dir(tmp_path)


def test_missing_directory_is_reported(tmp_path: Path) -> None:
    with pytest.raises(ToolpackValidationError, match="not found"):
        ToolpackLoader().load_dir(tmp_path / "nope")


def test_json_pointer_unescapes_and_reports_failures() -> None:
    document = {"a/b": {"c~d": [10, 20]}}
    assert _apply_json_pointer(document, "/a~1b/c~0d/1", "t.x") == 20
    with pytest.raises(ToolpackValidationError, match="does not resolve"):
        _apply_json_pointer(document, "/a~1b/missing", "t.x")
