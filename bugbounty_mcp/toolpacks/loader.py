from __future__ import annotations

import copy
import json
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from jsonschema import validators
from jsonschema.exceptions import SchemaError
from packaging.version import InvalidVersion, Version


class ToolpackValidationError(Exception):
    """Raised when a Toolpack definition fails validation."""


_VALID_EXECUTION_KINDS = {"python"}

LOGGER = logging.getLogger(__name__)

# Dotted lowercase names such as ``recon.subfinder`` or ``js.extract_secrets``.
_TOOL_ID_PATTERN = re.compile(r"^[a-z0-9_]+(?:\.[a-z0-9_]+)+$")


@dataclass(frozen=True)
class Toolpack:
    """In-memory representation of a ``*.tool.yaml`` definition."""

    id: str
    version: str
    description: str
    timeout_ms: int | None
    input_schema: Mapping[str, Any]
    execution: Mapping[str, Any]
    source_path: Path

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        source_path: Path,
        *,
        schema_cache: dict[tuple[Path, str], Any],
    ) -> Toolpack:
        if not isinstance(data, Mapping):
            raise ToolpackValidationError(
                f"Expected mapping for toolpack {source_path}, got {type(data).__name__}"
            )

        required_fields = ["id", "version", "description", "inputSchema", "execution"]
        missing = [field for field in required_fields if field not in data]
        if missing:
            raise ToolpackValidationError(
                f"Toolpack {source_path} missing required field(s): {', '.join(missing)}"
            )

        tool_id = _require_str(data["id"], "id", source_path)
        _validate_tool_id(tool_id, source_path)

        version = _require_str(data["version"], "version", source_path)
        _validate_version(version, tool_id)

        description = data["description"]
        if not isinstance(description, str):
            raise ToolpackValidationError(f"Toolpack {tool_id} description must be a string")

        timeout_ms = data.get("timeoutMs")
        if timeout_ms is not None and (
            isinstance(timeout_ms, bool) or not isinstance(timeout_ms, int) or timeout_ms <= 0
        ):
            raise ToolpackValidationError(
                f"Toolpack {tool_id} timeoutMs must be a positive integer"
            )

        input_schema = _resolve_schema(
            data["inputSchema"],
            source_path.parent,
            tool_id,
            schema_cache,
        )

        execution = _validate_execution(tool_id, data["execution"])

        return cls(
            id=tool_id,
            version=version,
            description=description.strip(),
            timeout_ms=timeout_ms,
            input_schema=input_schema,
            execution=dict(execution),
            source_path=source_path,
        )


class ToolpackLoader:
    """Load and expose Toolpack configurations from one or more directories."""

    def __init__(self) -> None:
        self._toolpacks: dict[str, Toolpack] = {}

    def load_dir(self, directory: Path | str) -> None:
        """Load every ``*.tool.yaml`` below ``directory``; ids must stay unique across calls."""

        base_dir = Path(directory).expanduser().resolve()
        if not base_dir.exists():
            raise ToolpackValidationError(f"Toolpacks directory not found: {base_dir}")

        toolpacks: dict[str, Toolpack] = dict(self._toolpacks)
        schema_cache: dict[tuple[Path, str], Any] = {}
        for path in sorted(base_dir.rglob("*.tool.yaml")):
            with path.open("r", encoding="utf-8") as handle:
                try:
                    data = yaml.safe_load(handle)
                except yaml.YAMLError as exc:
                    raise ToolpackValidationError(
                        f"Failed to parse YAML for toolpack {path}: {exc}"
                    ) from exc

            toolpack = Toolpack.from_dict(
                data,
                path,
                schema_cache=schema_cache,
            )
            if toolpack.id in toolpacks:
                raise ToolpackValidationError(
                    f"Duplicate toolpack id '{toolpack.id}' found in {path}"
                )
            toolpacks[toolpack.id] = toolpack

        self._toolpacks = dict(sorted(toolpacks.items(), key=lambda item: item[0]))
        LOGGER.debug("Loaded %d toolpack(s) from %s", len(self._toolpacks), base_dir)

    def list(self) -> list[Toolpack]:
        return list(self._toolpacks.values())

    def get(self, tool_id: str) -> Toolpack:
        return self._toolpacks[tool_id]


def _require_str(value: Any, field: str, source: Path) -> str:
    if not isinstance(value, str) or not value:
        raise ToolpackValidationError(
            f"Field '{field}' in toolpack {source} must be a non-empty string"
        )
    return value


def _require_mapping(value: Any, field: str, tool_id: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ToolpackValidationError(
            f"Toolpack {tool_id} field '{field}' must be a mapping"
        )
    return value


def _resolve_schema(
    schema_spec: Any,
    base_dir: Path,
    tool_id: str,
    cache: dict[tuple[Path, str], Any],
) -> Mapping[str, Any]:
    if not isinstance(schema_spec, Mapping):
        raise ToolpackValidationError(
            f"Toolpack {tool_id} schema definition must be a mapping"
        )

    resolved = _resolve_refs(schema_spec, base_dir, cache, tool_id, current_document=schema_spec)
    _validate_json_schema(resolved, tool_id)
    return resolved


def _resolve_refs(
    node: Any,
    base_dir: Path,
    cache: dict[tuple[Path, str], Any],
    tool_id: str,
    *,
    current_document: Any | None = None,
) -> Any:
    if isinstance(node, Mapping):
        if set(node.keys()) == {"$ref"}:
            ref = node.get("$ref")
            if not isinstance(ref, str) or not ref:
                raise ToolpackValidationError(
                    f"Toolpack {tool_id} schema $ref must be a non-empty string"
                )
            path_part, fragment = _split_reference(ref)
            if not path_part:
                if current_document is None:
                    raise ToolpackValidationError(
                        f"Toolpack {tool_id} schema reference lacks base path: {ref}"
                    )
                fragment_data = _apply_json_pointer(current_document, fragment, tool_id)
                resolved = _resolve_refs(
                    fragment_data, base_dir, cache, tool_id, current_document=current_document
                )
                return copy.deepcopy(resolved)
            return _load_ref(path_part, fragment, base_dir, cache, tool_id)
        return {
            key: _resolve_refs(value, base_dir, cache, tool_id, current_document=current_document)
            for key, value in node.items()
        }
    if isinstance(node, list):
        return [
            _resolve_refs(item, base_dir, cache, tool_id, current_document=current_document)
            for item in node
        ]
    return node


def _load_ref(
    path_part: str,
    fragment: str | None,
    base_dir: Path,
    cache: dict[tuple[Path, str], Any],
    tool_id: str,
) -> Any:
    target_path = Path(path_part)
    if not target_path.is_absolute():
        target_path = (base_dir / target_path).resolve()

    cache_key = (target_path, fragment or "")
    if cache_key in cache:
        return copy.deepcopy(cache[cache_key])

    if not target_path.exists():
        raise ToolpackValidationError(
            f"Toolpack {tool_id} schema reference not found: {path_part}"
        )

    try:
        with target_path.open("r", encoding="utf-8") as handle:
            if target_path.suffix in {".yaml", ".yml"}:
                document = yaml.safe_load(handle) or {}
            else:
                document = json.load(handle)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ToolpackValidationError(
            f"Toolpack {tool_id} failed to parse schema {path_part}: {exc}"
        ) from exc
    except OSError as exc:
        raise ToolpackValidationError(
            f"Toolpack {tool_id} failed to open schema {path_part}: {exc}"
        ) from exc

    fragment_data = _apply_json_pointer(document, fragment, tool_id)
    resolved = _resolve_refs(
        fragment_data, target_path.parent, cache, tool_id, current_document=document
    )
    cache[cache_key] = copy.deepcopy(resolved)
    return copy.deepcopy(resolved)


def _split_reference(reference: str) -> tuple[str, str | None]:
    if "#" not in reference:
        return reference, None
    path_part, fragment = reference.split("#", 1)
    if not fragment:
        return path_part, None
    if not fragment.startswith("/"):
        fragment = "/" + fragment
    return path_part, fragment


def _apply_json_pointer(document: Any, pointer: str | None, tool_id: str) -> Any:
    if not pointer:
        return document

    parts = pointer.lstrip("/").split("/") if pointer != "/" else []
    current = document
    try:
        for raw_part in parts:
            part = raw_part.replace("~1", "/").replace("~0", "~")
            if isinstance(current, list):
                current = current[int(part)]
            elif isinstance(current, Mapping):
                current = current[part]
            else:
                raise KeyError(part)
    except (KeyError, IndexError, ValueError) as exc:
        raise ToolpackValidationError(
            f"Toolpack {tool_id} schema pointer '{pointer}' does not resolve"
        ) from exc
    return current


def _validate_json_schema(schema: Mapping[str, Any], tool_id: str) -> None:
    try:
        validator_cls = validators.validator_for(schema)
        validator_cls.check_schema(schema)
    except SchemaError as exc:
        raise ToolpackValidationError(
            f"Toolpack {tool_id} schema failed validation: {exc.message}"
        ) from exc


def _validate_tool_id(tool_id: str, source_path: Path) -> None:
    if not _TOOL_ID_PATTERN.fullmatch(tool_id):
        message = (
            f"Toolpack {source_path} id '{tool_id}' must use dotted lowercase segments "
            "(e.g. 'recon.subfinder')"
        )
        raise ToolpackValidationError(message)


def _validate_version(version: str, tool_id: str) -> None:
    try:
        parsed = Version(version)
    except InvalidVersion as exc:
        raise ToolpackValidationError(
            f"Toolpack {tool_id} version must follow semantic versioning: {exc}"
        ) from exc

    if len(parsed.release) != 3:
        raise ToolpackValidationError(
            f"Toolpack {tool_id} version '{version}' must include major.minor.patch"
        )


def _validate_execution(tool_id: str, execution_raw: Any) -> dict[str, Any]:
    execution = _require_mapping(execution_raw, "execution", tool_id)
    kind = execution.get("kind")
    if kind not in _VALID_EXECUTION_KINDS:
        raise ToolpackValidationError(
            f"Toolpack {tool_id} execution.kind must be one of {sorted(_VALID_EXECUTION_KINDS)}"
        )

    module = execution.get("module")
    if not isinstance(module, str) or not module:
        raise ToolpackValidationError(
            f"Toolpack {tool_id} execution.module must be a non-empty string"
        )
    if module.count(":") != 1 or module.startswith(":") or module.endswith(":"):
        raise ToolpackValidationError(
            f"Toolpack {tool_id} execution.module must use 'module:callable' format"
        )

    return dict(execution)
