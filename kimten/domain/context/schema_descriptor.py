from typing import Any, Dict, List, Mapping, Optional, Set, Tuple
from enum import Enum
import json
import structlog
from pydantic import TypeAdapter

logger = structlog.get_logger(__name__)

MAX_UNWRAP_HOPS = 20
MAX_RENDER_DEPTH = 64

# Tags from pydantic-core schemas and from JSON Schema, mapped onto one closed
# set of kinds. Anything not listed renders as "unknown".
_KIND_BY_TAG = {
    "str": "string",
    "string": "string",
    "int": "number",
    "float": "number",
    "decimal": "number",
    "integer": "number",
    "number": "number",
    "bool": "boolean",
    "boolean": "boolean",
    "none": "null",
    "null": "null",
    "any": "any",
    "literal": "literal",
    "enum": "enum",
    "list": "array",
    "set": "array",
    "frozenset": "array",
    "tuple-variable": "array",
    "array": "array",
    "tuple": "tuple",
    "tuple-positional": "tuple",
    "model-fields": "object",
    "typed-dict": "object",
    "dataclass-args": "object",
    "object": "object",
    "union": "union",
    "tagged-union": "tagged-union",
}

# Wrappers whose inner node lives under "schema"
_SCHEMA_WRAPPERS = {
    "default",
    "nullable",
    "function-after",
    "function-before",
    "function-wrap",
    "custom-error",
    "model",
    "dataclass",
    "model-field",
    "typed-dict-field",
    "dataclass-field",
}


def _is_null(node: Any) -> bool:
    return isinstance(node, Mapping) and node.get("type") in ("null", "none")


def _quote(value: Any) -> str:
    if isinstance(value, Enum):
        value = value.value
    return json.dumps(value, ensure_ascii=False, default=str)


def _kind(node: Any) -> str:
    """Classify a node by its declared tag, never by identity"""

    if not isinstance(node, Mapping):
        return "unknown"

    tag = node.get("type")
    if "$ref" in node:
        return "ref"
    if "const" in node:
        return "literal"
    if "enum" in node and tag != "enum":
        return "enum"
    if isinstance(tag, str):
        return _KIND_BY_TAG.get(tag, "unknown")
    if isinstance(tag, (list, tuple)):
        return "type-list"
    if "anyOf" in node or "oneOf" in node:
        return "union"
    if "properties" in node:
        return "object"
    if "items" in node or "prefixItems" in node:
        return "array"
    if not node:
        return "any"
    return "unknown"


class SchemaDescriptor:
    """Renders an output-shape descriptor as a one-line type signature.

    Accepts pydantic-core schemas (including older tuple layouts), JSON
    Schema documents (``definitions``/``$defs``, ``nullable``, type lists),
    and anything pydantic can build a core schema for. Wrapper nodes such as
    defaults, nullables, validators and pipelines are unwrapped before
    rendering. The output is advisory text only.
    """

    def __init__(self):
        self._definitions: Dict[str, Any] = {}
        self._root: Any = None
        self._active: Set[str] = set()

    def describe(self, schema: Any) -> str:
        """Describe a schema, falling back to "unknown" on anything odd"""

        self._definitions = {}
        self._active = set()
        try:
            node = self._coerce(schema)
            self._root = node
            return self._render(node, 0)
        except Exception as e:
            logger.debug("Schema could not be described", error=str(e))
            return "unknown"

    def supports(self, schema: Any) -> bool:
        """Whether the schema can be turned into a node at all"""
        return schema is not None and self._coerce(schema) is not None

    def _coerce(self, schema: Any) -> Any:
        if isinstance(schema, Mapping):
            return schema

        core = getattr(schema, "__pydantic_core_schema__", None)
        if core is None:
            # TypeAdapter instances
            core = getattr(schema, "core_schema", None)
        if core is None:
            try:
                core = TypeAdapter(schema).core_schema
            except Exception as e:
                logger.debug("Unsupported schema object", schema_type=type(schema).__name__, error=str(e))
                return None
        return core

    def _resolve_pointer(self, pointer: Any) -> Any:
        if not isinstance(pointer, str) or not pointer.startswith("#"):
            return None
        current = self._root
        for part in pointer.lstrip("#").strip("/").split("/"):
            if not part:
                continue
            part = part.replace("~1", "/").replace("~0", "~")
            if not isinstance(current, Mapping) or part not in current:
                return None
            current = current[part]
        return current

    def _register(self, node: Mapping):
        ref = node.get("ref")
        if isinstance(ref, str):
            self._definitions.setdefault(ref, node)
        if node.get("type") == "definitions":
            for definition in node.get("definitions") or []:
                if isinstance(definition, Mapping) and isinstance(definition.get("ref"), str):
                    self._definitions[definition["ref"]] = definition

    def _step_inward(self, node: Any) -> Tuple[Any, Optional[str]]:
        """Return (inner node, reference followed) for wrappers, (None, None) otherwise"""

        if not isinstance(node, Mapping):
            return None, None

        self._register(node)
        tag = node.get("type")

        if isinstance(tag, str) and tag in _SCHEMA_WRAPPERS:
            return node.get("schema"), None
        if tag == "lax-or-strict":
            return node.get("lax_schema") or node.get("strict_schema"), None
        if tag == "json-or-python":
            return node.get("json_schema") or node.get("python_schema"), None
        if tag == "chain":
            # Prefer the input side of a pipeline
            steps = node.get("steps") or []
            return (steps[0] if steps else None), None
        if tag == "definitions":
            return node.get("schema"), None
        if tag == "definition-ref":
            ref = node.get("schema_ref")
            return self._definitions.get(ref), ref

        if "$ref" in node:
            ref = node["$ref"]
            return self._resolve_pointer(ref), ref

        all_of = node.get("allOf")
        if isinstance(all_of, list) and len(all_of) == 1:
            return all_of[0], None

        for key in ("anyOf", "oneOf"):
            alternatives = node.get(key)
            if isinstance(alternatives, list) and len(alternatives) > 1:
                remaining = [alt for alt in alternatives if not _is_null(alt)]
                if len(remaining) == 1:
                    return remaining[0], None

        if isinstance(tag, (list, tuple)) and len(tag) > 1:
            remaining = [t for t in tag if t != "null"]
            if len(remaining) == 1:
                return {**node, "type": remaining[0]}, None

        return None, None

    def _unwrap(self, node: Any) -> Tuple[Any, Set[str]]:
        current = node
        refs: Set[str] = set()
        for _ in range(MAX_UNWRAP_HOPS):
            if isinstance(current, Mapping) and isinstance(current.get("ref"), str):
                refs.add(current["ref"])
            inner, ref = self._step_inward(current)
            if inner is None:
                break
            if ref is not None:
                refs.add(ref)
            current = inner
        if isinstance(current, Mapping) and isinstance(current.get("ref"), str):
            refs.add(current["ref"])
        return current, refs

    def _render(self, node: Any, depth: int) -> str:
        if depth > MAX_RENDER_DEPTH:
            return "unknown"

        node, refs = self._unwrap(node)
        if refs & self._active:
            # Self-referencing definition
            return "unknown"

        self._active |= refs
        try:
            return self._render_kind(node, depth)
        finally:
            self._active -= refs

    def _render_kind(self, node: Any, depth: int) -> str:
        kind = _kind(node)

        if kind in ("string", "number", "boolean", "null", "any"):
            return kind

        if kind == "literal":
            if "const" in node:
                return _quote(node["const"])
            expected = node.get("expected")
            if isinstance(expected, (list, tuple)) and expected:
                return " | ".join(_quote(value) for value in expected)
            return _quote(node.get("value"))

        if kind == "enum":
            values = node.get("enum") if "enum" in node and node.get("type") != "enum" else node.get("members")
            if values is None:
                values = node.get("values")
            if isinstance(values, (list, tuple)):
                return " | ".join(_quote(value) for value in values)
            return "enum"

        if kind == "array":
            items = node.get("items_schema", node.get("items"))
            if items is None and "prefixItems" in node:
                items = node.get("prefixItems")
            if isinstance(items, (list, tuple)):
                return self._render_item_list(items, depth)
            if items is None:
                return "any[]"
            return f"{self._render(items, depth + 1)}[]"

        if kind == "tuple":
            items = node.get("items_schema") or []
            variadic = node.get("variadic_item_index")
            if node.get("extras_schema") is not None:
                items = list(items) + [node["extras_schema"]]
            if isinstance(variadic, int) and 0 <= variadic < len(items):
                return f"{self._render(items[variadic], depth + 1)}[]"
            return self._render_item_list(items, depth)

        if kind == "object":
            return self._render_object(node, depth)

        if kind == "union":
            choices = node.get("choices")
            if choices is None:
                choices = node.get("anyOf", node.get("oneOf"))
            if not isinstance(choices, (list, tuple)):
                return "unknown"
            # pydantic-core allows (schema, label) pairs
            choices = [
                (choice[0] if choice else None) if isinstance(choice, tuple) else choice
                for choice in choices
            ]
            return " | ".join(self._render(choice, depth + 1) for choice in choices)

        if kind == "tagged-union":
            choices = node.get("choices")
            if not isinstance(choices, Mapping):
                return "unknown"
            return " | ".join(self._render(choice, depth + 1) for choice in choices.values())

        if kind == "type-list":
            return " | ".join(
                self._render({**node, "type": tag}, depth + 1) for tag in node["type"]
            )

        return "unknown"

    def _render_item_list(self, items: List[Any], depth: int) -> str:
        signatures: List[str] = []
        for item in items:
            signature = self._render(item, depth + 1)
            if signature not in signatures:
                signatures.append(signature)
        if not signatures:
            return "any[]"
        return f"{' | '.join(signatures)}[]"

    def _render_object(self, node: Mapping, depth: int) -> str:
        fields = node.get("fields", node.get("properties"))
        if callable(fields):
            try:
                fields = fields()
            except Exception as e:
                logger.debug("Lazy field provider failed", error=str(e))
                return "unknown"
        if isinstance(fields, (list, tuple)):
            # dataclass-args keep fields as a list of named entries
            fields = {
                field.get("name"): field
                for field in fields
                if isinstance(field, Mapping) and isinstance(field.get("name"), str)
            }
        if not isinstance(fields, Mapping):
            fields = {}

        entries = [
            f"{json.dumps(str(key), ensure_ascii=False)}: {self._render(fields[key], depth + 1)}"
            for key in sorted(fields, key=str)
        ]
        if not entries:
            return "{}"
        return "{ " + ", ".join(entries) + " }"


def describe_schema(schema: Any) -> str:
    """Shorthand for a one-off SchemaDescriptor().describe(schema)"""
    return SchemaDescriptor().describe(schema)
