"""Tool schema loader - converts tools.yaml to MCP Tool objects."""

from functools import lru_cache
from pathlib import Path

import yaml
from mcp.types import Tool

TOOLS_YAML = Path(__file__).parent / "tools.yaml"


@lru_cache
def load_tools_yaml() -> tuple[dict, ...]:
    """Load tool definitions from tools.yaml."""
    with open(TOOLS_YAML, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return tuple(data.get("tools", []))


def _build_property(param: dict) -> dict:
    prop: dict = {"type": param.get("type", "string")}
    for key in ("description", "enum", "default"):
        if key in param:
            prop[key] = param[key]
    return prop


def build_input_schema(params: list[dict]) -> dict:
    """Convert a params list to JSON Schema format."""
    return {
        "type": "object",
        "properties": {p["name"]: _build_property(p) for p in params},
        "required": [p["name"] for p in params if p.get("required")],
    }


def yaml_to_tools() -> list[Tool]:
    """Convert tools.yaml definitions to MCP Tool objects."""
    return [
        Tool(
            name=tool_def["name"],
            description=tool_def["description"].strip(),
            inputSchema=build_input_schema(tool_def.get("params", [])),
        )
        for tool_def in load_tools_yaml()
    ]


def get_tool_metadata() -> dict[str, dict]:
    """Get parameter names and required parameters per tool."""
    return {
        tool["name"]: {
            "params": [p["name"] for p in tool.get("params", [])],
            "required": [p["name"] for p in tool.get("params", []) if p.get("required")],
        }
        for tool in load_tools_yaml()
    }


def missing_required(name: str, arguments: dict) -> list[str]:
    """Required parameters of tool ``name`` absent from ``arguments``."""
    meta = get_tool_metadata().get(name)
    if meta is None:
        return []
    return [p for p in meta["required"] if arguments.get(p) in (None, "")]
