"""
Tool catalog loading.

Tool definitions come from the first readable catalog file among the search
locations, falling back to the catalog embedded in the package.
"""

from __future__ import annotations

import json
import logging
import os
from importlib import resources
from pathlib import Path
from typing import Any

import yaml

from .tools import ToolDefinition, ToolRegistry

logger = logging.getLogger(__name__)


# Catalog file locations (in priority order)
CATALOG_LOCATIONS = [
    "tools.yaml",
    os.path.join("config", "tools.yaml"),
    os.path.expanduser("~/.config/cli-manager/tools.yaml"),
]

EMBEDDED_CATALOG = "tools.yaml"


class CatalogError(Exception):
    """Raised when a catalog document cannot be parsed or validated."""
    pass


def parse_catalog(data: Any, source: str = "<memory>") -> ToolRegistry:
    """
    Build a registry from a parsed catalog document.

    Args:
        data: Parsed document; must be a mapping with a ``tools`` list
        source: Where the document came from (for error messages)

    Returns:
        ToolRegistry in document order

    Raises:
        CatalogError: If the document or any entry is invalid
    """
    if not isinstance(data, dict):
        raise CatalogError(f"{source}: catalog must be a mapping with a 'tools' list")

    entries = data.get("tools")
    if not isinstance(entries, list):
        raise CatalogError(f"{source}: 'tools' must be a list")

    tools: list[ToolDefinition] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise CatalogError(f"{source}: tools[{index}] must be a mapping")
        label = entry.get("key") or f"tools[{index}]"
        try:
            tools.append(ToolDefinition.from_dict(entry))
        except (ValueError, TypeError) as e:
            raise CatalogError(f"{source}: invalid tool '{label}': {e}") from e

    try:
        registry = ToolRegistry(tools)
    except ValueError as e:
        raise CatalogError(f"{source}: {e}") from e

    logger.debug(f"Loaded {len(registry)} tool definitions from {source}")
    return registry


def _parse_text(text: str, source: str) -> Any:
    try:
        if source.endswith(".json"):
            return json.loads(text)
        return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise CatalogError(f"{source}: could not parse catalog: {e}") from e


def load_catalog_file(file_path: str | Path) -> ToolRegistry:
    """
    Load tool definitions from a single YAML or JSON file.

    Args:
        file_path: Path to the catalog file

    Returns:
        ToolRegistry

    Raises:
        CatalogError: If the file cannot be read or is invalid
    """
    path = Path(file_path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise CatalogError(f"Could not read catalog {path}: {e}") from e
    return parse_catalog(_parse_text(text, str(path)), source=str(path))


def load_embedded_catalog() -> ToolRegistry:
    """Load the catalog shipped inside the package."""
    text = resources.files("cli_manager").joinpath("data", EMBEDDED_CATALOG).read_text(encoding="utf-8")
    return parse_catalog(_parse_text(text, EMBEDDED_CATALOG), source=f"embedded:{EMBEDDED_CATALOG}")


def load_tool_registry(custom_path: str | Path | None = None) -> ToolRegistry:
    """
    Load tool definitions from the first available source.

    Precedence (highest to lowest):
    1. Custom path (if provided; must load)
    2. ./tools.yaml
    3. ./config/tools.yaml
    4. ~/.config/cli-manager/tools.yaml
    5. Embedded defaults

    Args:
        custom_path: Optional explicit catalog file

    Returns:
        ToolRegistry

    Raises:
        CatalogError: If the custom path or a found catalog file is invalid
    """
    if custom_path:
        logger.debug(f"Using custom catalog: {custom_path}")
        return load_catalog_file(custom_path)

    for location in CATALOG_LOCATIONS:
        if os.path.isfile(location):
            logger.debug(f"Found catalog at: {location}")
            return load_catalog_file(location)

    logger.debug("No catalog file found, using embedded defaults")
    return load_embedded_catalog()
