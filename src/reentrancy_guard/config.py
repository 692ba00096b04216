"""
Runtime Configuration Store.

Settings are read from the `[tool.reentrancy_guard]` table of the nearest
`pyproject.toml` and may be overridden by CLI arguments.
"""

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from reentrancy_guard.enums import Severity

if sys.version_info >= (3, 11):
  import tomllib
else:
  import tomli as tomllib

TOOL_SECTION = "reentrancy_guard"


class RuntimeConfig(BaseModel):
  """
  Configuration container for the reentrancy checker.
  """

  check_reentrant: bool = Field(True, description="Enables the reachability check. If False, nothing is scanned.")
  trace: bool = Field(False, description="Emit one trace line per visited symbol (operator debugging).")
  sharable_annotation: str = Field("sharable", description="Marker name for entities safe to share across threads.")
  unshared_annotation: str = Field("unshared", description="Marker name for entities never accessed concurrently.")
  singleton_decorators: List[str] = Field(
    default_factory=lambda: ["singleton"],
    description="Class decorators that declare a process-wide singleton.",
  )
  severity: Severity = Field(Severity.ERROR, description="Severity assigned to findings. Hosts may downgrade it.")
  exclude: List[str] = Field(default_factory=list, description="Glob patterns of source files to skip.")

  @field_validator("sharable_annotation", "unshared_annotation")
  @classmethod
  def validate_marker(cls, v: str) -> str:
    """
    Normalizes a marker name, dropping a leading '@'.

    Args:
        v (str): Raw marker name.

    Returns:
        str: The bare marker name.

    Raises:
        ValueError: If the name is empty.
    """
    v_clean = v.strip().lstrip("@")
    if not v_clean:
      raise ValueError("Annotation names must not be empty")
    return v_clean

  @model_validator(mode="after")
  def validate_distinct_markers(self) -> "RuntimeConfig":
    if self.sharable_annotation == self.unshared_annotation:
      raise ValueError(f"sharable and unshared annotations must differ (both '{self.sharable_annotation}')")
    return self

  @classmethod
  def load(
    cls,
    check_reentrant: Optional[bool] = None,
    trace: Optional[bool] = None,
    severity: Optional[str] = None,
    search_path: Optional[Path] = None,
  ) -> "RuntimeConfig":
    """
    Loads configuration from pyproject.toml and overrides with CLI arguments.

    Args:
        check_reentrant (Optional[bool]): Override for the activation flag.
        trace (Optional[bool]): Override for trace output.
        severity (Optional[str]): Override for the finding severity.
        search_path (Optional[Path]): Directory to start searching for TOML config.

    Returns:
        RuntimeConfig: The fully resolved configuration object.

    Raises:
        ValueError: If the merged settings fail validation.
    """
    start_dir = search_path or Path.cwd()
    toml_config, _ = _load_toml_settings(start_dir)

    merged: Dict[str, Any] = dict(toml_config)
    if check_reentrant is not None:
      merged["check_reentrant"] = check_reentrant
    if trace is not None:
      merged["trace"] = trace
    if severity is not None:
      merged["severity"] = severity

    try:
      return cls.model_validate(merged)
    except ValidationError as e:
      raise ValueError(f"Invalid reentrancy_guard configuration: {e}")


def _load_toml_settings(start_path: Path) -> Tuple[Dict[str, Any], Optional[Path]]:
  """
  Recursively searches parents for 'pyproject.toml' and extracts config.

  Args:
      start_path (Path): Directory to start search from.

  Returns:
      Tuple[Dict, Optional[Path]]: The config dict and the directory definition was found in.
  """
  current = start_path.resolve()

  for parent in [current, *current.parents]:
    toml_path = parent / "pyproject.toml"
    if toml_path.exists() and toml_path.is_file():
      try:
        with open(toml_path, "rb") as f:
          data = tomllib.load(f)
      except (OSError, tomllib.TOMLDecodeError):
        return {}, None

      tool_section = data.get("tool", {})
      return tool_section.get(TOOL_SECTION, {}), parent

  return {}, None
