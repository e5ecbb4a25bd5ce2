"""
Settings base class shared by the scheduling services.

A small, mockable stand-in for pydantic_settings: fields are declared as
annotated class attributes and resolved from keyword arguments, environment
variables (with aliases), an optional .env file and finally defaults.
"""

from __future__ import annotations

import json
import os
from abc import ABC
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, Union, get_type_hints


class AliasChoices:
    """Helper class to provide multiple environment variable aliases."""

    def __init__(self, *choices: str) -> None:
        self.choices = list(choices)


class FieldInfo:
    """Information about a field in a settings class."""

    def __init__(
        self,
        default: Any = None,
        description: str = "",
        validation_alias: Optional[Union[str, list, AliasChoices]] = None,
        required: bool = False,
    ) -> None:
        self.default = default
        self.description = description
        self.validation_alias = validation_alias
        self.required = required

    def env_names(self, field_name: str, case_sensitive: bool) -> List[str]:
        """Environment variable names to try for this field, in priority order."""
        names: List[str] = []
        if isinstance(self.validation_alias, AliasChoices):
            names.extend(self.validation_alias.choices)
        elif isinstance(self.validation_alias, list):
            names.extend(self.validation_alias)
        elif self.validation_alias:
            names.append(self.validation_alias)
        names.append(field_name.upper())
        if not case_sensitive:
            names.extend(name.lower() for name in list(names))
        return names


def Field(
    default: Any = None,
    *,
    description: str = "",
    validation_alias: Optional[Union[str, list, AliasChoices]] = None,
    **kwargs: Any,
) -> Any:
    """Create a field descriptor for settings. ``default=...`` marks it required."""
    required = default is ...
    return FieldInfo(
        default=None if required else default,
        description=description,
        validation_alias=validation_alias,
        required=required,
    )


class SettingsConfigDict:
    """Configuration for settings loading."""

    def __init__(
        self,
        env_file: Optional[str] = None,
        env_file_encoding: str = "utf-8",
        case_sensitive: bool = True,
        extra: str = "forbid",
    ) -> None:
        self.env_file = env_file
        self.env_file_encoding = env_file_encoding
        self.case_sensitive = case_sensitive
        self.extra = extra


class BaseSettings(ABC):
    """Base class for settings that loads from environment variables."""

    model_config: SettingsConfigDict = SettingsConfigDict()

    def __init__(self, **kwargs: Any) -> None:
        env_file_vars: Dict[str, str] = {}
        if self.model_config.env_file:
            env_file_vars = self._load_env_file(self.model_config.env_file)

        for field_name, field_type in get_type_hints(self.__class__).items():
            if field_name.startswith("_") or field_name == "model_config":
                continue

            declared = getattr(self.__class__, field_name, None)
            info = (
                declared
                if isinstance(declared, FieldInfo)
                else FieldInfo(default=declared)
            )

            if field_name in kwargs:
                value = kwargs[field_name]
            else:
                value = self._lookup(
                    info.env_names(field_name, self.model_config.case_sensitive),
                    env_file_vars,
                )
                if value is None:
                    if info.required:
                        raise ValueError(
                            f"Required field '{field_name}' not found in environment"
                        )
                    value = info.default

            setattr(self, field_name, self._convert_value(value, field_type))

    @staticmethod
    def _lookup(names: List[str], env_file_vars: Dict[str, str]) -> Optional[str]:
        # Process environment wins over the .env file
        for name in names:
            if name in os.environ:
                return os.environ[name]
        for name in names:
            if name in env_file_vars:
                return env_file_vars[name]
        return None

    def _load_env_file(self, env_file_path: str) -> Dict[str, str]:
        """Load environment variables from a .env file."""
        env_vars: Dict[str, str] = {}
        env_path = Path(env_file_path)
        if not env_path.exists():
            return env_vars

        with open(env_path, "r", encoding=self.model_config.env_file_encoding) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, value = line.split("=", 1)
                    env_vars[key.strip()] = value.strip().strip("\"'")
        return env_vars

    def _convert_value(self, value: Any, target_type: Type) -> Any:
        """Convert a string value to the target type."""
        if not isinstance(value, str):
            return value

        if target_type is bool:
            return value.lower() in ("true", "1", "yes", "on")
        if target_type is int:
            return int(value)
        if target_type is float:
            return float(value)

        origin = getattr(target_type, "__origin__", None)
        if origin is list:
            if value.startswith("[") and value.endswith("]"):
                return json.loads(value)
            return [item.strip() for item in value.split(",") if item.strip()]
        if origin is Union:
            non_none = [arg for arg in target_type.__args__ if arg is not type(None)]
            if non_none:
                return self._convert_value(value, non_none[0])

        return value

    def model_dump(self) -> Dict[str, Any]:
        """Return the resolved settings as a plain dictionary."""
        return {
            name: getattr(self, name)
            for name in get_type_hints(self.__class__)
            if not name.startswith("_") and name != "model_config"
        }
