"""Central configuration helper for the knowledge base engine."""

import logging
import os
from typing import Any, Callable, Mapping

TRUE_VALUES = ("true", "1", "yes", "on")


class HelperConfig:
    """Reads every setting of the engine from environment variables.

    Keys are case-insensitive and empty values count as unset. An optional
    overrides mapping takes precedence over the process environment; the CLI
    runner and the tests use it to inject settings without touching os.environ.
    """

    def __init__(self, logger: logging.Logger, overrides: Mapping[str, object] | None = None) -> None:
        self._logger = logger
        self._overrides = {key.upper(): value for key, value in (overrides or {}).items()}

    def _read_raw(self, key: str) -> str | None:
        if key in self._overrides:
            value = self._overrides[key]
            return None if value is None or value == "" else str(value).strip()
        value = os.getenv(key)
        return value.strip() if value and value.strip() else None

    def _resolve(self, key: str, default: Any, parse: Callable[[str, str], Any]) -> Any:
        """Return the parsed setting, or default when it is unset.

        Raises:
            ValueError: If the setting is unset and default is None, or unparsable.
        """
        key = key.upper()
        raw = self._read_raw(key)
        if raw is None:
            if default is None:
                raise ValueError(f"Environment variable '{key}' is not set.")
            return default
        return parse(key, raw)

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_string_val(self, key: str, default: str | None = None) -> str:
        return self._resolve(key, default, lambda _key, raw: raw)

    def get_optional_string_val(self, key: str) -> str | None:
        """Read a setting that may legitimately be absent; None when unset."""
        return self._read_raw(key.upper())

    def get_number_val(self, key: str, default: float | int | None = None) -> float | int:
        """Read an int ("3") or float ("0.25") setting.

        Raises:
            ValueError: If the setting is required and unset, or not a number.
        """

        def parse(key: str, raw: str) -> float | int:
            try:
                return float(raw) if any(c in raw for c in ".eE") else int(raw)
            except ValueError:
                raise ValueError(f"Environment variable '{key}' is not a valid number: '{raw}'.")

        return self._resolve(key, default, parse)

    def get_bool_val(self, key: str, default: bool | None = None) -> bool:
        return self._resolve(key, default, lambda _key, raw: raw.lower() in TRUE_VALUES)

    def get_list_val(self, key: str, default: list[str] | None = None, separator: str = ",", element_type: type = str) -> list:
        """Read a list setting written as "[elem1,elem2,...]".

        Raises:
            ValueError: If the setting is required and unset, lacks the brackets,
                or an element cannot be cast to element_type.
        """

        def parse(key: str, raw: str) -> list:
            if not (raw.startswith("[") and raw.endswith("]")):
                raise ValueError(f"Environment variable '{key}' must look like '[a{separator}b]', got '{raw}'.")
            elements = [part.strip() for part in raw[1:-1].split(separator) if part.strip()]
            try:
                return [element_type(element) for element in elements]
            except ValueError as e:
                raise ValueError(f"Environment variable '{key}' has an element that is not {element_type.__name__}: {e}")

        return self._resolve(key, default, parse)

    def get_logger(self) -> logging.Logger:
        return self._logger
