"""Typed access to the environment settings of the schema bridge."""

import logging
import os
from pathlib import Path

_TRUTHY = ("true", "1", "yes", "on")


class HelperConfig:
    """Reads schema bridge settings from environment variables.

    Keys are looked up upper-cased. An empty or whitespace-only variable counts
    as unset, so the caller's default applies.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def _raw(self, key: str) -> str | None:
        return (os.getenv(key.upper()) or "").strip() or None

    def _missing(self, key: str) -> ValueError:
        return ValueError(f"Setting '{key.upper()}' is required but not set in the environment.")

    def get_string_val(self, key: str, default: str | None = None) -> str:
        """
        Args:
            key (str): Setting name, e.g. "STORE_FIRESTORE_PROJECT_ID".
            default (str | None): Used when the variable is unset. None makes the setting mandatory.

        Returns:
            str: The stripped value or the default.

        Raises:
            ValueError: If the setting is mandatory and unset.
        """
        raw = self._raw(key)
        if raw is not None:
            return raw
        if default is None:
            raise self._missing(key)
        return default

    def get_number_val(self, key: str, default: float | int | None = None) -> float | int:
        """Read an int, or a float when the value contains a decimal point.

        Raises:
            ValueError: If the setting is mandatory and unset, or not numeric.
        """
        raw = self._raw(key)
        if raw is None:
            if default is None:
                raise self._missing(key)
            return default
        try:
            return float(raw) if "." in raw else int(raw)
        except ValueError:
            raise ValueError(f"Setting '{key.upper()}' must be numeric, got '{raw}'.")

    def get_int_val(self, key: str, default: int | None = None) -> int:
        """Read a whole number, such as a count or a cap.

        Raises:
            ValueError: If the setting is mandatory and unset, or not a whole number.
        """
        val = self.get_number_val(key, default=default)
        if isinstance(val, float):
            raise ValueError(f"Setting '{key.upper()}' must be a whole number, got {val}.")
        return val

    def get_bool_val(self, key: str, default: bool | None = None) -> bool:
        raw = self._raw(key)
        if raw is None:
            if default is None:
                raise self._missing(key)
            return default
        return raw.lower() in _TRUTHY

    def get_list_val(self, key: str, default: list | None = None, separator: str = ",", element_type: type = str) -> list:
        """Read a bracketed list such as ``[users,posts]``.

        Args:
            key (str): Setting name.
            default (list | None): Used when the variable is unset.
            separator (str): Element delimiter inside the brackets.
            element_type (type): Callable applied to every element.

        Returns:
            list: The parsed elements; blank elements are dropped.

        Raises:
            ValueError: If the setting is mandatory and unset, lacks the brackets,
                or an element cannot be converted.
        """
        raw = self._raw(key)
        if raw is None:
            if default is None:
                raise self._missing(key)
            return default
        if not (raw.startswith("[") and raw.endswith("]")):
            raise ValueError(f"Setting '{key.upper()}' must look like '[a{separator}b]', got '{raw}'.")

        items = [item.strip() for item in raw[1:-1].split(separator)]
        try:
            return [element_type(item) for item in items if item]
        except ValueError as e:
            raise ValueError(f"Setting '{key.upper()}' has an element that is not a {element_type.__name__}: {e}")

    def get_ratio_val(self, key: str, default: float) -> float:
        """Read a ratio in (0, 1], e.g. a frequency threshold.

        Raises:
            ValueError: If the value is not a number or lies outside (0, 1].
        """
        val = float(self.get_number_val(key, default=default))
        if not 0.0 < val <= 1.0:
            raise ValueError(f"Setting '{key.upper()}' must be in (0, 1], got {val}.")
        return val

    def get_path_val(self, key: str, default: str | None = None) -> Path | None:
        """Read a filesystem path. Returns None if unset and no default is given."""
        raw = self._raw(key) or default
        if raw is None:
            return None
        return Path(raw).expanduser()

    def get_logger(self) -> logging.Logger:
        return self._logger
