"""Environment-backed settings access for the PDF ingestion worker."""

import logging
import os

TRUTHY_VALUES = ("true", "1", "yes", "on")


class HelperConfig:
    """Typed access to environment variables, plus the process logger.

    Keys are upper-cased before lookup. A variable set to an empty string
    counts as unset. Passing default=None makes a key required.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def _read(self, key: str, default: object) -> tuple[str, str | None]:
        key = key.upper()
        raw = os.getenv(key, "").strip()
        if not raw:
            if default is None:
                raise ValueError(f"Environment variable '{key}' is not set.")
            return key, None
        return key, raw

    def get_string_val(self, key: str, default: str | None = None) -> str:
        """Read a string variable, stripped of surrounding whitespace.

        Raises:
            ValueError: If the variable is unset and no default is given.
        """
        _, raw = self._read(key, default)
        return default if raw is None else raw

    def get_number_val(self, key: str, default: float | int | None = None) -> float | int:
        """Read a numeric variable. Values containing a dot become floats, all others ints.

        Raises:
            ValueError: If the variable is unset and no default is given, or is not a number.
        """
        key, raw = self._read(key, default)
        if raw is None:
            return default
        try:
            return float(raw) if "." in raw else int(raw)
        except ValueError:
            raise ValueError(f"Environment variable '{key}' is not a valid number: '{raw}'.")

    def get_bool_val(self, key: str, default: bool | None = None) -> bool:
        """Read a flag. "true", "1", "yes" and "on" (any case) are True, everything else False.

        Raises:
            ValueError: If the variable is unset and no default is given.
        """
        _, raw = self._read(key, default)
        if raw is None:
            return default
        return raw.lower() in TRUTHY_VALUES

    def get_logger(self) -> logging.Logger:
        return self._logger
