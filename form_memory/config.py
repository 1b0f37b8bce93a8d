"""Run settings.

The minimum candidate-string length is the only tunable. It comes from the
command line when given, else from ``FORM_MEMORY_MIN_LENGTH`` (a ``.env``
file in the working directory is honoured), else the default.
"""
from __future__ import annotations

import os
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from .string_extractor import DEFAULT_MIN_LENGTH

MIN_LENGTH_ENV = "FORM_MEMORY_MIN_LENGTH"


def resolve_min_length(cli_value: Optional[int] = None, env_file: Optional[str] = None) -> int:
    """Pick the minimum string length; raises ValueError on a bad value."""
    if cli_value is not None:
        value = cli_value
    else:
        load_dotenv(env_file or find_dotenv(usecwd=True))
        raw = os.environ.get(MIN_LENGTH_ENV, "").strip()
        if not raw:
            return DEFAULT_MIN_LENGTH
        try:
            value = int(raw)
        except ValueError:
            raise ValueError(f"{MIN_LENGTH_ENV} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ValueError(f"minimum string length must be positive, got {value}")
    return value
