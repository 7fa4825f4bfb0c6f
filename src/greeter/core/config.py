"""
Greeting Program Configuration

Settings for the client tools and the local runtime, read from environment
variables. The program itself takes no configuration: everything it needs
arrives with each invocation.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from greeter.core.accounts import parse_identity
from greeter.core.constants import (
    DEFAULT_EXEMPTION_THRESHOLD_YEARS,
    DEFAULT_LAMPORTS_PER_BYTE_YEAR,
    DEFAULT_PROGRAM_ID_HEX,
)
from greeter.core.program_exceptions import ConfigurationError

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _get_int(env: Mapping[str, str], name: str, default: int, minimum: int = 0) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(
            f"{name} must be an integer, got {raw!r}", details={"env_var": name}
        )
    if value < minimum:
        raise ConfigurationError(
            f"{name} must be >= {minimum}, got {value}", details={"env_var": name}
        )
    return value


@dataclass(frozen=True)
class ProgramConfig:
    program_id: bytes
    log_level: str = "INFO"
    log_file: Optional[str] = None
    environment: str = "development"
    lamports_per_byte_year: int = DEFAULT_LAMPORTS_PER_BYTE_YEAR
    exemption_threshold_years: int = DEFAULT_EXEMPTION_THRESHOLD_YEARS

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ProgramConfig":
        """
        Build configuration from environment variables.

        Args:
            env: Mapping to read instead of ``os.environ``

        Raises:
            ConfigurationError: If a variable is set to an invalid value
        """
        env = os.environ if env is None else env

        program_hex = env.get("GREETER_PROGRAM_ID", "").strip()
        if program_hex:
            try:
                program_id = parse_identity(program_hex)
            except ValueError as exc:
                raise ConfigurationError(
                    f"GREETER_PROGRAM_ID is invalid: {exc}",
                    details={"env_var": "GREETER_PROGRAM_ID"},
                ) from exc
        else:
            program_id = bytes.fromhex(DEFAULT_PROGRAM_ID_HEX)
            logger.debug(
                "GREETER_PROGRAM_ID not set, using development program id",
                extra={"event": "config.default_program_id"},
            )

        log_level = env.get("GREETER_LOG_LEVEL", "INFO").strip().upper() or "INFO"
        if log_level not in VALID_LOG_LEVELS:
            raise ConfigurationError(
                f"GREETER_LOG_LEVEL must be one of {', '.join(VALID_LOG_LEVELS)}",
                details={"env_var": "GREETER_LOG_LEVEL", "value": log_level},
            )

        return cls(
            program_id=program_id,
            log_level=log_level,
            log_file=env.get("GREETER_LOG_FILE", "").strip() or None,
            environment=env.get("GREETER_ENVIRONMENT", "development").strip() or "development",
            lamports_per_byte_year=_get_int(
                env, "GREETER_LAMPORTS_PER_BYTE_YEAR", DEFAULT_LAMPORTS_PER_BYTE_YEAR
            ),
            exemption_threshold_years=_get_int(
                env, "GREETER_EXEMPTION_THRESHOLD_YEARS", DEFAULT_EXEMPTION_THRESHOLD_YEARS
            ),
        )
