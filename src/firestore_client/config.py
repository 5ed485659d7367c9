"""
Client configuration.
"""

from __future__ import annotations
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .recovery.backoff import (
    DEFAULT_BACKOFF_FACTOR,
    DEFAULT_BACKOFF_INITIAL_DELAY,
    DEFAULT_BACKOFF_MAX_DELAY,
    DEFAULT_JITTER_FACTOR,
    ExponentialBackoff,
    validate_backoff_settings,
)
from .runtime.errors import InvalidArgumentError

DEFAULT_ENDPOINT = "https://firestore.googleapis.com"
DEFAULT_DATABASE_ID = "(default)"
DEFAULT_MAX_TRANSACTION_ATTEMPTS = 5


@dataclass
class ClientConfig:
    """Configuration for the Firestore client."""

    project_id: str
    database_id: str = DEFAULT_DATABASE_ID
    endpoint: str = DEFAULT_ENDPOINT
    emulator_host: Optional[str] = None
    access_token: Optional[str] = None
    timeout: float = 60.0
    max_attempts: int = DEFAULT_MAX_TRANSACTION_ATTEMPTS
    backoff_initial_delay: float = DEFAULT_BACKOFF_INITIAL_DELAY
    backoff_max_delay: float = DEFAULT_BACKOFF_MAX_DELAY
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR
    backoff_jitter_factor: float = DEFAULT_JITTER_FACTOR

    def __post_init__(self) -> None:
        if not self.project_id:
            raise InvalidArgumentError("A project ID is required.")
        if not self.database_id:
            raise InvalidArgumentError("A database ID is required.")
        validate_max_attempts(self.max_attempts)
        if isinstance(self.timeout, bool) or not isinstance(self.timeout, (int, float)) or self.timeout <= 0:
            raise InvalidArgumentError(f"Timeout must be a positive number of seconds, got {self.timeout!r}.")
        validate_backoff_settings(
            self.backoff_initial_delay,
            self.backoff_max_delay,
            self.backoff_factor,
            self.backoff_jitter_factor,
        )

    @property
    def formatted_name(self) -> str:
        """Resource name of the database."""
        return f"projects/{self.project_id}/databases/{self.database_id}"

    def base_url(self) -> str:
        """Endpoint URL, pointing at the emulator when one is configured."""
        if self.emulator_host:
            return f"http://{self.emulator_host}"
        return self.endpoint

    def create_backoff(self) -> ExponentialBackoff:
        """Build the backoff policy applied between transaction attempts."""
        return ExponentialBackoff(
            initial_delay=self.backoff_initial_delay,
            max_delay=self.backoff_max_delay,
            factor=self.backoff_factor,
            jitter_factor=self.backoff_jitter_factor,
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> ClientConfig:
        """
        Build a configuration from environment variables.

        Reads FIRESTORE_PROJECT_ID (or GOOGLE_CLOUD_PROJECT), FIRESTORE_DATABASE_ID,
        FIRESTORE_EMULATOR_HOST and FIRESTORE_ACCESS_TOKEN. Keyword arguments win
        over the environment.
        """
        env = os.environ if environ is None else environ
        values = {
            "project_id": env.get("FIRESTORE_PROJECT_ID") or env.get("GOOGLE_CLOUD_PROJECT") or "",
            "database_id": env.get("FIRESTORE_DATABASE_ID") or DEFAULT_DATABASE_ID,
            "emulator_host": env.get("FIRESTORE_EMULATOR_HOST") or None,
            "access_token": env.get("FIRESTORE_ACCESS_TOKEN") or None,
        }
        values.update(overrides)
        return cls(**values)


def validate_max_attempts(max_attempts: object) -> int:
    """
    Check that a maximum attempt count is a positive integer.

    Raises:
        InvalidArgumentError: If it is not
    """
    if not isinstance(max_attempts, int) or isinstance(max_attempts, bool) or max_attempts < 1:
        raise InvalidArgumentError(
            f"Value for argument \"maxAttempts\" must be an integer of at least 1, got {max_attempts!r}."
        )
    return max_attempts
