"""
Relay signer configuration.

Protocol constants (retry counts, delays, deadlines) live here rather
than in the relay client so tests and deployments can tighten them
without patching module globals. All durations are seconds.

``RelayConfig.from_dict()`` validates against ``CONFIG_SCHEMA`` with
jsonschema; ``RelayConfig.from_env()`` layers environment overrides on
top of the defaults.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, replace
from typing import Any, Mapping

import jsonschema  # type: ignore[import-untyped]

DEFAULT_RELAY_URL = "https://tos.vecha.in/"

ENV_RELAY_URL = "RELAY_SIGNER_URL"
ENV_REQUEST_TIMEOUT = "RELAY_SIGNER_REQUEST_TIMEOUT"

_POSITIVE = {"type": "number", "exclusiveMinimum": 0}

CONFIG_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "relay_url": {"type": "string", "pattern": "^https?://"},
        "submit_attempts": {"type": "integer", "minimum": 1},
        "submit_retry_delay": {"type": "number", "minimum": 0},
        "poll_error_limit": {"type": "integer", "minimum": 0},
        "poll_retry_delay": {"type": "number", "minimum": 0},
        "accepted_timeout": _POSITIVE,
        "response_timeout": _POSITIVE,
        "reveal_delay": {"type": "number", "minimum": 0},
        "request_timeout": _POSITIVE,
    },
}


@dataclass(frozen=True)
class RelayConfig:
    """Relay endpoint and protocol timing.

    Attributes:
        relay_url: Base URL of the relay. Request ids are appended to it.
        submit_attempts: Total POST attempts before SubmitFailed.
        submit_retry_delay: Wait between failed POST attempts.
        poll_error_limit: Consecutive poll errors tolerated; one more
            raises PollFailed.
        poll_retry_delay: Backoff after each poll error.
        accepted_timeout: Deadline for the ".accepted" poll.
        response_timeout: Deadline for the ".resp" poll.
        reveal_delay: Grace period before the presentation surface is
            shown if the wallet has not accepted yet.
        request_timeout: Per-request HTTP timeout. Must exceed the
            relay's server-side long-poll hold.
    """

    relay_url: str = DEFAULT_RELAY_URL
    submit_attempts: int = 3
    submit_retry_delay: float = 2.0
    poll_error_limit: int = 2
    poll_retry_delay: float = 3.0
    accepted_timeout: float = 60.0
    response_timeout: float = 600.0
    reveal_delay: float = 1.5
    request_timeout: float = 120.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def with_relay_url(self, relay_url: str | None) -> RelayConfig:
        """Copy with a different relay URL; None keeps the current one."""
        if relay_url is None:
            return self
        return replace(self, relay_url=relay_url)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RelayConfig:
        """Build a config from a plain mapping, filling in defaults.

        Raises:
            jsonschema.ValidationError: On unknown keys or bad values.
        """
        jsonschema.validate(instance=dict(data), schema=CONFIG_SCHEMA)
        return cls(**data)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides: Any,
    ) -> RelayConfig:
        """Defaults, then environment, then explicit keyword overrides."""
        env = os.environ if environ is None else environ
        data: dict[str, Any] = {}
        if env.get(ENV_RELAY_URL):
            data["relay_url"] = env[ENV_RELAY_URL]
        if env.get(ENV_REQUEST_TIMEOUT):
            try:
                data["request_timeout"] = float(env[ENV_REQUEST_TIMEOUT])
            except ValueError as exc:
                raise ValueError(
                    f"{ENV_REQUEST_TIMEOUT} must be a number, "
                    f"got: {env[ENV_REQUEST_TIMEOUT]!r}"
                ) from exc
        data.update(overrides)
        return cls.from_dict(data)
