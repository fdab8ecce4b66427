"""Pydantic Settings for the allocator client.

All environment variables use the AGONES_ prefix. The certificate, host and
namespace variables keep the names the tool has always used:
AGONES_CLIENT_CERT, AGONES_CLIENT_KEY, AGONES_CA_CERT, AGONES_HOSTS,
AGONES_PING_SERVERS, AGONES_GS_NAMESPACE.

List values accept comma-separated strings (``AGONES_HOSTS=a:443,b:443``) and
label maps accept ``key=value`` pairs (``AGONES_LABELS=env=prod,mode=casual``).
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode

from allocator_client.errors import ConfigurationError


def parse_key_values(raw: str) -> dict[str, str]:
    """Parse ``k=v,k2=v2`` into a dict. Empty input gives an empty dict."""
    result: dict[str, str] = {}
    for pair in raw.split(","):
        pair = pair.strip()
        if not pair:
            continue
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"expected key=value, got {pair!r}")
        result[key.strip()] = value.strip()
    return result


class AllocatorSettings(BaseSettings):
    """Allocator client configuration validated from environment variables."""

    # TLS material (paths to PEM files)
    cert: str = Field(default="", validation_alias="AGONES_CLIENT_CERT")
    key: str = Field(default="", validation_alias="AGONES_CLIENT_KEY")
    ca_cert: str = Field(default="", validation_alias="AGONES_CA_CERT")

    # Endpoints
    hosts: Annotated[list[str], NoDecode] = Field(
        default_factory=list, validation_alias="AGONES_HOSTS"
    )
    ping_servers: Annotated[list[str], NoDecode] = Field(
        default_factory=list, validation_alias="AGONES_PING_SERVERS"
    )

    # Allocation request shaping
    namespace: str = Field(default="", validation_alias="AGONES_GS_NAMESPACE")
    multicluster: bool = False
    labels: Annotated[dict[str, str], NoDecode] = Field(default_factory=dict)

    # Retry policy and timeouts
    max_retries: int = Field(default=10, ge=0)
    allocation_timeout_seconds: float = Field(default=30.0, gt=0)
    probe_timeout_seconds: float = Field(default=10.0, gt=0)
    session_read_timeout_seconds: float = Field(default=5.0, gt=0)

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json | text

    model_config = {"env_prefix": "AGONES_", "populate_by_name": True}

    @field_validator("hosts", "ping_servers", mode="before")
    @classmethod
    def _split_comma_list(cls, value: object) -> object:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("labels", mode="before")
    @classmethod
    def _parse_labels(cls, value: object) -> object:
        if isinstance(value, str):
            return parse_key_values(value)
        return value

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("json", "text"):
            raise ValueError("log_format must be one of (json|text)")
        return value

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def ping_hosts(self) -> dict[str, str] | None:
        """Pair hosts with their ping servers, or None when no ping servers are set."""
        if not self.ping_servers:
            return None
        return dict(zip(self.hosts, self.ping_servers))

    def validate_for_allocation(self) -> None:
        """Check everything an allocation command needs before touching the network.

        Raises
        ------
        ConfigurationError
            On a missing namespace, empty hosts, mismatched ping servers, or a
            certificate file that does not exist.
        """
        if not self.namespace:
            raise ConfigurationError("you must specify a namespace")

        if not self.hosts:
            raise ConfigurationError("hosts must not be empty")

        if self.ping_servers and len(self.ping_servers) != len(self.hosts):
            raise ConfigurationError(
                "if passing ping-servers, the length of hosts and ping-servers must be equal"
            )

        for label, path in (
            ("key file", self.key),
            ("ca cert", self.ca_cert),
            ("client cert", self.cert),
        ):
            if not path or not Path(path).is_file():
                raise ConfigurationError(f"{label} {path} does not exist")
