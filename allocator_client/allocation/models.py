"""Allocation request/result models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class MetaPatch(BaseModel):
    """Labels and annotations to set on the allocated game server."""

    model_config = ConfigDict(frozen=True)

    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)

    def is_empty(self) -> bool:
        return not self.labels and not self.annotations


class Allocation(BaseModel):
    """A game server reserved for this client."""

    model_config = ConfigDict(frozen=True)

    address: str
    port: int = Field(..., ge=0, le=65535)
    game_server_name: str | None = None
    node_name: str | None = None

    @property
    def target(self) -> str:
        """``address:port`` for opening a session."""
        return f"{self.address}:{self.port}"
