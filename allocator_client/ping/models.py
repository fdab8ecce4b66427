"""Ping trace model."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class Trace(BaseModel):
    """Result of one latency probe. Durations are in seconds.

    Serialized with the wire names host, dnsLookupTime, response,
    responseTime and roundTripTime (omitted when unset).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    host: str
    dns_lookup_time: float = Field(default=0.0, alias="dnsLookupTime")
    response: str = ""
    response_time: float = Field(default=0.0, alias="responseTime")
    round_trip_time: float | None = Field(default=None, alias="roundTripTime")


_TRACE_LIST = TypeAdapter(list[Trace])


def dump_traces(traces: list[Trace]) -> str:
    """Render traces as indented JSON using the wire field names."""
    return _TRACE_LIST.dump_json(
        traces, indent=2, by_alias=True, exclude_none=True
    ).decode("utf-8")
