"""Allocation client with retry, backoff and endpoint failover.

The client is built once per process from static configuration. Candidate
endpoints come either from an explicit host list (first host is active) or
from a host → probe-target mapping resolved by latency. After construction
the active endpoint only changes through failover inside
``allocate_with_retry``; reads and writes of it are serialized by a lock so a
single client can be shared by concurrent load units.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence

import grpc

from allocator_client.allocation import proto
from allocator_client.allocation.credentials import TLSMaterial
from allocator_client.allocation.models import Allocation, MetaPatch
from allocator_client.endpoints.selector import EndpointSelector
from allocator_client.endpoints.types import normalize_endpoint
from allocator_client.errors import (
    AllocationResponseError,
    EndpointConfigError,
    RetriesDisabledError,
    RetriesExhaustedError,
)
from allocator_client.resilience.retry import (
    ExponentialBackoff,
    RetryState,
    RetryStateMachine,
)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

# Errors from a single attempt that the retry loop absorbs
RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    grpc.RpcError,
    AllocationResponseError,
    OSError,
    asyncio.TimeoutError,
)


class AllocationClient:
    """Requests game server allocations from an Agones allocator.

    Use :meth:`create` to build one from configuration; the constructor takes
    an already-resolved candidate set.

    Parameters
    ----------
    tls:
        Client certificate, key and optional CA.
    candidates:
        Ordered mapping of endpoint → probe target (empty when not probed).
    endpoint:
        The active endpoint; normalized to include a port.
    namespace:
        Namespace of the fleet to allocate from.
    multicluster:
        Request a multi-cluster allocation.
    labels:
        Required game server label selector.
    meta_patch:
        Labels/annotations to set on the allocated server.
    max_retries:
        Retries after the first failed attempt. Zero disables retrying.
    allocation_timeout_seconds:
        Per-attempt RPC deadline. None leaves it to the transport.
    sleep:
        Awaitable used for backoff delays.
    log:
        Logger to report progress to. Defaults to this module's logger.
    """

    def __init__(
        self,
        *,
        tls: TLSMaterial,
        candidates: Mapping[str, str],
        endpoint: str,
        namespace: str,
        multicluster: bool = False,
        labels: Mapping[str, str] | None = None,
        meta_patch: MetaPatch | None = None,
        max_retries: int = 10,
        allocation_timeout_seconds: float | None = None,
        sleep: Sleep = asyncio.sleep,
        log: logging.Logger | None = None,
    ) -> None:
        if not candidates:
            raise EndpointConfigError("at least one candidate endpoint is required")
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")

        self._tls = tls
        self._credentials = tls.channel_credentials()
        self._candidates = dict(candidates)
        self._endpoint = normalize_endpoint(endpoint)
        self._namespace = namespace
        self._multicluster = multicluster
        self._labels = dict(labels or {})
        self._meta_patch = meta_patch
        self._max_retries = max_retries
        self._allocation_timeout = allocation_timeout_seconds
        self._sleep = sleep
        self._log = log or logger
        self._endpoint_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    async def create(
        cls,
        *,
        tls: TLSMaterial,
        namespace: str,
        hosts: Sequence[str] | None = None,
        ping_hosts: Mapping[str, str] | None = None,
        selector: EndpointSelector | None = None,
        **kwargs,
    ) -> AllocationClient:
        """Build a client from either a host list or a host → probe mapping.

        Configuration is validated before any network activity; probing only
        happens for ``ping_hosts``.

        Raises
        ------
        EndpointConfigError
            Neither or both of ``hosts`` and ``ping_hosts`` given, or the one
            given is empty.
        TLSMaterialError
            The certificate/key/CA could not be used.
        NoTracesSucceededError
            Every probe failed.
        """
        if hosts and ping_hosts:
            raise EndpointConfigError("pass either hosts or ping hosts, not both")
        if not hosts and not ping_hosts:
            raise EndpointConfigError()

        log = kwargs.get("log") or logger
        tls.validate()

        if hosts:
            candidates = {host: "" for host in hosts}
            endpoint = hosts[0]
        else:
            selector = selector or EndpointSelector(log=log)
            endpoint = await selector.select(ping_hosts)  # type: ignore[arg-type]
            candidates = selector.eligible

        client = cls(
            tls=tls,
            candidates=candidates,
            endpoint=endpoint,
            namespace=namespace,
            **kwargs,
        )
        log.info("client endpoint is set to %s", client.endpoint, extra={"endpoint": client.endpoint})
        return client

    # ------------------------------------------------------------------
    # Endpoint state
    # ------------------------------------------------------------------

    @property
    def endpoint(self) -> str:
        """The active endpoint."""
        return self._endpoint

    @property
    def candidates(self) -> dict[str, str]:
        return dict(self._candidates)

    async def _active_endpoint(self) -> str:
        async with self._endpoint_lock:
            return self._endpoint

    async def fail_over(self) -> str:
        """Switch to a candidate other than the active endpoint.

        The next candidate after the current one in configuration order is
        chosen. Latency is not re-probed. With a single candidate the active
        endpoint is kept.
        """
        async with self._endpoint_lock:
            current = self._endpoint
            ordered = [normalize_endpoint(ep) for ep in self._candidates]
            others = [ep for ep in ordered if ep != current]
            if not others:
                return current

            start = ordered.index(current) + 1 if current in ordered else 0
            rotated = ordered[start:] + ordered[:start]
            self._endpoint = next(ep for ep in rotated if ep != current)
            self._log.info(
                "trying a different allocator this time: %s",
                self._endpoint,
                extra={"endpoint": self._endpoint},
            )
            return self._endpoint

    # ------------------------------------------------------------------
    # Allocation
    # ------------------------------------------------------------------

    def build_request(self):
        """Build the AllocationRequest message for this client."""
        request = proto.AllocationRequest(namespace=self._namespace)
        request.multiClusterSetting.enabled = self._multicluster
        request.requiredGameServerSelector.matchLabels.update(self._labels)
        if self._meta_patch is not None and not self._meta_patch.is_empty():
            request.metaPatch.labels.update(self._meta_patch.labels)
            request.metaPatch.annotations.update(self._meta_patch.annotations)
        return request

    async def allocate(self, endpoint: str | None = None) -> Allocation:
        """Make a single allocation attempt.

        ``endpoint`` defaults to the active endpoint. Errors are not retried
        or wrapped here.

        Raises
        ------
        grpc.RpcError
            Transport or remote-side failure.
        AllocationResponseError
            The response carried no ports.
        """
        if endpoint is None:
            endpoint = await self._active_endpoint()

        request = self.build_request()
        async with grpc.aio.secure_channel(endpoint, self._credentials) as channel:
            call = channel.unary_unary(
                proto.ALLOCATE_METHOD,
                request_serializer=proto.AllocationRequest.SerializeToString,
                response_deserializer=proto.AllocationResponse.FromString,
            )
            response = await call(request, timeout=self._allocation_timeout)

        self._log.debug(
            "response: address=%s ports=%d",
            response.address,
            len(response.ports),
            extra={"endpoint": endpoint},
        )
        if not response.ports:
            raise AllocationResponseError(endpoint=endpoint, address=response.address)

        return Allocation(
            address=response.address,
            port=response.ports[0].port,
            game_server_name=response.gameServerName or None,
            node_name=response.nodeName or None,
        )

    async def allocate_with_retry(self) -> Allocation:
        """Allocate, retrying with exponential backoff and endpoint failover.

        Backoff starts at one second. Between attempts the client fails over
        to another candidate when more than one is configured.

        Raises
        ------
        RetriesDisabledError
            The first attempt failed and ``max_retries`` is zero.
        RetriesExhaustedError
            ``max_retries + 1`` attempts all failed.
        """
        machine = RetryStateMachine(
            self._max_retries, ExponentialBackoff(initial_interval=1.0)
        )

        while True:
            endpoint = await self._active_endpoint()
            try:
                allocation = await self.allocate(endpoint)
            except RETRYABLE_ERRORS as exc:
                state = machine.record_failure()
                self._log.info(
                    "allocation attempt %d failed: %s",
                    machine.attempts,
                    exc,
                    extra={"endpoint": endpoint, "attempt": machine.attempts},
                )
                if state is RetryState.EXHAUSTED:
                    if machine.retries_disabled:
                        raise RetriesDisabledError(
                            f"{exc} - max-retries is zero", endpoint=endpoint
                        ) from exc
                    raise RetriesExhaustedError(
                        f"max retries ({self._max_retries}) reached",
                        attempts=machine.attempts,
                        endpoint=endpoint,
                    ) from exc

                delay = machine.next_delay()
                self._log.info(
                    "retrying in %.2fs - %d retries left",
                    delay,
                    machine.retries_left,
                    extra={
                        "endpoint": endpoint,
                        "attempt": machine.attempts,
                        "retries_left": machine.retries_left,
                        "delay_seconds": delay,
                    },
                )
                if len(self._candidates) > 1:
                    await self.fail_over()
                await self._sleep(delay)
                machine.resume()
                continue

            machine.record_success()
            return allocation
