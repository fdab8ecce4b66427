"""Command-line entry point for the allocator client.

Sub-commands:
- allocate: request one game server and print its address and port
- load-test: run staggered allocate-and-connect units
- ping-test: probe targets and print their traces as JSON

Settings come from AGONES_* environment variables; flags given on the command
line override them. Client errors exit with the error's ``exit_code``.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from pydantic import ValidationError

from allocator_client import __version__
from allocator_client.allocation import AllocationClient, MetaPatch, TLSMaterial
from allocator_client.config.settings import AllocatorSettings, parse_key_values
from allocator_client.endpoints import EndpointSelector
from allocator_client.errors import AllocatorClientError, ConfigurationError
from allocator_client.load import LoadHarness
from allocator_client.load.session import GameServerSession, parse_protocol
from allocator_client.logging_config import configure_logging
from allocator_client.ping import LatencyProbe, dump_traces


def _comma_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _key_values(value: str) -> dict[str, str]:
    try:
        return parse_key_values(value)
    except ValueError as err:
        raise argparse.ArgumentTypeError(str(err)) from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agones-allocator-client",
        description="A tool to test the agones allocator service",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    # Global options default to None so AGONES_* environment values apply when omitted.
    parser.add_argument(
        "--key",
        default=None,
        help="The path to the client key file in PEM format [AGONES_CLIENT_KEY]",
    )
    parser.add_argument(
        "--cert",
        default=None,
        help="The path to the client cert file in PEM format [AGONES_CLIENT_CERT]",
    )
    parser.add_argument(
        "--ca-cert",
        dest="ca_cert",
        default=None,
        help="The path to the CA cert file in PEM format [AGONES_CA_CERT]",
    )
    parser.add_argument(
        "--hosts",
        type=_comma_list,
        default=None,
        help="A comma-separated list of possible allocation servers [AGONES_HOSTS]",
    )
    parser.add_argument(
        "--ping-servers",
        dest="ping_servers",
        type=_comma_list,
        default=None,
        help=(
            "Ping servers matching --hosts one to one. "
            "If omitted, the first host is used [AGONES_PING_SERVERS]"
        ),
    )
    parser.add_argument(
        "-n",
        "--namespace",
        default=None,
        help="The namespace of gameservers to request from [AGONES_GS_NAMESPACE]",
    )
    parser.add_argument(
        "-m",
        "--multicluster",
        action="store_true",
        default=None,
        help="Request a multicluster allocation",
    )
    parser.add_argument(
        "--labels",
        type=_key_values,
        default=None,
        help="Labels to match on the allocation (k=v,k2=v2)",
    )
    parser.add_argument(
        "--max-retries",
        dest="max_retries",
        type=int,
        default=None,
        help="Maximum allocation retries; 0 disables retrying",
    )
    parser.add_argument(
        "--meta-labels",
        dest="meta_labels",
        type=_key_values,
        default={},
        help="Labels to set on the allocated gameserver (k=v,...)",
    )
    parser.add_argument(
        "--meta-annotations",
        dest="meta_annotations",
        type=_key_values,
        default={},
        help="Annotations to set on the allocated gameserver (k=v,...)",
    )
    parser.add_argument(
        "--log-level", dest="log_level", default=None, help="DEBUG, INFO, WARNING, ERROR"
    )
    parser.add_argument(
        "--log-format",
        dest="log_format",
        default=None,
        choices=["json", "text"],
        help="Log output format",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("allocate", help="Request an allocated server")

    load_parser = subparsers.add_parser(
        "load-test",
        help="Allocate a set of servers, communicate with them, then close the connections",
    )
    load_parser.add_argument(
        "-c", "--count", type=int, default=10, help="The number of connections to make"
    )
    load_parser.add_argument(
        "--delay", type=float, default=2, help="Seconds to wait between connections"
    )
    load_parser.add_argument(
        "-d",
        "--duration",
        type=float,
        default=10,
        help="Seconds to leave each connection open",
    )
    load_parser.add_argument(
        "--protocol", default="udp", help="Game server protocol (udp|tcp)"
    )

    ping_parser = subparsers.add_parser(
        "ping-test",
        help="Ping a list of servers and print their response and response time",
    )
    ping_parser.add_argument(
        "-t",
        "--targets",
        type=_comma_list,
        required=True,
        help="Comma-separated list of targets to ping",
    )

    return parser


def load_settings(args: argparse.Namespace) -> AllocatorSettings:
    """Read AGONES_* settings from the environment, then apply CLI overrides."""
    settings = AllocatorSettings()
    overrides = {
        name: value
        for name, value in vars(args).items()
        if value is not None and name in AllocatorSettings.model_fields
    }
    if not overrides:
        return settings
    return AllocatorSettings.model_validate({**settings.model_dump(), **overrides})


async def _build_client(settings: AllocatorSettings, args: argparse.Namespace) -> AllocationClient:
    settings.validate_for_allocation()
    tls = TLSMaterial.from_files(settings.cert, settings.key, settings.ca_cert)
    ping_hosts = settings.ping_hosts()
    return await AllocationClient.create(
        tls=tls,
        namespace=settings.namespace,
        hosts=None if ping_hosts else settings.hosts,
        ping_hosts=ping_hosts,
        selector=EndpointSelector(LatencyProbe(timeout_seconds=settings.probe_timeout_seconds)),
        multicluster=settings.multicluster,
        labels=settings.labels,
        meta_patch=MetaPatch(labels=args.meta_labels, annotations=args.meta_annotations),
        max_retries=settings.max_retries,
        allocation_timeout_seconds=settings.allocation_timeout_seconds,
    )


async def _allocate(settings: AllocatorSettings, args: argparse.Namespace) -> None:
    client = await _build_client(settings, args)
    allocation = await client.allocate_with_retry()
    print(f"Got allocation {allocation.address} {allocation.port}")


async def _load_test(settings: AllocatorSettings, args: argparse.Namespace) -> None:
    protocol = parse_protocol(args.protocol)
    client = await _build_client(settings, args)
    harness = LoadHarness(
        client,
        session=GameServerSession(read_timeout_seconds=settings.session_read_timeout_seconds),
    )
    report = await harness.run_load(args.count, args.delay, args.duration, protocol)
    print(f"Load test finished: {report.summary()}")


async def _ping_test(settings: AllocatorSettings, args: argparse.Namespace) -> None:
    probe = LatencyProbe(timeout_seconds=settings.probe_timeout_seconds)
    traces = await probe.probe_all(args.targets)
    print(dump_traces(traces))


_COMMANDS = {
    "allocate": _allocate,
    "load-test": _load_test,
    "ping-test": _ping_test,
}


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args)
    except ValidationError as err:
        print(f"agones-allocator-client: invalid configuration: {err}", file=sys.stderr)
        raise SystemExit(ConfigurationError.exit_code) from None

    configure_logging(settings.log_level, settings.log_format)

    command = _COMMANDS.get(args.command)
    if command is None:
        parser.error(f"Unknown command: {args.command}")

    try:
        asyncio.run(command(settings, args))
    except AllocatorClientError as err:
        print(f"agones-allocator-client {args.command} failed: {err}", file=sys.stderr)
        raise SystemExit(err.exit_code) from None
