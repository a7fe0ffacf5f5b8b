"""thermlink command-line tool."""

from __future__ import annotations

import argparse
import logging
import sys

from .config import AgentOptions, SessionConfig
from .errors import ConfigurationError, LogWriteError, TransportError
from .sensor import FixedSource, Scale
from .session import Session
from .storage import LogReader, summarize

logger = logging.getLogger(__name__)

EXIT_CONFIG = 1
EXIT_TRANSPORT = 2
EXIT_LOG = 3


def _options_from_args(args: argparse.Namespace) -> AgentOptions:
    return AgentOptions(
        period=args.period,
        scale=Scale.parse(args.scale),
        log_path=args.log,
        host=getattr(args, "host", None),
        port=getattr(args, "port", None),
        ident=getattr(args, "id", None),
        cafile=getattr(args, "cafile", None),
        verify=not getattr(args, "no_verify", False),
        debug=args.debug,
    )


def _make_source(args: argparse.Namespace):
    if args.serial:
        from .sensor import SerialSource
        try:
            return SerialSource(args.serial, baudrate=args.baud)
        except OSError as exc:
            raise ConfigurationError(
                f"cannot open sensor port {args.serial!r}: {exc}") from exc
    return FixedSource(args.raw)


def _make_transport(args: argparse.Namespace, options: AgentOptions):
    if args.command == "stdio":
        from .transport import StdioTransport
        return StdioTransport()
    if args.command == "tcp":
        from .transport import TCPTransport
        return TCPTransport(options.host, options.port, ident=options.ident)
    from .transport import TLSTransport
    return TLSTransport(options.host, options.port, ident=options.ident,
                        cafile=options.cafile, verify=options.verify)


def cmd_run(args: argparse.Namespace) -> int:
    """Run a reporting session over the selected transport."""
    options = _options_from_args(args)
    options.validate(network=args.command != "stdio")

    config = SessionConfig.from_options(options)
    try:
        source = _make_source(args)
        transport = _make_transport(args, options)
    except (ConfigurationError, TransportError):
        if config.log is not None:
            config.log.close()
        raise

    session = Session(config, transport, source)
    session.install_signal_handlers()
    logger.debug("session started: period=%d scale=%s log=%s",
                 config.period, config.scale.value, options.log_path)
    session.run()
    return 0


def cmd_info(args: argparse.Namespace) -> int:
    """Print summary info about a log file."""
    try:
        with LogReader(args.file) as reader:
            s = summarize(reader.records())
    except OSError as exc:
        raise ConfigurationError(f"cannot read {args.file!r}: {exc}") from exc

    print(f"File:       {args.file}")
    print(f"Reports:    {s.reports}")
    print(f"Commands:   {s.commands}")
    print(f"Shutdowns:  {s.shutdowns}")
    if s.first is not None:
        print(f"Time range: {s.first} - {s.last}")
    else:
        print("Time range: (empty)")
    if s.t_mean is not None:
        print(f"Min/Max:    {s.t_min:.1f} / {s.t_max:.1f}")
        print(f"Mean:       {s.t_mean:.1f}")
    return 0


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("--period", type=int, default=1,
                   help="Seconds between reports (default 1)")
    p.add_argument("--scale", choices=["F", "C"], default="F",
                   help="Temperature scale (default F)")
    p.add_argument("--log", help="Append reports and commands to this file")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--raw", type=int, default=100,
                   help="Fixed raw ADC sample when no sensor is attached")
    p.add_argument("--serial", help="Serial port of the sensor board")
    p.add_argument("--baud", type=int, default=9600, help="Baud rate")


def _add_network(p: argparse.ArgumentParser) -> None:
    p.add_argument("--host", required=True, help="Server host name")
    p.add_argument("--id", required=True, help="9-character client ID")
    p.add_argument("port", type=int, help="Server port")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="thermlink",
                                     description="thermlink temperature agent")
    sub = parser.add_subparsers(dest="command")

    # stdio
    p_stdio = sub.add_parser("stdio", help="Report on stdout, commands on stdin")
    _add_common(p_stdio)

    # tcp
    p_tcp = sub.add_parser("tcp", help="Report to a TCP server")
    _add_common(p_tcp)
    _add_network(p_tcp)

    # tls
    p_tls = sub.add_parser("tls", help="Report to a TLS server")
    _add_common(p_tls)
    _add_network(p_tls)
    p_tls.add_argument("--cafile", help="CA bundle for server verification")
    p_tls.add_argument("--no-verify", action="store_true",
                       help="Skip server certificate verification")

    # info
    p_info = sub.add_parser("info", help="Show summary info about a log file")
    p_info.add_argument("file", help="Path to log file")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if getattr(args, "debug", False):
        level = logging.DEBUG
    elif args.command in ("tcp", "tls"):
        # echo reports to stderr; stdout carries them in stdio mode
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(name)s: %(message)s",
    )

    try:
        if args.command in ("stdio", "tcp", "tls"):
            return cmd_run(args)
        elif args.command == "info":
            return cmd_info(args)
        else:
            parser.print_help()
            return EXIT_CONFIG
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_CONFIG
    except TransportError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_TRANSPORT
    except LogWriteError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_LOG


if __name__ == "__main__":
    sys.exit(main())
