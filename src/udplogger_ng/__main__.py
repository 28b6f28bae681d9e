from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from rich.console import Console

from udplogger_ng.config import ReceiverConfig, load_config_file
from udplogger_ng.core.receiver import Receiver
from udplogger_ng.core.transport import UdpTransport
from udplogger_ng.errors import ReceiverAborted, StartupError
from udplogger_ng.logging_config import setup_logging
from udplogger_ng.output_writer import format_stamp
from udplogger_ng.summary import display_summary
from udplogger_ng.utils.clock import local_time

APP_NAME = "udplogger-ng"
__version__ = "1.0.0"

SUCCESS = 0
ERROR = 1
INTERRUPT = 130

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Receive console output over UDP and append it to daily log files."
    )
    parser.add_argument("--ip", help="Address to listen on (default 0.0.0.0)")
    parser.add_argument("--port", help="UDP port to listen on (default 6666)", type=int)
    parser.add_argument("--dir", dest="log_dir", help="Directory for YYYY-MM-DD.log files (default .)")
    parser.add_argument("--timeout", help="Seconds to wait for a newline before flushing a partial line (5-600)", type=int)
    parser.add_argument("--clients", help="Maximum number of senders tracked at once (10-65536)", type=int)
    parser.add_argument("--wbuf", help="Per-sender buffer size that forces a flush (1024-1048576)", type=int)
    parser.add_argument("--rbuf", help="Socket receive buffer size (65536-1073741824)", type=int)
    parser.add_argument("-c", "--config", help="INI file with a [udplogger] section")
    parser.add_argument("--log-file", help="Also write diagnostic messages to this file")
    parser.add_argument("--version", help="Display current version", action="store_true")

    log_level_group = parser.add_mutually_exclusive_group()
    log_level_group.add_argument("--debug", help="Enable debug logging", action="store_true")
    log_level_group.add_argument("-q", "--quiet", help="Suppress all console output", action="store_true")
    return parser

def resolve_config(args: argparse.Namespace) -> ReceiverConfig:
    """Merges defaults, the optional config file and command-line flags, then clamps."""
    config = ReceiverConfig()
    if args.config:
        config = load_config_file(args.config, base=config)
    config = config.override(
        ip=args.ip, port=args.port, log_dir=args.log_dir, timeout=args.timeout,
        clients=args.clients, wbuf=args.wbuf, rbuf=args.rbuf,
    )
    return config.clamped()

def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.version:
        print(f"{APP_NAME} {__version__}")
        return SUCCESS

    setup_logging(is_debug=args.debug, is_quiet=args.quiet, log_file=args.log_file)
    console = Console(stderr=True)

    transport = None
    try:
        config = resolve_config(args)
        log_dir = Path(config.log_dir).resolve()
        if not log_dir.is_dir():
            raise StartupError(f"Can't change directory to {config.log_dir} .")
        config = config.override(log_dir=str(log_dir))

        transport = UdpTransport.open(config.ip, config.port, config.rbuf)
        receiver = Receiver(config, transport)
        receiver.start()
    except StartupError as e:
        if transport:
            transport.close()
        console.print(f"[bold red]ERROR:[/] {e}")
        return ERROR

    if not args.quiet:
        stamp = format_stamp(local_time(time.time())).decode("ascii").strip()
        ip, port = transport.address
        banner = Console(highlight=False)
        banner.print(f"Started at {stamp} at {log_dir}", markup=False, soft_wrap=True)
        banner.print(f"Options: ip={ip} port={port} dir={log_dir} timeout={config.timeout} "
                     f"clients={config.clients} wbuf={config.wbuf} rbuf={transport.receive_buffer_size}",
                     markup=False, soft_wrap=True)

    return serve(receiver, console, args.quiet)

def serve(receiver: Receiver, console: Console, is_quiet: bool = False) -> int:
    """Runs the receiver loop and maps how it ended to an exit code."""
    try:
        receiver.run()
    except ReceiverAborted as e:
        logging.critical(f"Receiver stopped: {e}")
        return ERROR
    except KeyboardInterrupt:
        logging.info("Interrupted, flushing pending lines.")
        receiver.shutdown()
        if not is_quiet:
            display_summary(receiver.stats, console)
        return INTERRUPT
    except Exception as e:
        logging.critical(f"Receiver loop failed: {e}")
        try:
            receiver.shutdown()
        except Exception as shutdown_error:
            logging.error(f"Could not flush pending lines: {shutdown_error}")
        console.print(f"[bold red]ERROR:[/] {e}")
        return ERROR

    return SUCCESS

if __name__ == "__main__":
    sys.exit(main())
