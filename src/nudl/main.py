#!/usr/bin/env python3

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from nudl.app import run_labeler
from nudl.config import ConfigurationError, LabelerConfig, configure_logging
from nudl.config.labeler import DEFAULT_LISTEN_ADDRESS
from nudl.config.logging import LOG_LEVELS
from nudl.domain.errors import StartupError
from nudl.domain.keys import DEFAULT_LABEL_PREFIX
from nudl.domain.types import ModuleMatch

if TYPE_CHECKING:
    from collections.abc import Sequence

log = logging.getLogger(__name__)

CONFIGURATION_EXIT_STATUS = 2
STARTUP_EXIT_STATUS = 1


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="nudl",
        description="Label Kubernetes nodes with their attached USB devices",
    )
    parser.add_argument(
        "--hostname",
        type=str,
        help="Name of the node on which this process is running (default: $NODE_NAME)",
    )
    parser.add_argument(
        "--kubeconfig",
        type=str,
        help="Path to kubeconfig (default: $KUBECONFIG, else in-cluster config)",
    )
    parser.add_argument(
        "--human-readable",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Use human readable label names instead of hex codes where they can be resolved",
    )
    parser.add_argument(
        "--label-prefix",
        type=str,
        default=DEFAULT_LABEL_PREFIX,
        help="Prefix for labels (default: %(default)s)",
    )
    parser.add_argument(
        "--update-time",
        type=str,
        default="10s",
        help="Renewal interval for labels, e.g. 10s or 1m (default: %(default)s)",
    )
    parser.add_argument(
        "--no-contain",
        action="append",
        metavar="STRINGS",
        help="USB devices whose description contains one of these case-insensitive "
        "strings are not labeled (comma separated, repeatable)",
    )
    parser.add_argument(
        "--include",
        action="append",
        metavar="VENDOR:PRODUCT",
        help="Only label these devices, marking missing ones false; requires "
        "--no-human-readable (comma separated, repeatable)",
    )
    parser.add_argument(
        "--modules",
        action="append",
        metavar="NAMES",
        help="Kernel modules to report as loaded or not (comma separated, repeatable)",
    )
    parser.add_argument(
        "--module-match",
        choices=[match.value for match in ModuleMatch],
        default=ModuleMatch.EXACT.value,
        help="How module filters match loaded module names (default: %(default)s)",
    )
    parser.add_argument(
        "--listen-address",
        type=str,
        default=DEFAULT_LISTEN_ADDRESS,
        help="Listen address for the prometheus metrics server (default: %(default)s)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="info",
        help=f"Log level to use. Possible values: {', '.join(LOG_LEVELS)}",
    )
    parser.add_argument("--sysfs-root", type=str, help=argparse.SUPPRESS)
    parser.add_argument("--modules-file", type=str, help=argparse.SUPPRESS)
    parser.add_argument(
        "--usb-ids",
        type=str,
        help="Path to the usb.ids name database (default: system location)",
    )
    return parser.parse_args(list(argv))


def _build_config(args: argparse.Namespace) -> LabelerConfig:
    return LabelerConfig.from_options(
        node_name=args.hostname,
        kubeconfig=args.kubeconfig,
        human_readable=args.human_readable,
        label_prefix=args.label_prefix,
        update_time=args.update_time,
        no_contain=args.no_contain,
        include=args.include,
        modules=args.modules,
        module_match=args.module_match,
        listen_address=args.listen_address,
        log_level=args.log_level,
        sysfs_root=args.sysfs_root,
        modules_file=args.modules_file,
        usb_ids=args.usb_ids,
    )


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point; always exits with the process status."""
    load_dotenv()
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    try:
        config = _build_config(parsed_args)
    except ConfigurationError:
        log.exception("Invalid configuration")
        sys.exit(CONFIGURATION_EXIT_STATUS)

    configure_logging(level=config.log_level, force=True)

    try:
        status = asyncio.run(run_labeler(config))
    except ConfigurationError:
        log.exception("Invalid configuration")
        sys.exit(CONFIGURATION_EXIT_STATUS)
    except StartupError:
        log.exception("Could not start")
        sys.exit(STARTUP_EXIT_STATUS)

    sys.exit(status)


if __name__ == "__main__":
    main()
