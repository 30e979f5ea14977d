#!/usr/bin/env python3

import argparse
import os
import pathlib
import platform
import sys

from packaging.version import Version

from .config import config
from .tuning import setup as tuning_setup
from .utils import helpers as h
from .utils.errors import TuningError
from .utils.hwlogging import init_logging, tuninglog


class ArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        # usage errors share the exit status of every other failure
        self.print_usage(sys.stdout)
        print(f"{self.prog}: error: {message}")
        sys.exit(h.EXIT_FAILURE)


def main(argv=None):
    args = parse_options(argv)
    init_logging(args.verbose, args.log_file)

    # Let's ensure no one is running below the expected python release
    min_python_release = "3.9"
    if Version(platform.python_version()) < Version(min_python_release):
        h.fatal(
            f"Current python version {platform.python_version()} is below minimal supported release : {min_python_release}"
        )

    if not is_root():
        h.fatal("benchprep is not running as effective uid 0.")

    try:
        tuning = tuning_setup.Tuning(config.load_config(args.config))
        if args.mode == "set":
            tuning.set(
                tuning_setup.SetOptions(
                    services=not args.disable_services,
                    frequency_control=not args.disable_frequency_control,
                    shielding=not args.disable_shielding,
                    interrupt_affinity=not args.disable_interrupt_affinity,
                )
            )
        else:
            if any(
                (
                    args.disable_services,
                    args.disable_frequency_control,
                    args.disable_shielding,
                    args.disable_interrupt_affinity,
                )
            ):
                tuninglog().info("disable flags are ignored by reset")
            tuning.reset()
    except TuningError as e:
        h.fatal(e.message, e.details)


def is_root():
    # euid != uid. please keep it this way (set-uid)
    return os.geteuid() == 0


def parse_options(argv=None):
    parser = ArgumentParser(
        prog="benchprep",
        description="Prepare and restore a Linux host for low-variance benchmarking",
        epilog="Note that benchprep needs to run as root: it stops services, changes cpu frequencies, "
        "creates cpusets and rewrites interrupt affinities.",
    )
    parser.add_argument(
        "mode",
        choices=["set", "reset"],
        help="set: check the host baseline then tune it, reset: undo every tuning",
    )
    parser.add_argument(
        "-c",
        "--config",
        help="Specify the file overriding the built-in configuration",
    )
    parser.add_argument(
        "-l",
        "--log-file",
        type=pathlib.Path,
        help="Specify a file receiving the tuning log, one json object per line",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every command benchprep runs")
    parser.add_argument(
        "--disable-services",
        action="store_true",
        help="set: do not stop the background services",
    )
    parser.add_argument(
        "--disable-frequency-control",
        action="store_true",
        help="set: do not pin the cpu frequency",
    )
    parser.add_argument(
        "--disable-shielding",
        action="store_true",
        help="set: do not isolate the benchmark cpus",
    )
    parser.add_argument(
        "--disable-interrupt-affinity",
        action="store_true",
        help="set: do not route the interrupts to a single cpu",
    )
    return parser.parse_args(argv)


if __name__ == "__main__":
    # don't add anything here setup.py points at main()
    main()
