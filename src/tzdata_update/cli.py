#!/usr/bin/env python3
"""
tzdata-update CLI

Command-line interface for installing and removing time zone bundles.
"""

import argparse
import logging
import sys
from pathlib import Path

from common.exceptions import BundleException, TzUpdateError
from common.logging_config import setup_logging

from .bundle import TimeZoneBundleBuilder
from .config import InstallerConfig
from .installer import InstallOutcome
from .version import (
    CURRENT_FORMAT_MAJOR_VERSION,
    CURRENT_FORMAT_MINOR_VERSION,
    BundleVersion,
)

logger = logging.getLogger(__name__)

EXIT_FATAL = 2

OUTCOME_MESSAGES = {
    InstallOutcome.SUCCESS: "Time zone update installed.",
    InstallOutcome.BAD_BUNDLE_STRUCTURE: "Bundle is corrupt or missing required files.",
    InstallOutcome.INCOMPATIBLE_FORMAT: "Bundle format version is not supported.",
    InstallOutcome.RULES_REGRESSION: "Bundle rules are older than the system rules.",
    InstallOutcome.VALIDATION_FAILED: "Bundle time zone data failed validation.",
}


def _config_from_args(args) -> InstallerConfig:
    config = InstallerConfig.from_env()
    if args.system_tzdata:
        config.system_tzdata_file = Path(args.system_tzdata)
    if args.install_dir:
        config.install_dir = Path(args.install_dir)
    return config


def cmd_install(args):
    """Install a bundle file."""
    installer = _config_from_args(args).create_installer()
    content = Path(args.bundle).read_bytes()

    outcome = installer.install(content)
    print(OUTCOME_MESSAGES[outcome])
    return int(outcome)


def cmd_uninstall(args):
    """Remove the installed bundle."""
    installer = _config_from_args(args).create_installer()

    if installer.uninstall():
        print("Time zone update removed; using system data.")
        return 0
    print("No time zone update installed.")
    return 1


def cmd_status(args):
    """Show system and installed rules versions."""
    installer = _config_from_args(args).create_installer()

    print(f"System rules version: {installer.get_system_rules_version()}")
    installed = installer.get_installed_bundle_version()
    if installed is None:
        print("Installed bundle: none")
    else:
        print(f"Installed bundle: {installed}")
        print(f"  Rules version: {installed.rules_version}")
        print(f"  Format version: {installed.format_major}.{installed.format_minor}")
        print(f"  Revision: {installed.revision}")
    return 0


def cmd_build(args):
    """Build a bundle archive from a tzdata file and an ICU data file."""
    try:
        major_str, minor_str = args.format_version.split(".")
        format_major, format_minor = int(major_str), int(minor_str)
    except ValueError:
        print(f"Invalid format version: {args.format_version} (expected MAJOR.MINOR)")
        return 1

    try:
        version = BundleVersion.create(
            format_major, format_minor, args.rules_version, args.revision
        )
    except BundleException as e:
        print(f"Invalid bundle version: {e.message}")
        return 1

    bundle = (
        TimeZoneBundleBuilder()
        .set_bundle_version(version)
        .set_tzdata_file(Path(args.tzdata).read_bytes())
        .set_icu_data_file(Path(args.icu).read_bytes())
        .build()
    )

    output = Path(args.output)
    output.write_bytes(bundle.get_bytes())
    print(f"Bundle {version} written to {output}")
    return 0


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Time zone data update installer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  tzdata-update status                       # Show installed versions
  tzdata-update install bundle.zip           # Install a bundle
  tzdata-update uninstall                    # Revert to system data
  tzdata-update build -o bundle.zip --tzdata tzdata --icu icu_tzdata.dat \\
      --rules-version 2016c
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--system-tzdata", help="System tzdata file (baseline)")
    parser.add_argument("--install-dir", help="Directory holding installed bundles")
    parser.add_argument("--log-file", type=Path, help="Also write logs to this file")
    parser.add_argument("--json-logs", action="store_true", help="Use JSON for the log file")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    install_parser = subparsers.add_parser("install", help="Install a bundle")
    install_parser.add_argument("bundle", help="Bundle archive to install")
    install_parser.set_defaults(func=cmd_install)

    uninstall_parser = subparsers.add_parser("uninstall", help="Remove the installed bundle")
    uninstall_parser.set_defaults(func=cmd_uninstall)

    status_parser = subparsers.add_parser("status", help="Show rules versions")
    status_parser.set_defaults(func=cmd_status)

    build_parser = subparsers.add_parser("build", help="Build a bundle archive")
    build_parser.add_argument("-o", "--output", required=True, help="Output bundle file")
    build_parser.add_argument("--tzdata", required=True, help="tzdata file to include")
    build_parser.add_argument("--icu", required=True, help="ICU data file to include")
    build_parser.add_argument("--rules-version", required=True, help="Rules version, e.g. 2016c")
    build_parser.add_argument("--revision", type=int, default=1, help="Bundle revision")
    build_parser.add_argument(
        "--format-version",
        default=f"{CURRENT_FORMAT_MAJOR_VERSION}.{CURRENT_FORMAT_MINOR_VERSION}",
        help="Bundle format version MAJOR.MINOR",
    )
    build_parser.set_defaults(func=cmd_build)

    args = parser.parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.WARNING
    setup_logging(level=level, log_file=args.log_file, json_logs=args.json_logs)

    if args.command is None:
        # Default to status
        args.func = cmd_status

    try:
        return args.func(args)
    except TzUpdateError as e:
        logger.error(
            f"{args.command or 'status'} failed: {e}",
            extra={"extra_data": e.to_dict()},
        )
        return EXIT_FATAL
    except OSError as e:
        logger.error(f"{args.command or 'status'} failed: {e}")
        return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
