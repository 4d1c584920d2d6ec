"""Argument parsing functionality for licensewalk."""

import argparse


def _comma_list(value):
    """Split ``MIT,Apache-2.0`` into a list of stripped, non-empty items."""
    return [item.strip() for item in value.split(",") if item.strip()]


def _positive_int(value):
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return number


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    parser = argparse.ArgumentParser(
        prog="licensewalk",
        description=(
            "licensewalk - Dependency license scanner for yarn, npm, Poetry and NuGet projects"
        ),
        add_help=True,
    )

    parser.add_argument("PROJECT_PATHS",
                        metavar="PROJECT_PATH",
                        help="Project root directory containing a lockfile",
                        nargs="+",
                        type=str)
    parser.add_argument("--allowed",
                        dest="ALLOWED",
                        help="Comma-separated allowed license patterns, '*' as wildcard (e.g. MIT,BSD-*)",
                        action="store",
                        type=_comma_list,
                        default=[])
    parser.add_argument("-v", "--verbose",
                        dest="VERBOSE",
                        help="Show every package, not only violations",
                        action="store_true")
    parser.add_argument("--unknown",
                        dest="UNKNOWN",
                        help="Only show packages whose license is UNKNOWN",
                        action="store_true")
    parser.add_argument("--retry",
                        dest="RETRY",
                        help="With --unknown, look up again packages cached as UNKNOWN",
                        action="store_true")
    parser.add_argument("--info",
                        dest="INFO",
                        help="Print the parsed lockfile contents and exit without network access",
                        action="store_true")
    parser.add_argument("-r", "--recursive",
                        dest="RECURSIVE",
                        help="Recursively search project paths for lockfiles",
                        action="store_true")
    parser.add_argument("--debug",
                        dest="DEBUG",
                        help="Show every package with debug information and raw registry responses",
                        action="store_true")

    output_group = parser.add_mutually_exclusive_group()
    output_group.add_argument("--csv",
                              dest="CSV",
                              help="Output unique packages as CSV (name,url,license)",
                              action="store_true")
    output_group.add_argument("--tree",
                              dest="TREE",
                              help="Output the dependency tree",
                              action="store_true")
    parser.add_argument("-o", "--output",
                        dest="OUTPUT",
                        help="CSV output file (default: stdout)",
                        action="store",
                        type=str)

    parser.add_argument("--workers",
                        dest="WORKERS",
                        help="Number of resolver threads (default: from config, else 4)",
                        action="store",
                        type=_positive_int)
    parser.add_argument("--cache-dir",
                        dest="CACHE_DIR",
                        help="Directory of the on-disk record cache (default: .cache)",
                        action="store",
                        type=str)
    parser.add_argument("--no-cache",
                        dest="NO_CACHE",
                        help="Keep records in memory only for this run",
                        action="store_true")
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to YAML configuration file",
                        action="store",
                        type=str)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default='WARNING')
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)

    return parser.parse_args(argv)
