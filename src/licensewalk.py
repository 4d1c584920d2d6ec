"""licensewalk: dependency license scanner.

Finds lockfiles under the given project paths, resolves the full transitive
dependency graph against the package registries and reports the licenses.
"""

# pylint: disable=too-many-branches, too-many-statements
import logging
import os
import sys

from args import parse_args
from constants import Constants, ExitCodes, _load_yaml_config, apply_config
from common.logging_utils import ENV_LOG_LEVEL, configure_logging, extra_context, is_debug_enabled
from engine import DiskCache, EngineConfig, MemoryCache, ResolutionEngine
from licenses import LicenseChecker
from lockfiles import LockfileError, find_lockfiles, parse_lockfile
from registry import resolve_package
from report import SummaryOptions, export_csv, render_info, render_summary, render_tree

logger = logging.getLogger(__name__)


def _emit(lines):
    for line in lines:
        print(line)


def apply_cli_overrides(args):
    """CLI flags win over config files and built-in defaults."""
    if args.WORKERS is not None:
        Constants.WORKER_COUNT = args.WORKERS
    if args.CACHE_DIR:
        Constants.CACHE_DIR = args.CACHE_DIR
    Constants.KEEP_RAW_RESPONSES = bool(args.DEBUG)


def build_cache(args):
    """Disk cache under Constants.CACHE_DIR, or an in-memory one with --no-cache."""
    if args.NO_CACHE:
        return MemoryCache()
    cache = DiskCache(Constants.CACHE_DIR)
    if not cache.ensure_dir():
        logging.warning("Falling back to an in-memory cache for this run.")
        return MemoryCache()
    return cache


def collect_lockfiles(paths, recursive):
    found = []
    for path in paths:
        found.extend(find_lockfiles(path, recursive))
    return found


def collect_identities(lockfiles):
    identities = []
    for lockfile in lockfiles:
        logging.info("Processing lockfile: %s", lockfile)
        try:
            parsed = parse_lockfile(lockfile)
        except LockfileError as e:
            logging.error("Failed to parse %s: %s", lockfile, e)
            continue
        logging.info("Found %d packages in %s", len(parsed), lockfile)
        identities.extend(parsed)
    return identities


def main():
    """Main function of the program."""
    args = parse_args()
    # Honor CLI --loglevel by passing it to centralized logger via env
    os.environ[ENV_LOG_LEVEL] = str(args.LOG_LEVEL).upper()
    configure_logging(log_file=args.LOG_FILE)

    applied = apply_config(_load_yaml_config(args.CONFIG))
    apply_cli_overrides(args)
    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(
                event="function_entry", component="cli", action="main",
                overrides=",".join(applied) or None, workers=Constants.WORKER_COUNT
            )
        )

    lockfiles = collect_lockfiles(args.PROJECT_PATHS, args.RECURSIVE)
    if not lockfiles:
        logging.error("No supported lock files found in any of the provided paths.")
        sys.exit(ExitCodes.FILE_ERROR.value)

    identities = collect_identities(lockfiles)
    if not identities:
        logging.error("No packages found in the provided lock files.")
        sys.exit(ExitCodes.FILE_ERROR.value)
    logging.info("Processing %d total packages from %d lock files", len(identities), len(lockfiles))

    cache = build_cache(args)

    if args.INFO:
        _emit(render_info(identities, cache))
        sys.exit(ExitCodes.SUCCESS.value)

    retry = args.RETRY and args.UNKNOWN
    if args.RETRY and not args.UNKNOWN:
        logging.warning("--retry only applies together with --unknown; ignoring it.")
    engine = ResolutionEngine(
        resolve_package,
        cache=cache,
        config=EngineConfig(
            workers=Constants.WORKER_COUNT,
            retry_unknown=retry,
            track_edges=args.TREE,
        ),
    )
    result = engine.run(identities)

    if args.CSV:
        if not export_csv(result.records, args.OUTPUT):
            sys.exit(ExitCodes.FILE_ERROR.value)
        sys.exit(ExitCodes.SUCCESS.value)

    if args.TREE:
        _emit(render_tree(result.edges, result.records))
        sys.exit(ExitCodes.SUCCESS.value)

    checker = LicenseChecker(args.ALLOWED)
    lines, violations = render_summary(
        result.records,
        checker,
        SummaryOptions(verbose=args.VERBOSE, unknown=args.UNKNOWN, debug=args.DEBUG, retry=retry),
    )
    _emit(lines)

    if checker.enabled and violations:
        logging.error("%d packages violate the allowed license list.", violations)
        sys.exit(ExitCodes.FILE_ERROR.value)
    sys.exit(ExitCodes.SUCCESS.value)


if __name__ == "__main__":
    main()
