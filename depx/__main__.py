"""Main CLI entry point for depx."""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .classification import DEFAULT_RULES
from .commands.stats import show_stats
from .duplicates import analyze_lockfile_duplicates
from .errors import DepxError
from .explain import explain_package
from .formatters import ReportFormatter
from .graph import DependencyGraph
from .imports import ImportAnalyzer
from .parsers import LockfileParser, LockfileType
from .usage import analyze_usage
from .vulnerability import check_vulnerabilities, check_deprecated

logger = logging.getLogger(__name__)

LOG_LEVELS = {
    'TRACE': logging.DEBUG,
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARN': logging.WARNING,
    'ERROR': logging.ERROR,
}


def setup_logging(verbose: bool = False, log_level: Optional[str] = None):
    """Configure logging based on verbosity flags."""
    if log_level:
        level = LOG_LEVELS.get(log_level.upper(), logging.WARNING)
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format='%(levelname)s: %(message)s'
    )


def _report_error(e: Exception) -> int:
    logger.error(str(e))
    print(f"Error: {e}", file=sys.stderr)
    return 1


def _uninstall_hint(parser: LockfileParser) -> str:
    if parser.lockfile_type == LockfileType.CARGO:
        return "cargo remove"
    return "npm uninstall"


def handle_analyze(args):
    """Handle the 'analyze' subcommand."""
    setup_logging(args.verbose, args.loglevel)
    project = Path(args.path)

    try:
        parser = LockfileParser(project)
        packages = parser.parse()
    except DepxError as e:
        return _report_error(e)

    logger.info(f"Found {len(packages)} installed packages")

    imports = ImportAnalyzer(project).analyze()
    logger.info(f"Found {imports.total_imports()} import statements across {imports.files_analyzed()} files")

    rules = DEFAULT_RULES.extended(args.expect_unused or [])
    graph = DependencyGraph(packages)
    analysis = analyze_usage(graph, imports.packages_used(), include_dev=not args.no_dev,
                             imports=imports, rules=rules)

    if args.unused:
        output = ReportFormatter.format_unused(analysis, _uninstall_hint(parser))
    else:
        output = ReportFormatter.format_analysis(analysis, args.verbose, _uninstall_hint(parser))
    print(output, end='')
    return 0


def handle_why(args):
    """Handle the 'why' subcommand."""
    setup_logging(args.verbose, args.loglevel)

    try:
        packages = LockfileParser(args.path).parse()
    except DepxError as e:
        return _report_error(e)

    explanation = explain_package(DependencyGraph(packages), args.package)
    if explanation is None:
        print(f"Error: Package '{args.package}' not found in dependencies", file=sys.stderr)
        return 1

    print(ReportFormatter.format_why(explanation), end='')
    return 0


def handle_audit(args):
    """Handle the 'audit' subcommand."""
    setup_logging(args.verbose, args.loglevel)

    try:
        parser = LockfileParser(args.path)
        packages = parser.parse()

        used = None
        if args.used_only:
            used = ImportAnalyzer(args.path).analyze().packages_used()

        vulnerabilities = check_vulnerabilities(packages, parser.ecosystem, used=used)
    except DepxError as e:
        return _report_error(e)

    if args.used_only:
        vulnerabilities = [v for v in vulnerabilities if v.affects_used_code]

    print(ReportFormatter.format_vulnerabilities(vulnerabilities, args.verbose), end='')
    return 0


def handle_deprecated(args):
    """Handle the 'deprecated' subcommand."""
    setup_logging(args.verbose, args.loglevel)

    try:
        packages = LockfileParser(args.path).parse()
    except DepxError as e:
        return _report_error(e)

    used = ImportAnalyzer(args.path).analyze().packages_used()
    deprecated = check_deprecated(packages, used=used)
    print(ReportFormatter.format_deprecated(deprecated), end='')
    return 0


def handle_duplicates(args):
    """Handle the 'duplicates' subcommand."""
    setup_logging(args.verbose, args.loglevel)

    try:
        entries = LockfileParser(args.path).parse_for_duplicates()
    except DepxError as e:
        return _report_error(e)

    analysis = analyze_lockfile_duplicates(entries)

    if args.json:
        print(ReportFormatter.format_duplicates_json(analysis), end='')
    else:
        print(ReportFormatter.format_duplicates(analysis, args.verbose), end='')
    return 0


def handle_stats(args):
    """Handle the 'stats' subcommand."""
    setup_logging(args.verbose, args.loglevel)

    try:
        show_stats(args.path)
    except DepxError as e:
        return _report_error(e)
    return 0


def _add_common_arguments(subparser: argparse.ArgumentParser, with_path: bool = True):
    if with_path:
        subparser.add_argument('path', nargs='?', default='.',
                               help='Project directory (default: current directory)')
    subparser.add_argument('-v', '--verbose', action='store_true', help='Verbose output')
    subparser.add_argument('--loglevel', choices=list(LOG_LEVELS), help='Set log level')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='depx',
        description='Find unused, duplicated, deprecated and vulnerable dependencies'
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    subparsers = parser.add_subparsers(dest='command', help='Subcommands')

    # Analyze command
    analyze_parser = subparsers.add_parser('analyze', help='Cross-reference installed packages with source imports')
    _add_common_arguments(analyze_parser)
    analyze_parser.add_argument('--unused', action='store_true',
                                help='Only show potentially unused dependencies')
    analyze_parser.add_argument('--no-dev', action='store_true',
                                help='Leave dev dependencies out of the analysis')
    analyze_parser.add_argument('--expect-unused', action='append', metavar='NAME',
                                help='Treat a package as tooling that is never imported '
                                     '(repeatable; a trailing * matches a prefix)')
    analyze_parser.set_defaults(func=handle_analyze)

    # Why command
    why_parser = subparsers.add_parser('why', help='Explain why a package is installed')
    why_parser.add_argument('package', help='Package name')
    _add_common_arguments(why_parser)
    why_parser.set_defaults(func=handle_why)

    # Audit command
    audit_parser = subparsers.add_parser('audit', help='Check installed packages for known vulnerabilities')
    _add_common_arguments(audit_parser)
    audit_parser.add_argument('--used-only', action='store_true',
                              help='Only report vulnerabilities in packages reachable from imports')
    audit_parser.set_defaults(func=handle_audit)

    # Deprecated command
    deprecated_parser = subparsers.add_parser('deprecated', help='List deprecated packages')
    _add_common_arguments(deprecated_parser)
    deprecated_parser.set_defaults(func=handle_deprecated)

    # Duplicates command
    duplicates_parser = subparsers.add_parser('duplicates', help='Find packages installed in several versions')
    _add_common_arguments(duplicates_parser)
    duplicates_parser.add_argument('--json', action='store_true', help='Output as JSON')
    duplicates_parser.set_defaults(func=handle_duplicates)

    # Stats command
    stats_parser = subparsers.add_parser('stats', help='Show lockfile statistics')
    _add_common_arguments(stats_parser)
    stats_parser.set_defaults(func=handle_stats)

    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    # Execute command
    try:
        return args.func(args)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
