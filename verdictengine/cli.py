"""
Command Line Interface for SinkVerdict
"""

import argparse
import sys
import logging
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import ConfigLoader
from .dataflow.aggregator import TaintClassifier
from .dataflow.transforms import TransformKind, TransformRegistry
from .errors import ConfigurationError
from .models import BatchResult, Outcome
from .reporters import get_reporter
from .runner import BatchClassifier

logger = logging.getLogger(__name__)

EXIT_SAFE = 0
EXIT_UNKNOWN = 1
EXIT_UNSAFE = 2
EXIT_CONFIG_ERROR = 3


def setup_logging(verbose: bool = False, debug: bool = False) -> None:
    """Configure logging"""
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        prog='sinkverdict',
        description='SinkVerdict - Decide whether traced source-to-sink paths are exploitable',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s classify paths.yaml                     # Classify with a config in cwd
  %(prog)s classify paths.yaml --ceiling 1000      # Explicit loop ceiling
  %(prog)s classify a.yaml b.json -f json -o out.json
  %(prog)s list-transforms --kind validator        # Show registered validators
        """
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        '-c', '--config',
        help='Configuration file (default: sinkverdict.yaml in the current directory, if present)'
    )
    common.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Verbose output'
    )
    common.add_argument(
        '--debug',
        action='store_true',
        help='Debug mode (very verbose)'
    )

    commands = parser.add_subparsers(dest='command', required=True)

    classify = commands.add_parser('classify', parents=[common],
                                   help='Classify path descriptor files')
    classify.add_argument(
        'paths',
        nargs='+',
        help='YAML or JSON files holding path descriptors'
    )
    classify.add_argument(
        '--ceiling',
        type=int,
        help='Loop iteration ceiling K (overrides the config file)'
    )
    classify.add_argument(
        '--max-total-work',
        type=int,
        help='Ceiling on the total work of nested loops'
    )

    output_group = classify.add_argument_group('Output Options')
    output_group.add_argument(
        '-o', '--output',
        help='Output file path (default: stdout)'
    )
    output_group.add_argument(
        '-f', '--format',
        choices=['console', 'json'],
        default='console',
        help='Output format (default: console)'
    )
    output_group.add_argument(
        '--no-color',
        action='store_true',
        help='Disable colored output'
    )
    classify.add_argument(
        '-j', '--jobs',
        type=int,
        help='Number of parallel jobs (default: 4)'
    )

    list_cmd = commands.add_parser('list-transforms', parents=[common],
                                   help='List registered transforms and exit')
    list_cmd.add_argument(
        '--kind',
        choices=[k.value for k in TransformKind],
        help='Only list transforms of this kind'
    )

    return parser.parse_args(args)


def _config_path(args: argparse.Namespace) -> Optional[Path]:
    if args.config:
        return Path(args.config)
    default = Path.cwd() / 'sinkverdict.yaml'
    return default if default.exists() else None


def build_registry(loader: ConfigLoader) -> TransformRegistry:
    """Builtins plus whatever the configuration registers"""
    registry = TransformRegistry.with_builtins()
    loader.apply_transforms(registry)
    return registry


def list_transforms(args: argparse.Namespace) -> int:
    """List all registered transforms"""
    loader = ConfigLoader(_config_path(args))
    loader.load()
    registry = build_registry(loader)
    kind = TransformKind(args.kind) if args.kind else None
    transforms = registry.transforms(kind=kind)

    print(f"\nRegistered Transforms ({len(transforms)} total):\n")
    print("-" * 80)
    for transform in transforms:
        marker = '?' if transform.conditional else ' '
        flow = f"{transform.accepts.value}->{transform.domain.value}"
        print(f"  {marker} {transform.name:<24} {transform.kind.value:<13} {flow:<16} "
              f"{transform.description}")
    print("\n" + "-" * 80)
    print("\nMarkers: ? = applies only where the validation is known to have passed")
    return EXIT_SAFE


def exit_code(result: BatchResult) -> int:
    """Exit code from the worst verdict"""
    outcome = result.outcome
    if outcome is Outcome.UNSAFE:
        return EXIT_UNSAFE
    if outcome is Outcome.UNKNOWN or result.errors:
        return EXIT_UNKNOWN
    return EXIT_SAFE


def run_classify(args: argparse.Namespace) -> int:
    """Classify every path in the given files"""
    loader = ConfigLoader(_config_path(args))
    config = loader.load({
        'loop_ceiling': args.ceiling,
        'max_total_work': args.max_total_work,
        'max_workers': args.jobs,
    })
    classifier = TaintClassifier(config, build_registry(loader))
    runner = BatchClassifier(classifier, max_workers=config.max_workers)

    missing = [p for p in args.paths if not Path(p).exists()]
    for path in missing:
        print(f"Error: Path file does not exist: {path}", file=sys.stderr)

    result = runner.classify_files([Path(p) for p in args.paths if p not in missing])
    result.errors.extend(f"{p}: not found" for p in missing)

    reporter_kwargs = {}
    if args.format == 'console':
        reporter_kwargs['use_colors'] = not args.no_color
        reporter_kwargs['verbose'] = args.verbose

    reporter = get_reporter(args.format, **reporter_kwargs)
    reporter.report(result, args.output)

    return exit_code(result)


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point"""
    parsed_args = parse_args(args)

    setup_logging(verbose=parsed_args.verbose, debug=parsed_args.debug)

    try:
        if parsed_args.command == 'list-transforms':
            return list_transforms(parsed_args)
        return run_classify(parsed_args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except KeyboardInterrupt:
        print("\nClassification interrupted by user", file=sys.stderr)
        return 130


if __name__ == '__main__':
    sys.exit(main())
