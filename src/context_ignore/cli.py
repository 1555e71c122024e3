"""
Command line front end for inspecting workspace exclusions
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import List, Optional

from .manager import ContextIgnoreManager
from .settings import ContextIgnoreSettings
from .utils import configure_logging, get_logger

logger = get_logger(__name__)


class ContextIgnoreCLI:
    """Subcommand dispatcher for the context-ignore command"""

    def get_usage_examples(self) -> str:
        """Get usage examples for help text"""
        return """
Examples:
  context-ignore patterns .              # Show normalized ignore patterns
  context-ignore glob .                  # Exclude glob from the ignore file
  context-ignore glob . --search         # ...plus editor and built-in excludes
  context-ignore check . src/a.py .env   # Exit 1 if any path is excluded
  context-ignore files .                 # List files usable as context
  context-ignore watch .                 # Print the glob whenever it changes

Environment Variables:
  CONTEXT_IGNORE_LOG_LEVEL       Log level (TRACE, DEBUG, INFO, ...)
  CONTEXT_IGNORE_WATCH           Set to false to disable file watching
  CONTEXT_IGNORE_MAX_FILE_SIZE   Largest ignore file read, in bytes
  CONTEXT_IGNORE_READ_TIMEOUT    Ignore file read timeout in seconds
"""

    def build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog='context-ignore',
            description='Inspect which workspace files may be sent as AI context',
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog=self.get_usage_examples()
        )
        parser.add_argument('--log-level', default=None,
                            help='Log level (default: CONTEXT_IGNORE_LOG_LEVEL or WARNING)')
        parser.add_argument('--exclude', action='append', default=[], metavar='GLOB',
                            help='Extra editor-level exclude pattern (repeatable)')

        subparsers = parser.add_subparsers(dest='command')

        patterns_parser = subparsers.add_parser('patterns',
                                                help='Print normalized ignore file patterns')
        patterns_parser.add_argument('root', help='Workspace root')

        glob_parser = subparsers.add_parser('glob', help='Print the exclude glob')
        glob_parser.add_argument('root', help='Workspace root')
        glob_parser.add_argument('--search', action='store_true',
                                 help='Include editor and always-excluded patterns')

        check_parser = subparsers.add_parser('check', help='Check paths against the ignore file')
        check_parser.add_argument('root', help='Workspace root')
        check_parser.add_argument('paths', nargs='+', help='Paths, absolute or root-relative')

        files_parser = subparsers.add_parser('files', help='List files not excluded')
        files_parser.add_argument('root', help='Workspace root')

        watch_parser = subparsers.add_parser('watch', help='Print the exclude glob on every change')
        watch_parser.add_argument('root', help='Workspace root')
        watch_parser.add_argument('--duration', type=float, default=None,
                                  help='Stop after this many seconds')

        return parser

    def _manager(self, args: argparse.Namespace, watch: bool = False) -> ContextIgnoreManager:
        settings = ContextIgnoreSettings.from_env(
            watch=watch,
            files_exclude={pattern: True for pattern in args.exclude},
        )
        return ContextIgnoreManager([args.root], settings=settings)

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Main entry point"""
        parser = self.build_parser()
        args = parser.parse_args(argv)

        configure_logging(
            log_level=args.log_level or os.environ.get('CONTEXT_IGNORE_LOG_LEVEL') or 'WARNING'
        )

        if not args.command:
            parser.print_help()
            return 0

        if not Path(args.root).is_dir():
            print(f"Error: not a directory: {args.root}", file=sys.stderr)
            return 2

        logger.debug(f"Running {args.command} for {args.root}")
        handler = getattr(self, f'cmd_{args.command}')
        try:
            return asyncio.run(handler(args))
        except KeyboardInterrupt:
            return 130

    # Command handlers

    async def cmd_patterns(self, args: argparse.Namespace) -> int:
        async with self._manager(args) as manager:
            root = manager.roots[0]
            patterns = await manager.get_pattern_set(root)
            engine = manager.provider.rule_engine
            for pattern in patterns:
                valid, error = engine.validate_pattern(pattern)
                print(pattern if valid else f"{pattern}\t(invalid: {error})")
        return 0

    async def cmd_glob(self, args: argparse.Namespace) -> int:
        async with self._manager(args) as manager:
            root = manager.roots[0]
            if args.search:
                print(await manager.get_search_exclude_glob(root))
            else:
                print(await manager.get_exclude_glob(root))
        return 0

    async def cmd_check(self, args: argparse.Namespace) -> int:
        excluded = False
        async with self._manager(args) as manager:
            for path in args.paths:
                result = await manager.is_excluded(path)
                excluded = excluded or bool(result)
                print(f"{path}\t{result.value}")
        return 1 if excluded else 0

    async def cmd_files(self, args: argparse.Namespace) -> int:
        async with self._manager(args) as manager:
            root = manager.roots[0]
            for path in await manager.find_workspace_files():
                print(path.relative_to(root.path).as_posix())
        return 0

    async def cmd_watch(self, args: argparse.Namespace) -> int:
        async with self._manager(args, watch=True) as manager:
            root = manager.roots[0]
            ignore_file = manager.cache.ignore_file_for(root)
            last = await manager.get_exclude_glob(root)
            print(f"Watching {ignore_file}", file=sys.stderr)
            print(last or '(nothing excluded)', flush=True)

            loop = asyncio.get_running_loop()
            deadline = None if args.duration is None else loop.time() + args.duration
            while deadline is None or loop.time() < deadline:
                await asyncio.sleep(0.5)
                await manager.cache.flush()
                current = await manager.get_exclude_glob(root)
                if current != last:
                    print(current or '(nothing excluded)', flush=True)
                    last = current
        return 0


def main():
    """Main entry point"""
    cli = ContextIgnoreCLI()
    sys.exit(cli.run())


if __name__ == '__main__':
    main()
