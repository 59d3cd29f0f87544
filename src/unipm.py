"""unipm - universal package manager front end.

Dispatches each subcommand to the selected language backend through the
command layer.

    Returns:
        int: Exit code
"""
import json
import logging
import sys
from dataclasses import asdict
from typing import Dict, List, Tuple

from constants import ExitCodes
from common.logging_utils import add_file_handler, configure_logging, extra_context, is_debug_enabled
from config import load_config
from args import parse_args
from backends import backend_names, detect_backend, get_backend
import commands
from registry.pypi import build_index

logger = logging.getLogger(__name__)


def parse_package_token(token: str) -> Tuple[str, str]:
    """Split a CLI package token into (name, spec).

    Accepts ``name``, ``name spec`` and ``name@spec``; a leading ``@`` belongs
    to an npm scope, so the rightmost ``@`` after the first character splits.
    """
    token = token.strip()
    if " " in token:
        name, spec = token.split(None, 1)
        return name, spec.strip()
    at = token.rfind("@")
    if at > 0:
        return token[:at], token[at + 1:]
    return token, ""


def _print_table(rows: List[Tuple[str, ...]]) -> None:
    if not rows:
        return
    widths = [max(len(row[i]) for row in rows) for i in range(len(rows[0]))]
    for row in rows:
        print("  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip())


def _print_mapping(mapping: Dict[str, str], fmt: str) -> None:
    if fmt == "json":
        print(json.dumps(mapping, indent=2, sort_keys=True))
        return
    _print_table([(name, mapping[name]) for name in sorted(mapping)])


def _print_names(names: List[str], fmt: str) -> None:
    if fmt == "json":
        print(json.dumps(names, indent=2))
        return
    for name in names:
        print(name)


def _select_backend(args, config):
    if args.LANG:
        return get_backend(args.LANG, config)
    backend = detect_backend(config)
    if backend is None:
        logger.error("could not detect a language; pass --lang (one of: %s)", ", ".join(backend_names()))
        sys.exit(ExitCodes.USAGE_ERROR.value)
    return backend


def _build_index(args, config) -> int:
    downloads = build_index.read_download_counts(args.DOWNLOADS)
    names = build_index.select_packages(downloads, min_downloads=args.MIN_DOWNLOADS, top=args.TOP)
    if args.MODULES:
        modules = build_index.read_module_lists(args.MODULES)
    else:
        modules = build_index.collect_modules(names, max_workers=config.search_max_workers)
    document = build_index.build_snapshot(names, downloads, modules)
    text = build_index.dump_snapshot(document)

    if not args.OUTPUT:
        print(text, end="")
    else:
        try:
            with open(args.OUTPUT, "w", encoding="utf-8") as fh:
                fh.write(text)
        except OSError as exc:
            logger.error("%s: %s", args.OUTPUT, exc)
            return ExitCodes.FILE_ERROR.value
    logger.info("Indexed %d of %d packages", len(document["packages"]), len(names))
    return ExitCodes.SUCCESS.value


def _setup_logging(args) -> None:
    level = args.LOG_LEVEL or ("WARNING" if args.QUIET else None)
    configure_logging(level)
    if args.LOG_FILE:
        add_file_handler(args.LOG_FILE)


def main(argv=None) -> int:
    """Main function of the program."""
    # pylint: disable=too-many-branches, too-many-return-statements
    args = parse_args(argv)
    _setup_logging(args)
    config = load_config(args.CONFIG)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action=args.COMMAND)
        )

    if args.COMMAND == "list-languages":
        _print_names(backend_names(), args.OUTPUT_FORMAT)
        return ExitCodes.SUCCESS.value
    if args.COMMAND == "build-index":
        return _build_index(args, config)

    backend = _select_backend(args, config)
    fmt = args.OUTPUT_FORMAT

    if args.COMMAND == "which-language":
        print(backend.descriptor.name)
    elif args.COMMAND == "add":
        if not args.PACKAGES and not args.GUESS:
            logger.error("add: no packages given (use --guess to add guessed packages)")
            return ExitCodes.USAGE_ERROR.value
        pkgs = dict(parse_package_token(token) for token in args.PACKAGES)
        commands.run_add(backend, config, pkgs, project_name=args.PROJECT_NAME, guess=args.GUESS)
    elif args.COMMAND == "remove":
        commands.run_remove(backend, config, args.PACKAGES)
    elif args.COMMAND == "lock":
        commands.run_lock(backend, config, force=args.FORCE)
    elif args.COMMAND == "install":
        commands.run_install(backend, config, force=args.FORCE)
    elif args.COMMAND == "list":
        _print_mapping(commands.run_list(backend, locked=args.ALL), fmt)
    elif args.COMMAND == "guess":
        _print_names(commands.run_guess(backend, include_declared=args.ALL), fmt)
    elif args.COMMAND == "search":
        results = commands.run_search(backend, args.QUERY)
        if fmt == "json":
            print(json.dumps([asdict(r) for r in results], indent=2))
        else:
            _print_table([(r.name, r.version, r.description) for r in results])
    elif args.COMMAND == "info":
        info = commands.run_info(backend, args.PACKAGE)
        if info is None:
            logger.error("no such package: %s", args.PACKAGE)
            return ExitCodes.FILE_ERROR.value
        if fmt == "json":
            print(json.dumps(asdict(info), indent=2))
        else:
            fields = asdict(info)
            fields["dependencies"] = ", ".join(info.dependencies)
            _print_table([(f"{key}:", str(value)) for key, value in fields.items() if value])
    elif args.COMMAND == "show-package-dir":
        print(commands.run_show_package_dir(backend))

    return ExitCodes.SUCCESS.value


if __name__ == "__main__":
    sys.exit(main())
