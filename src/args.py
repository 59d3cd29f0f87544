"""Argument parsing functionality for unipm."""

import argparse

from backends import backend_names


def build_parser():
    """Build the top-level parser with one subcommand per operation."""
    parser = argparse.ArgumentParser(
        prog="unipm",
        description="unipm - one interface for adding, removing, locking and installing dependencies",
        add_help=True,
    )

    parser.add_argument("-l", "--lang",
                        dest="LANG",
                        help="Language backend (default: detect from files). One of: "
                             + ", ".join(backend_names()),
                        action="store", type=str)
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML, YML, or JSON)",
                        action="store", type=str)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str.upper,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'])
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store", type=str)
    parser.add_argument("-q", "--quiet",
                        dest="QUIET",
                        help="Only log warnings and errors.",
                        action="store_true")
    parser.add_argument("-f", "--format",
                        dest="OUTPUT_FORMAT",
                        help="Output format for listings (default: table)",
                        action="store",
                        type=str.lower,
                        choices=['table', 'json'],
                        default='table')

    sub = parser.add_subparsers(dest="COMMAND", metavar="COMMAND")
    sub.required = True

    add = sub.add_parser("add", help="Add packages to the specfile")
    add.add_argument("PACKAGES", nargs="*", metavar="PACKAGE",
                     help="Package, optionally with a spec: 'name@spec' or 'name spec'")
    add.add_argument("-g", "--guess", dest="GUESS", action="store_true",
                     help="Also add packages guessed from the project's imports")
    add.add_argument("-n", "--name", dest="PROJECT_NAME", default="",
                     help="Project name used when creating a new specfile")

    remove = sub.add_parser("remove", help="Remove packages from the specfile")
    remove.add_argument("PACKAGES", nargs="+", metavar="PACKAGE")

    lock = sub.add_parser("lock", help="Update the lockfile from the specfile")
    lock.add_argument("--force", dest="FORCE", action="store_true",
                      help="Lock even if the specfile is unchanged")

    install = sub.add_parser("install", help="Install the locked packages")
    install.add_argument("--force", dest="FORCE", action="store_true",
                         help="Install even if the lockfile is unchanged")

    list_cmd = sub.add_parser("list", help="List declared packages")
    list_cmd.add_argument("-a", "--all", dest="ALL", action="store_true",
                          help="List every locked package instead")

    guess = sub.add_parser("guess", help="Guess packages from the project's imports")
    guess.add_argument("-a", "--all", dest="ALL", action="store_true",
                       help="Include packages already declared")

    search = sub.add_parser("search", help="Search the registry")
    search.add_argument("QUERY")

    info = sub.add_parser("info", help="Show registry metadata for a package")
    info.add_argument("PACKAGE")

    sub.add_parser("show-package-dir", help="Print the dependency install directory")
    sub.add_parser("which-language", help="Print the detected language backend")
    sub.add_parser("list-languages", help="List available language backends")

    build = sub.add_parser("build-index", help="Build a PyPI index snapshot for guessing and search")
    build.add_argument("--downloads", dest="DOWNLOADS", required=True,
                       help="Download counts: CSV with project and download_count columns, or JSON")
    build.add_argument("--modules", dest="MODULES",
                       help="JSON object of package name to module list (default: read PyPI wheels)")
    build.add_argument("--top", dest="TOP", type=int,
                       help="Only index the TOP most downloaded packages")
    build.add_argument("--min-downloads", dest="MIN_DOWNLOADS", type=int, default=0,
                       help="Skip packages with fewer downloads")
    build.add_argument("-o", "--output", dest="OUTPUT",
                       help="Write the snapshot here instead of stdout")

    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)
