# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Command-line driver: expands the macros in one or more text files.

Lines of the form "#define NAME(args) body" and "#undef NAME" update
the session's definitions; every other line is expanded independently
and written to stdout. Each file is expanded in a fresh session.
"""
from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Iterator
from typing import TextIO

from tqdm import tqdm

from recmacro import __version__
from recmacro.config import ExpansionConfig, load_config
from recmacro.errors import (
    ConfigError,
    ExpansionError,
    ParseError,
    TokenError,
)
from recmacro.macros import macro_from_definition_string, macro_from_directive
from recmacro.preprocessor import Preprocessor
from recmacro.tokens import Identifier, spell, tokenize

log = logging.getLogger("recmacro")


def _logical_lines(fp: TextIO) -> Iterator[tuple[int, str]]:
    """
    Yield (line number, text) for each logical line in fp, joining lines
    that end with a backslash.
    """
    pending: list[str] = []
    start = 1
    for lineno, line in enumerate(fp, start=1):
        line = line.rstrip("\n")
        if not pending:
            start = lineno
        if line.endswith("\\"):
            pending.append(line[:-1])
            continue
        pending.append(line)
        yield (start, " ".join(pending))
        pending = []
    if pending:
        yield (start, " ".join(pending))


def _directive(preprocessor: Preprocessor, text: str, lineno: int) -> bool:
    """
    Apply a define or undef directive. Return False if `text` is not a
    directive.
    """
    tokens = tokenize(text, lineno)
    if len(tokens) < 2 or tokens[0].token != "#":
        return False
    keyword = tokens[1]
    if not isinstance(keyword, Identifier):
        return False

    if keyword.token == "define":
        preprocessor.define(macro_from_directive(tokens[2:]))
        return True
    if keyword.token == "undef":
        if len(tokens) != 3 or not isinstance(tokens[2], Identifier):
            raise ParseError(f"Malformed #undef on line {lineno}.")
        preprocessor.undefine(tokens[2].token)
        return True
    return False


def expand_file(
    fp: TextIO,
    preprocessor: Preprocessor,
    out: TextIO,
) -> None:
    """
    Expand every line of `fp` with `preprocessor`, writing the result to
    `out`.
    """
    for lineno, text in _logical_lines(fp):
        if text.lstrip().startswith("#") and _directive(
            preprocessor,
            text,
            lineno,
        ):
            continue
        out.write(spell(preprocessor.expand(tokenize(text, lineno))) + "\n")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="recmacro",
        description="Expand macros, including recursive macros built with "
        + "__save__/__restore__.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"recmacro {__version__}",
    )
    parser.add_argument(
        "files",
        metavar="FILE",
        nargs="+",
        help="text files to expand",
    )
    parser.add_argument(
        "-D",
        "--define",
        dest="defines",
        metavar="NAME=BODY",
        action="append",
        default=[],
        help="define a macro before expanding each file",
    )
    parser.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        help="TOML file with an [expansion] table",
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        metavar="N",
        help="maximum number of substitutions per line",
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        metavar="N",
        help="maximum number of nested invocations",
    )
    parser.add_argument(
        "--no-combinators",
        action="store_true",
        help="do not define the standard combinator library",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="enable debug logging",
    )
    parser.add_argument(
        "--progress",
        action="store_true",
        help="show a progress bar",
    )
    return parser


def _configure(args: argparse.Namespace) -> ExpansionConfig:
    """
    Combine the configuration file (if any) with command-line overrides.
    """
    config = load_config(args.config) if args.config else ExpansionConfig()
    overrides = {
        "max_steps": args.max_steps,
        "max_depth": args.max_depth,
    }
    for key, value in overrides.items():
        if value is not None:
            setattr(config, key, value)
    if args.no_combinators:
        config.combinators = False
    config.defines = config.defines + args.defines

    # Re-run validation on the merged settings
    return ExpansionConfig(
        max_steps=config.max_steps,
        max_depth=config.max_depth,
        combinators=config.combinators,
        defines=config.defines,
    )


def main(argv: list[str] | None = None, out: TextIO | None = None) -> int:
    args = _build_parser().parse_args(argv)
    out = out if out is not None else sys.stdout

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    try:
        config = _configure(args)
        for definition in config.defines:
            macro_from_definition_string(definition)
    except (ConfigError, ParseError, TokenError, OSError) as e:
        log.error(f"Invalid configuration: {e}")
        return 2

    status = 0
    for filename in tqdm(
        args.files,
        desc="Expanding",
        unit=" file",
        leave=False,
        disable=not args.progress,
    ):
        log.debug(f"Expanding {filename}")
        preprocessor = Preprocessor.from_config(config)
        try:
            with open(filename, encoding="utf-8") as fp:
                expand_file(fp, preprocessor, out)
        except (
            ExpansionError,
            ParseError,
            TokenError,
            OSError,
            UnicodeDecodeError,
        ) as e:
            log.error(f"{filename}: {e}")
            status = 1
    return status


if __name__ == "__main__":
    sys.exit(main())
