#!/usr/bin/env python3
"""
Enigma Programming Language Interpreter
Usage: enigma <filename.enigma>
       enigma -e "<code>"
"""

import argparse
import logging
import os
import sys
from typing import Optional, TextIO

from diagnostics import get_formatter, ColorMode, set_color_mode, set_max_errors
from environment import Environment
from errors import LexError
from evaluator import Evaluator, MAX_LOOP_ITERATIONS
from lexer import tokenize
from objects import ErrorObject
from parser import parse
from source_map import SourceFile

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def run_source(source: str, path: str = "<input>", show_tokens: bool = False,
               show_ast: bool = False, max_iterations: int = MAX_LOOP_ITERATIONS,
               stdout: Optional[TextIO] = None, stderr: Optional[TextIO] = None) -> int:
    """Run Enigma source and return the process exit code"""
    stdout = stdout if stdout is not None else sys.stdout
    stderr = stderr if stderr is not None else sys.stderr
    source_file = SourceFile(path, source)
    formatter = get_formatter()
    formatter.reset_counts()

    try:
        if show_tokens:
            for token in tokenize(source, path):
                stdout.write(f"{token!r}\n")
            return EXIT_OK
        program, errors = parse(source, path)
    except LexError as e:
        formatter.emit_diagnostic(e.diagnostic, source_file, stderr)
        formatter.print_summary(stderr)
        return EXIT_FAILURE

    if errors:
        for error in errors:
            formatter.emit_diagnostic(error.diagnostic, source_file, stderr)
        formatter.print_summary(stderr)
        return EXIT_FAILURE

    if show_ast:
        stdout.write(f"{program}\n")
        return EXIT_OK

    evaluator = Evaluator(source=source_file, output=stdout, max_iterations=max_iterations)
    result = evaluator.evaluate_program(program, Environment())
    if isinstance(result, ErrorObject):
        formatter.emit_diagnostic(result.to_diagnostic(), source_file, stderr)
        formatter.print_summary(stderr)
        return EXIT_FAILURE
    return EXIT_OK


def run_file(filename: str, **options) -> int:
    """Run an Enigma program from a file"""
    if not os.path.exists(filename):
        sys.stderr.write(f"Error: File '{filename}' not found.\n")
        return EXIT_USAGE

    with open(filename, 'r', encoding='utf-8') as f:
        source = f.read()
    return run_source(source, filename, **options)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="enigma", description="Run Enigma programs")
    parser.add_argument("file", nargs="?", help="program to run")
    parser.add_argument("-e", "--eval", dest="code", help="evaluate CODE instead of a file")
    parser.add_argument("--tokens", action="store_true", help="print the token stream and exit")
    parser.add_argument("--ast", action="store_true", help="print the parsed program and exit")
    parser.add_argument("--color", choices=[mode.value for mode in ColorMode], default="auto",
                        help="colorize diagnostics (default: auto)")
    parser.add_argument("--max-iterations", type=int, default=MAX_LOOP_ITERATIONS,
                        help="loop iteration ceiling")
    parser.add_argument("--max-errors", type=int, default=20,
                        help="stop reporting after N errors")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    return parser


def main(argv=None) -> int:
    """Main entry point"""
    arg_parser = build_arg_parser()
    args = arg_parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    set_color_mode(ColorMode(args.color))
    set_max_errors(args.max_errors)

    if args.code is not None and args.file is not None:
        arg_parser.print_usage(sys.stderr)
        sys.stderr.write("enigma: error: give either a file or -e CODE, not both\n")
        return EXIT_USAGE
    if args.code is None and args.file is None:
        arg_parser.print_usage(sys.stderr)
        return EXIT_USAGE

    options = dict(show_tokens=args.tokens, show_ast=args.ast, max_iterations=args.max_iterations)
    if args.code is not None:
        return run_source(args.code, "<eval>", **options)
    return run_file(args.file, **options)


if __name__ == "__main__":
    sys.exit(main())
