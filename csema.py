#!/usr/bin/env python3
"""csema - type-check a C expression

Usage examples:
  ./csema.py -d 'int *p' -d 'long i' 'p + i'
  ./csema.py -d 'const int c' 'c = 1'
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from csema.ast_nodes import print_ast
from csema.compiler import Compiler
from csema.ir import dump
from csema.lexer import LexerError
from csema.parser import Parser, ParserError


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    ap = argparse.ArgumentParser(prog="csema", description="C expression semantic analyzer")
    ap.add_argument("expression", help="C expression to analyze")
    ap.add_argument("-d", "--declare", dest="declarations", action="append", default=[],
                    metavar="DECL", help="Declaration to bind first, e.g. 'int *p' (repeatable)")
    ap.add_argument("--max-depth", type=int, default=None, help="Maximum expression nesting depth")
    ap.add_argument("--ast", action="store_true", help="Print the untyped tree before analysis")
    ap.add_argument("-v", "--verbose", action="store_true", help="Log analysis steps to stderr")
    args = ap.parse_args(argv)

    if args.verbose:
        logging.basicConfig(stream=sys.stderr, level=logging.DEBUG, format="%(name)s: %(message)s")

    try:
        compiler = Compiler(max_depth=args.max_depth)
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    for decl in args.declarations:
        try:
            compiler.declare(decl)
        except (LexerError, ParserError) as e:
            print(f"Error: cannot declare '{decl}': {e}")
            return 1

    if args.ast:
        try:
            print(print_ast(Parser(compiler.get_tokens(args.expression), compiler.scope).parse()), end="")
        except (LexerError, ParserError) as e:
            print(f"Error: {e}")
            return 1

    result = compiler.analyze_code(args.expression)
    if result.expr is not None:
        print(dump(result.expr, compiler.scope), end="")
        print("type:", result.expr.ctype)
    for d in result.diagnostics:
        print(f"Error: {d}")
    for e in result.errors:
        print("Error:", e)
    return 0 if result.success else 1


if __name__ == "__main__":
    raise SystemExit(main())
