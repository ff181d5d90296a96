"""
Command line entry point: print the CFG of a source file as JSON.

    linecfg path/to/file.kt
    linecfg script.txt --lang python --view tree
    cat main.go | linecfg - --lang go --view calls
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from .exports import build_call_graph, build_cfg_tree
from .graph_assembler import build_control_flow_graph
from .languages import EXTENSION_TO_LANGUAGE, SUPPORTED_LANGUAGES
from .layout import calculate_node_positions

logger = logging.getLogger(__name__)

# Override with LINECFG_MAX_FILE_SIZE
DEFAULT_MAX_FILE_SIZE = 5_000_000  # 5MB
MAX_FILE_SIZE = int(os.environ.get("LINECFG_MAX_FILE_SIZE", DEFAULT_MAX_FILE_SIZE))

VIEWS = ("graph", "tree", "calls", "layout")


class SourceTooLargeError(Exception):
    """Raised when an input exceeds MAX_FILE_SIZE."""

    def __init__(self, source_name: str, size: int, limit: int):
        self.source_name = source_name
        self.size = size
        self.limit = limit
        super().__init__(
            f"{source_name} is {size:,} bytes, exceeds limit of {limit:,} bytes. "
            f"Set LINECFG_MAX_FILE_SIZE environment variable to increase limit."
        )


def detect_language(path: str) -> str | None:
    return EXTENSION_TO_LANGUAGE.get(Path(path).suffix.lower())


def read_source(path: str, limit: int = MAX_FILE_SIZE) -> str:
    """Read ``path`` (or stdin for '-'), enforcing the size limit."""
    if path == "-":
        text = sys.stdin.read()
        size = len(text.encode("utf-8"))
        if size > limit:
            raise SourceTooLargeError("<stdin>", size, limit)
        return text

    file_path = Path(path)
    size = file_path.stat().st_size
    if size > limit:
        raise SourceTooLargeError(str(file_path), size, limit)
    return file_path.read_text(encoding="utf-8", errors="replace")


def render(code: str, language: str, view: str) -> dict:
    cfg = build_control_flow_graph(code, language)
    if view == "tree":
        tree = build_cfg_tree(cfg)
        return tree.to_dict() if tree is not None else {}
    if view == "calls":
        return {name: node.to_dict() for name, node in build_call_graph(cfg).items()}
    if view == "layout":
        return {node_id: pos.to_dict() for node_id, pos in calculate_node_positions(cfg).items()}
    return cfg.to_dict()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="linecfg",
        description="Build a heuristic control flow graph from source code",
    )
    parser.add_argument("path", help="Source file, or '-' to read stdin")
    parser.add_argument(
        "--lang",
        "-l",
        choices=SUPPORTED_LANGUAGES,
        help="Language of the source (default: from file extension)",
    )
    parser.add_argument("--view", choices=VIEWS, default="graph", help="What to print (default: graph)")
    parser.add_argument("--indent", type=int, default=2, help="JSON indentation (default: 2)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log heuristic fallbacks")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    language = args.lang or (detect_language(args.path) if args.path != "-" else None)
    if language is None:
        parser.error(f"cannot infer language of {args.path}, pass --lang")

    try:
        code = read_source(args.path, MAX_FILE_SIZE)
    except SourceTooLargeError as e:
        logger.warning(str(e))
        return 1
    except OSError as e:
        parser.error(f"cannot read {args.path}: {e}")

    print(json.dumps(render(code, language, args.view), indent=args.indent))
    return 0


if __name__ == "__main__":
    sys.exit(main())
