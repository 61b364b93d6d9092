import asyncio
import os
import sys
import traceback
from pathlib import Path

from rbparse.rbparse_parser import ParseError, Parser
from rbparse.rbparse_printer import Printer
from rbparse.rbparse_serialize import serialize

_FORMAT_FLAGS = {"--json": "json", "--yaml": "yaml"}


# A basic awaitable input prompt.
async def ainput(prompt: str) -> str:
    loop = asyncio.get_running_loop()
    sys.stdout.write(prompt)
    sys.stdout.flush()
    return await loop.run_in_executor(None, sys.stdin.readline)


def _render(tree, fmt, show_positions):
    if fmt:
        return serialize(tree, fmt=fmt).rstrip("\n")
    return Printer().pformat(tree, show_positions=show_positions, show_comments=True)


def _split_args(argv):
    """Returns (output format or None, show positions, positional args)."""
    fmt = None
    show_positions = False
    rest = []
    for arg in argv:
        if arg in _FORMAT_FLAGS:
            fmt = _FORMAT_FLAGS[arg]
        elif arg == "--positions":
            show_positions = True
        else:
            rest.append(arg)
    return fmt, show_positions, rest


async def run_script_file(file_path: str, fmt=None, show_positions=False):
    """Parse a source file non-interactively and exit with appropriate status."""
    p = Path(file_path)
    try:
        source = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    try:
        tree = Parser().parse(source)
    except ParseError as e:
        print(e.format_error(), file=sys.stderr)
        raise SystemExit(1)
    print(_render(tree, fmt, show_positions))


async def main():
    """Parse a file when provided, otherwise start the interactive REPL."""
    fmt, show_positions, rest = _split_args(sys.argv[1:])
    if rest:
        arg = rest[0]
        # Treat the first non-flag argument as a file; run_script_file handles missing files
        if not arg.startswith("-"):
            await run_script_file(arg, fmt, show_positions)
            return

    print("rbparse REPL v0.1")
    print("Type 'exit' or press Ctrl+D to quit.")

    parser = Parser()

    # REPL Loop
    while True:
        try:
            raw = await ainput(">> ")
            if raw == "":
                raise EOFError
            line = raw.strip()

            if not line:
                continue
            if line == "exit":
                break

            try:
                tree = parser.parse(line)
            except ParseError as e:
                # Pretty, location-aware message
                print(e.format_error(), file=sys.stderr)
                continue

            print(_render(tree, fmt, show_positions))

        except EOFError:
            print("\nExiting.")
            break
        except Exception as e:
            if os.environ.get("RBPARSE_DEBUG"):
                traceback.print_exc()
            print(f"Error: {e}", file=sys.stderr)


def cli():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nExiting.")


if __name__ == "__main__":
    cli()
