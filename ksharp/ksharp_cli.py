import asyncio
import sys
from pathlib import Path

from ksharp.ksharp_runtime import ScriptRunner
from ksharp.ksharp_serialize import serialize

USAGE = "Usage: ksharp [--dump-ast[=yaml|json]] [script]"


# A basic awaitable input prompt.
async def ainput(prompt: str) -> str:
    loop = asyncio.get_running_loop()
    sys.stdout.write(prompt)
    sys.stdout.flush()
    return await loop.run_in_executor(None, sys.stdin.readline)


async def run_script_file(file_path: str) -> int:
    """Run a K# script file non-interactively and return the process exit status."""
    runner = ScriptRunner()
    try:
        source = Path(file_path).read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        return 66
    result = await runner.handle_script(source)
    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
    return result.exit_code


def dump_ast(file_path: str, fmt: str) -> int:
    """Print the parsed program as YAML or JSON without running it."""
    runner = ScriptRunner(load_natives=False)
    try:
        source = Path(file_path).read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        return 66
    statements = runner.parse(source)
    if runner.reporter.had_error:
        for diagnostic in runner.reporter.diagnostics:
            print(diagnostic.format(), file=sys.stderr)
        return 65
    print(serialize(statements, fmt=fmt), end="")
    return 0


async def repl() -> int:
    print("K# REPL v0.1")
    print("Enter an empty line or press Ctrl+D to quit.")

    runner = ScriptRunner()
    while True:
        raw = await ainput("> ")
        line = raw.rstrip("\r\n")
        # EOF reads as "", a blank line as "\n"; both end the session.
        if not line:
            break
        result = await runner.handle_script(line, echo=True)
        if result.status == 'error':
            print(result.format_error(), file=sys.stderr)
    return 0


def parse_args(argv):
    """Returns (script, dump_format) or raises ValueError on bad usage."""
    script = None
    dump_format = None
    for arg in argv:
        if arg == "--dump-ast":
            dump_format = "yaml"
        elif arg.startswith("--dump-ast="):
            dump_format = arg.split("=", 1)[1]
            if dump_format not in ("yaml", "json"):
                raise ValueError(arg)
        elif arg.startswith("-"):
            raise ValueError(arg)
        elif script is None:
            script = arg
        else:
            raise ValueError(arg)
    if dump_format is not None and script is None:
        raise ValueError("--dump-ast")
    return script, dump_format


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    try:
        script, dump_format = parse_args(argv)
    except ValueError:
        print(USAGE, file=sys.stderr)
        return 64

    if dump_format is not None:
        return dump_ast(script, dump_format)
    try:
        if script is not None:
            return asyncio.run(run_script_file(script))
        return asyncio.run(repl())
    except KeyboardInterrupt:
        print("\nExiting.")
        return 130


def entry_point():
    # ScriptExit (from a script's `exit`) is a SystemExit and passes straight through.
    sys.exit(main())
