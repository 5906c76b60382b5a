import asyncio
import sys
from pathlib import Path

from zing.zing_config import VERSION, ConfigError, load_options
from zing.zing_debug import activate
from zing.zing_runtime import ScriptRunner
from zing.zing_ui import FileInterface, ReplInterface

USAGE = "usage: zing.py [-v | --version] [-d | --debug] [script]"


async def run_script_file(file_path: str, options):
    """Run a ZingTTP script file non-interactively."""
    p = Path(file_path)
    if not p.is_file():
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    runner = ScriptRunner(FileInterface(p), options=options)
    await runner.run()


async def run_repl(options):
    runner = ScriptRunner(ReplInterface(), options=options)
    await runner.run()


async def main(argv=None):
    """Run a script file when provided, otherwise start the interactive REPL."""
    args = sys.argv[1:] if argv is None else list(argv)
    script = None
    for arg in args:
        match arg:
            case "-v" | "--version":
                print(f"ZingTTP {VERSION}")
                return
            case "-d" | "--debug":
                activate()
            case _ if arg.startswith("-"):
                print(f"Error: unknown option: {arg}\n{USAGE}", file=sys.stderr)
                raise SystemExit(2)
            case _:
                script = arg

    try:
        options = load_options()
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(1)

    if script is not None:
        await run_script_file(script, options)
    else:
        await run_repl(options)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nExiting.")
