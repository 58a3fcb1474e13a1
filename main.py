"""
Tiny Language - Main Entry Point
Variables, integer arithmetic and assignment, parsed with a PEG grammar
and run by a tree-walking interpreter
"""

import sys
import argparse
import atexit
import logging
import os
from typing import List, Optional

# Readline support for history and auto-completion
try:
  import readline
  READLINE_AVAILABLE = True
except ImportError:
  READLINE_AVAILABLE = False

from config import ConfigError, DEFAULT_CONFIG, TinyLangConfig, load_config
from error_handling import TinyErrorHandler
from interpreter import create_debug_interpreter, create_interpreter, run_programs_concurrently
from parsing import GRAMMAR_DESCRIPTION, create_debug_parser, create_parser, pretty_print_cst
from semantics import create_analyzer, pretty_print_ast

VERSION = "0.1.0"
HISTORY_FILE = "~/.tiny_lang_history"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logger = logging.getLogger(__name__)


def create_arg_parser() -> argparse.ArgumentParser:
  """Create command line argument parser"""
  parser = argparse.ArgumentParser(
      prog='tiny-lang',
      description='Tiny Language - variables and integer arithmetic',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  %(prog)s program.tl              # Run a program
  %(prog)s a.tl b.tl               # Run several programs concurrently
  %(prog)s -i                      # Interactive mode
  %(prog)s --parse program.tl      # Parse and show CST
  %(prog)s --analyze program.tl    # Parse, lower and show CST and AST
  %(prog)s --grammar               # Show the grammar
  %(prog)s --debug program.tl      # Run with debug logging
        """
  )

  parser.add_argument(
      'files',
      nargs='*',
      metavar='FILE',
      help='Tiny Language source files to execute'
  )

  parser.add_argument(
      '-i', '--interactive',
      action='store_true',
      help='Start interactive mode'
  )

  parser.add_argument(
      '--parse',
      action='store_true',
      help='Parse files and show the CST'
  )

  parser.add_argument(
      '--analyze',
      action='store_true',
      help='Parse and lower files, show CST and AST'
  )

  parser.add_argument(
      '--grammar',
      action='store_true',
      help='Show the language grammar'
  )

  parser.add_argument(
      '--credits',
      action='store_true',
      help='Show project credits'
  )

  parser.add_argument(
      '--debug',
      action='store_true',
      help='Enable debug logging for all stages'
  )

  parser.add_argument(
      '--config',
      metavar='PATH',
      help='INI configuration file with a [tinylang] section'
  )

  parser.add_argument(
      '--max-source-length',
      type=int,
      metavar='N',
      help='Reject sources longer than N characters (overrides the config file)'
  )

  parser.add_argument(
      '--timeout',
      type=float,
      metavar='SECONDS',
      help='Stop programs still running after SECONDS'
  )

  parser.add_argument(
      '--version',
      action='version',
      version=f'tiny-lang {VERSION}'
  )

  return parser


def setup_logging(debug: bool = False) -> None:
  logging.basicConfig(level=logging.DEBUG if debug else logging.WARNING, format=LOG_FORMAT)


def build_config(args: argparse.Namespace) -> TinyLangConfig:
  """Configuration from --config, then command line overrides"""
  config = load_config(args.config) if args.config else DEFAULT_CONFIG
  return config.with_overrides(max_source_length=args.max_source_length)


def read_source(script_path: str) -> Optional[str]:
  """Read a source file, printing a hint and returning None on failure"""
  try:
    with open(script_path, 'r', encoding='utf-8') as f:
      return f.read()
  except FileNotFoundError:
    print(f"Error: Source file '{script_path}' not found")
    print(f"  Hint: Check the file path and make sure the file exists")
  except PermissionError:
    print(f"Error: Permission denied reading '{script_path}'")
    print(f"  Hint: Make sure you have read permissions for this file")
  except IsADirectoryError:
    print(f"Error: '{script_path}' is a directory")
  except UnicodeDecodeError as e:
    print(f"Error: Cannot decode file '{script_path}': {e}")
    print(f"  Hint: Make sure the file is a text file with UTF-8 encoding")
  return None


def parse_file(script_path: str, config: TinyLangConfig, debug: bool = False) -> bool:
  """Parse a source file and show the CST"""
  source = read_source(script_path)
  if source is None:
    return False

  parser = create_debug_parser(config) if debug else create_parser(config=config)
  print(f"Parsing {script_path}...")
  cst = parser.parse_string(source, script_path)
  if not cst.ok:
    print(TinyErrorHandler(source, script_path).format(cst.error), end='')
    return False

  print(f"\nParsed {len(cst.value.children)} statements:")
  print("=" * 50)
  print(pretty_print_cst(cst.value), end='')
  return True


def analyze_file(script_path: str, config: TinyLangConfig, debug: bool = False) -> bool:
  """Parse and lower a source file and show CST and AST"""
  source = read_source(script_path)
  if source is None:
    return False

  parser = create_debug_parser(config) if debug else create_parser(config=config)
  analyzer = create_analyzer(debug, config)
  handler = TinyErrorHandler(source, script_path)

  print(f"Parsing and analyzing {script_path}...")
  cst = parser.parse_string(source, script_path)
  if not cst.ok:
    print(handler.format(cst.error), end='')
    return False

  print("\nCST:")
  print(pretty_print_cst(cst.value), end='')

  program = analyzer.analyze(cst.value)
  if not program.ok:
    program.error.filename = script_path
    print(handler.format(program.error), end='')
    return False

  print("\nAST:")
  print(pretty_print_ast(program.value))
  return True


def run_script_files(script_paths: List[str], config: TinyLangConfig, debug: bool = False,
                     timeout: Optional[float] = None) -> bool:
  """Run source files, each with its own environment; True if all succeeded"""
  all_ok = True
  programs = []
  for path in script_paths:
    source = read_source(path)
    if source is None:
      all_ok = False
    else:
      programs.append((path, source))

  sources = dict(programs)
  logger.debug("Running %d programs", len(programs))
  reports = run_programs_concurrently(programs, config, timeout=timeout, debug=debug)
  show_headers = len(script_paths) > 1

  for report in reports:
    if show_headers:
      print(f"==> {report.name} <==")

    for outcome in report.outcomes:
      print(outcome)

    if report.ok:
      print("\nExecution completed.")
    else:
      all_ok = False
      print()
      if isinstance(report.error, (TimeoutError, RecursionError)):
        print(f"Error: {report.error}")
      else:
        print(TinyErrorHandler(sources[report.name], report.name).format(report.error), end='')

    if report.variables:
      print("Variables:")
      for name, value in sorted(report.variables.items()):
        print(f"  {name} = {value}")
    if show_headers:
      print()

  return all_ok


def setup_readline(interpreter) -> None:
  """Setup readline with history and auto-completion"""
  if not READLINE_AVAILABLE:
    return

  history_file = os.path.expanduser(HISTORY_FILE)
  try:
    readline.read_history_file(history_file)
  except OSError:
    pass  # First time, no history yet

  readline.set_history_length(1000)

  commands = [":parse", ":analyze", ":env", ":reset", ":help", "exit"]

  def completer(text, state):
    options = [cmd for cmd in commands + sorted(interpreter.variables) if cmd.startswith(text)]
    if state < len(options):
      return options[state]
    return None

  readline.set_completer(completer)
  readline.parse_and_bind("tab: complete")

  atexit.register(readline.write_history_file, history_file)


def _complete_statement(code: str) -> str:
  """Allow the final ';' to be left out at the prompt"""
  code = code.strip()
  return code if code.endswith(';') else code + ';'


def show_repl_help() -> None:
  print("REPL Commands:")
  print("  :parse <src>      - Show parsed CST")
  print("  :analyze <src>    - Show lowered AST")
  print("  :env              - Show current variables")
  print("  :reset            - Forget all variables")
  print("  :help             - Show this help")
  print("  exit              - Exit REPL")
  print()
  print("Language:")
  print("  x = 5;            - Assignment")
  print("  x * (y + 2);      - Expression, prints its value")
  print("  The trailing ';' may be omitted at the prompt")


def run_interactive_mode(config: TinyLangConfig, debug: bool = False) -> None:
  """Run the Tiny Language in interactive mode with a persistent environment"""
  print(f"Tiny Language {VERSION} - Interactive Mode")
  print("Type 'exit' to quit, ':help' for commands")
  if debug:
    print("Debug mode enabled")
  print()

  parser = create_debug_parser(config) if debug else create_parser(config=config)
  analyzer = create_analyzer(debug, config)
  interpreter = create_debug_interpreter(config) if debug else create_interpreter(config=config)
  setup_readline(interpreter)

  while True:
    try:
      code = input("tiny> ")
    except (KeyboardInterrupt, EOFError):
      print("\nGoodbye!")
      break

    stripped = code.strip()
    if stripped in ("exit", "quit"):
      break
    if not stripped:
      continue

    if stripped.startswith(":parse "):
      source = _complete_statement(stripped[len(":parse "):])
      cst = parser.parse_string(source, "<repl>")
      if cst.ok:
        print(pretty_print_cst(cst.value), end='')
      else:
        print(TinyErrorHandler(source, "<repl>").format(cst.error), end='')
      continue

    if stripped.startswith(":analyze "):
      source = _complete_statement(stripped[len(":analyze "):])
      cst = parser.parse_string(source, "<repl>")
      program = analyzer.analyze(cst.value) if cst.ok else cst
      if program.ok:
        print(pretty_print_ast(program.value))
      else:
        print(TinyErrorHandler(source, "<repl>").format(program.error), end='')
      continue

    if stripped == ":env":
      variables = interpreter.variables
      if variables:
        for name, value in sorted(variables.items()):
          print(f"  {name} = {value}")
      else:
        print("  (no variables)")
      continue

    if stripped == ":reset":
      interpreter.reset()
      print("Environment cleared")
      continue

    if stripped == ":help":
      show_repl_help()
      continue

    source = _complete_statement(stripped)
    result = interpreter.interpret_source(source, "<repl>")
    if result.ok:
      for outcome in result.value:
        print(outcome)
    else:
      print(TinyErrorHandler(source, "<repl>").format(result.error), end='')


def show_grammar() -> None:
  print("Tiny Language Grammar:")
  for line in GRAMMAR_DESCRIPTION.splitlines():
    print(f"    {line}")
  print()
  print("Whitespace is allowed between tokens.")
  print("'+'/'-' bind looser than '*'/'/'; both tiers are left-associative.")


def show_credits() -> None:
  print("Tiny Language Parser")
  print()
  print("Features:")
  print("  - Parser for a simple language with variables and arithmetic")
  print("  - AST generation")
  print("  - Interpreter with variable storage")
  print("  - Error handling")


def show_language_info() -> None:
  """Show Tiny Language information"""
  print("Tiny Language")
  print("=" * 50)
  print("A minimal expression language with:")
  print("• Lowercase identifiers and integer literals")
  print("• Assignment and the four arithmetic operators")
  print("• Parentheses and conventional precedence")
  print()


def main(argv: Optional[List[str]] = None) -> None:
  """Main entry point for the Tiny Language"""
  arg_list = sys.argv[1:] if argv is None else argv
  arg_parser = create_arg_parser()
  args = arg_parser.parse_args(arg_list)
  setup_logging(args.debug)

  try:
    config = build_config(args)
  except ConfigError as e:
    print(f"Configuration error: {e}")
    sys.exit(1)

  # No arguments - show info and start interactive mode
  if not arg_list:
    show_language_info()
    print("Use 'tiny-lang --help' for command line options")
    print()
    run_interactive_mode(config)
    return

  if args.grammar:
    show_grammar()
  elif args.credits:
    show_credits()
  elif args.files:
    if args.parse:
      ok = all([parse_file(path, config, args.debug) for path in args.files])
    elif args.analyze:
      ok = all([analyze_file(path, config, args.debug) for path in args.files])
    else:
      ok = run_script_files(args.files, config, args.debug, args.timeout)
    if not ok:
      sys.exit(1)
  elif args.interactive:
    run_interactive_mode(config, debug=args.debug)
  else:
    arg_parser.print_help()
    print()
    show_language_info()


if __name__ == "__main__":
  main()
