#!/usr/bin/env python3
"""Pagesmith - turns a natural-language requirement into a Next.js project.

Usage:
    python main.py synthesize --prompt "add a counter with increment and decrement"
    python main.py synthesize --prompt "..." --output ./my-app      # write files here
    python main.py synthesize --prompt "..." --no-build             # skip build/repair
    python main.py synthesize --prompt "..." --dry-run              # plan only
    python main.py synthesize --prompt "..." --verbose              # show repair history
"""

import argparse
import logging
import sys

from core.errors import GenerationError, PlanningError, RunCancelled
from core.orchestrator import Orchestrator
from utils.folder_naming import get_output_dir


def cmd_synthesize(args):
    """Run the full synthesis pipeline."""
    orchestrator = Orchestrator()

    if args.dry_run:
        state = orchestrator.create_state(args.prompt)
        orchestrator.compile_requirements(state)
        orchestrator.plan(state)
        print(state.requirements.render())
        print(f"Tasks ({len(state.tasks)}):")
        for t in state.tasks:
            deps = f" (after {', '.join(sorted(t.dependencies))})" if t.dependencies else ""
            print(f"  {t.id}: {t.name}{deps}")
            for path in t.files:
                print(f"      {path}")
        return 0

    output_dir = args.output or get_output_dir(args.prompt)
    result = orchestrator.synthesize(args.prompt, build=not args.no_build, output_dir=output_dir)

    print(f"\nOutput:   {output_dir}")
    print(f"Status:   {'ok' if result.ok else 'needs attention'}")
    print("\nTasks:")
    for t in result.tasks:
        print(f"  [{t.status}] {t.id}: {t.name}")
    print(f"\nGenerated {len(result.files)} file(s):")
    for path in result.files:
        print(f"  {path}")

    if result.feedback:
        print("\nFeedback:")
        print(result.feedback)
    return 0 if result.ok else 2


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="pagesmith",
        description="Requirement-to-Next.js synthesis pipeline",
    )
    subparsers = parser.add_subparsers(dest="command")

    synth_parser = subparsers.add_parser("synthesize", help="Generate a project from a requirement")
    synth_parser.add_argument("--prompt", required=True, help="Natural language requirement")
    synth_parser.add_argument("--output", help="Output directory (default: generated/<name>)")
    synth_parser.add_argument("--no-build", action="store_true",
                              help="Skip the build and repair loop")
    synth_parser.add_argument("--dry-run", action="store_true",
                              help="Compile requirements and plan only")
    synth_parser.add_argument("--verbose", action="store_true",
                              help="Log each pipeline step")

    args = parser.parse_args(argv)

    if args.command != "synthesize":
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    try:
        return cmd_synthesize(args)
    except PlanningError as e:
        print(f"Planning failed: {e}", file=sys.stderr)
        return 1
    except GenerationError as e:
        print(f"Generation failed: {e}", file=sys.stderr)
        return 1
    except RunCancelled as e:
        print(f"Cancelled: {e}", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
