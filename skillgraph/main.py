from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from dotenv import load_dotenv
from pydantic import ValidationError

from skillgraph.logger import setup_logging
from skillgraph.pipeline import PipelineConfig, SkillGraphPipeline
from skillgraph.settings import SkillGraphSettings
from skillgraph.skills.catalog import (
    load_feedback_records,
    load_plan_payload,
    load_raw_records,
)
from skillgraph.tools.plan_schema import WorkflowPlanError


def parse_locks(values: Sequence[str]) -> Dict[str, str]:
    """Parse ``STEP=SKILL`` pairs from the command line."""
    locks: Dict[str, str] = {}
    for value in values:
        step_id, sep, skill_id = value.partition("=")
        if not sep or not step_id.strip() or not skill_id.strip():
            raise ValueError(f"Invalid --lock value {value!r}, expected STEP=SKILL")
        locks[step_id.strip()] = skill_id.strip()
    return locks


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="SkillGraph - Match a workflow plan against a skill catalog"
    )
    parser.add_argument("catalog_file", help="JSON file with raw skill records")
    parser.add_argument("plan_file", help="JSON file with the workflow plan")
    parser.add_argument(
        "--output",
        default=None,
        help="Directory for the HTML report output",
    )
    parser.add_argument(
        "--title",
        default=None,
        help="Title of the generated report",
    )
    parser.add_argument(
        "--feedback",
        default=None,
        help="JSON file with historical feedback votes",
    )
    parser.add_argument(
        "--lock",
        action="append",
        default=[],
        metavar="STEP=SKILL",
        help="Force SKILL as the winner of STEP (repeatable)",
    )
    parser.add_argument(
        "--no-graph",
        dest="use_graph",
        action="store_false",
        default=None,
        help="Assemble without graph continuity edges",
    )
    parser.add_argument(
        "--no-report",
        dest="generate_report",
        action="store_false",
        default=None,
        help="Skip HTML report generation",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (defaults to SKILLGRAPH_LOG_LEVEL or INFO)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run the SkillGraph pipeline from the command line."""
    args = build_parser().parse_args(argv)

    load_dotenv()

    try:
        settings = SkillGraphSettings()
        setup_logging(args.log_level or settings.log_level)
        config = PipelineConfig.from_settings(
            settings,
            output_directory=args.output,
            report_title=args.title,
            use_graph=args.use_graph,
            generate_report=args.generate_report,
        )
        locks = parse_locks(args.lock)
        records = load_raw_records(args.catalog_file)
        plan_payload = load_plan_payload(args.plan_file)
        feedback = load_feedback_records(args.feedback) if args.feedback else []
    except (FileNotFoundError, ValueError, ValidationError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print("=" * 60)
    print("SkillGraph")
    print("=" * 60)
    print(f"Catalog: {args.catalog_file} ({len(records)} records)")
    print(f"Plan: {args.plan_file}")
    if config.generate_report:
        print(f"Output Directory: {config.output_directory}")
    print("=" * 60)
    print()

    pipeline = SkillGraphPipeline.from_env(config=config)
    try:
        result = pipeline.run(
            records,
            plan_payload,
            locked_skill_by_step_id=locks,
            feedback_entries=feedback,
        )
    except WorkflowPlanError as exc:
        print(f"Invalid workflow plan: {exc}", file=sys.stderr)
        return 1

    print(result.summary())
    print()

    if result.report_path:
        print("Open the report in your browser:")
        print(f"  file://{Path(result.report_path).absolute()}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
