#!/usr/bin/env python3
"""
Generate a question bank & study plan from the command line.

Uses the provider configured in .env (LLM_PROVIDER, GEMINI_API_KEY, ...).

Usage:
  cd backend
  python scripts/generate_plan.py --syllabus "Unit 1: Kinematics" paper_2023.pdf paper_2022.png
  python scripts/generate_plan.py --syllabus-file syllabus.txt papers/*.pdf --out plan.pdf --json plan.json
"""

import argparse
import asyncio
import logging
import sys
import os
from pathlib import Path

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from app.core.config import get_settings
from app.core.deps import build_generator, build_provider
from app.core.errors import StudyPlanError
from app.models.study_plan import UploadedDocument
from app.services.file_encoder import mime_type_for
from app.services.pdf import get_pdf_service


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Generate a study plan from past exam papers")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--syllabus", type=str, help="Syllabus text")
    source.add_argument("--syllabus-file", type=Path, help="File containing the syllabus text")
    parser.add_argument("papers", nargs="+", type=Path, help="Question papers (PDF, PNG, JPG)")
    parser.add_argument("--out", type=Path, default=Path("QuestionBank_StudyPlan.pdf"),
                        help="Where to write the PDF")
    parser.add_argument("--json", type=Path, default=None, help="Also write the plan as JSON")
    parser.add_argument("--provider", choices=["gemini", "openai", "relay"], default=None,
                        help="Override LLM_PROVIDER")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable INFO logging")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s - %(message)s",
    )

    syllabus = args.syllabus if args.syllabus is not None else args.syllabus_file.read_text()

    missing = [p for p in args.papers if not p.is_file()]
    if missing:
        print(f"Error: file not found: {missing[0]}")
        return 1

    documents = [UploadedDocument.from_path(p, mime_type_for(p.name)) for p in args.papers]

    settings = get_settings()
    provider = build_provider(settings, args.provider or settings.llm_provider)
    generator = build_generator(settings, provider)

    print(f"Analyzing {len(documents)} paper(s) with {provider.name}...")
    try:
        plan = asyncio.run(generator.generate(syllabus, documents))
    except StudyPlanError as e:
        print(f"Error: {e.user_message}")
        logging.getLogger(__name__).debug("Generation failed", exc_info=True)
        return 1

    args.out.write_bytes(get_pdf_service().generate_study_plan_pdf(plan))
    if args.json:
        args.json.write_text(plan.model_dump_json(by_alias=True, indent=2))

    print(f"\nSubject:   {plan.subject or 'Not detected'}")
    print(f"Questions: {len(plan.extracted_questions)}")
    print(f"Modules:   {len(plan.modules)}")
    for module in plan.modules:
        print(f"  [{module.priority:6}] {module.topic_name} ({len(module.questions)} questions)")
    print(f"\nPDF written to {args.out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
