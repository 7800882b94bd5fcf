"""
Console entry point of SheetScan.
Reads one answer sheet photo, prints the recognition, and optionally grades
it, saves a diagnostic overlay and appends a CSV report row.
"""

import argparse
import json
import sys
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

from sheetscan.core import OMRRecognizer, GradeManager, get_template_layout
from sheetscan.core.overlay import draw_overlay
from sheetscan.utils import app_logger, FileHandler, OMRUtils
from sheetscan.workers import RecognitionWorker

DEFAULT_CONFIG_PATH = Path("config/app_config.json")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sheetscan", description="Read an OMR answer sheet from a photo.")
    parser.add_argument("image", type=Path, help="Photo of the answer sheet")
    parser.add_argument("-q", "--questions", type=int, required=True, help="Number of questions (1-100)")
    parser.add_argument("-c", "--choices", type=int, default=4, help="Choices per question (2-8)")
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="App config JSON")
    parser.add_argument("--key", type=Path, help="Answer key JSON: {\"<exam>\": \"ABCD...\"}")
    parser.add_argument("--exam", default="", help="Exam name inside the key file")
    parser.add_argument("--overlay", type=Path, help="Directory for the diagnostic overlay PNG")
    parser.add_argument("--csv-dir", type=Path, help="Directory of the CSV summary to append to")
    parser.add_argument("--json", action="store_true", help="Print the full result as JSON")
    return parser


def load_app_config(path: Path) -> Dict[str, Any]:
    if not path.exists():
        app_logger.warning(f"Config not found ({path}), using defaults.")
        return {}
    return FileHandler.load_config(path)


def run(args: argparse.Namespace) -> int:
    config = load_app_config(args.config)
    recognizer = OMRRecognizer(config)

    outcome: Dict[str, Any] = {}

    def on_done(path, result, error):
        outcome.update(path=path, result=result, error=error)

    worker = RecognitionWorker(args.image, args.questions, args.choices, recognizer, on_done)
    worker.start()
    worker.join()

    if outcome.get('error'):
        app_logger.error(f"Recognition failed: {outcome['error']}")
        return 1
    result = outcome['result']

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        app_logger.info(f"Student ID: {result.student_id or '-'}")
        app_logger.info(f"Answers:    {' '.join(a or '-' for a in result.answers)}")

    for message in OMRUtils.describe_issues(result):
        app_logger.warning(message)

    if args.overlay:
        vis_cfg = config.get('ALGORITHM_CONFIG', {}).get('visualization', {})
        image = FileHandler.load_image(args.image)
        overlay = draw_overlay(image, result, get_template_layout(args.questions), args.choices, vis_cfg)
        FileHandler.save_result_image(f"{args.image.stem}_overlay", overlay, args.overlay)

    if args.key:
        key = FileHandler.load_key(args.key, args.exam)
        grader = GradeManager(key, config.get('GRADING', {}).get('choice_points'),
                              exam_name=args.exam, exam_date=date.today().isoformat())
        stats, _ = grader.grade_answers(result.answers)
        app_logger.info(f"Score: {stats['score']:g}/{stats['max_score']:g} "
                        f"({stats['percentage']}%) Grade: {stats['letter_grade']}")

        if args.csv_dir:
            allowed, reason = grader.can_save(result)
            if allowed:
                rows: List[Dict[str, Any]] = [grader.format_result(args.image.stem, result, stats)]
                FileHandler.save_results_to_csv(rows, args.csv_dir, args.exam)
            else:
                app_logger.warning(f"Not saved: {reason}")
    elif args.csv_dir:
        app_logger.warning("--csv-dir needs --key, nothing saved.")

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return run(args)
    except Exception as e:
        app_logger.critical(f"Fatal error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
