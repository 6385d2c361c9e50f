# Copyright 2026 Justin Cook
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Main entry point for the CV Builder CLI.
"""

import argparse
import asyncio
import json
import sys
import logging
from collections import deque
from pathlib import Path

from cv_builder.ai_client import AIClient, AIError
from cv_builder.capture import CaptureUnavailable, HtmlRenderTarget, ImageRenderTarget
from cv_builder.config import Settings, load_settings, set_ca_bundle_override
from cv_builder.drafts import DraftError, DraftStore, FileStorage
from cv_builder.export import ExportError, ExportOrchestrator, PageMode
from cv_builder.fit import FitEngine
from cv_builder.ingest import read_cv_file, read_image_as_data_url, read_job_description, read_text_file
from cv_builder.models import (
    DraftData,
    TEMPLATES,
    hydrate_cover_letter,
    hydrate_customisation,
    hydrate_cv_data,
)
from cv_builder.preview import CV_ELEMENT_ID, LETTER_ELEMENT_ID, render_cv_markup, render_letter_markup

logger = logging.getLogger(__name__)


class StatusLogHandler(logging.Handler):
    """
    Custom handler to store the last N logs for a scrolling status display.
    """
    def __init__(self, console, maxlen=5):
        super().__init__()
        self.console = console
        self.maxlen = maxlen
        self.logs = deque(maxlen=maxlen)
        self.live = None

    def emit(self, record):
        try:
            msg = self.format(record)
            self.logs.append(msg)
            if self.live:
                self.live.update(self.get_renderable())
        except Exception:
            self.handleError(record)

    def get_renderable(self):
        from rich.text import Text
        return Text("\n".join(self.logs), style="dim grey50")


def setup_logging(log_dir: Path, verbosity: int, quiet: bool = False, custom_handler: logging.Handler = None):
    """
    Configures logging:
    - File: <home>/logs/cv_builder.log (DEBUG)
    - Console: Default=INFO (status panel), -q=ERROR, -v=WARNING, -vv=INFO, -vvv=DEBUG
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    file_handler = logging.FileHandler(log_dir / "cv_builder.log")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
    root.addHandler(file_handler)

    if quiet:
        level = logging.ERROR
    elif verbosity == 1:
        level = logging.WARNING
    elif verbosity == 2:
        level = logging.INFO
    elif verbosity >= 3:
        level = logging.DEBUG
    else:
        level = logging.INFO

    handler = custom_handler or logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter('%(message)s'))
    root.addHandler(handler)

    if verbosity < 3:
        for noisy in ("urllib3", "PIL", "asyncio"):
            logging.getLogger(noisy).setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cv-builder", description="CV and cover letter builder")
    parser.add_argument("--home", help="Data directory for drafts, exports and logs (default: $CV_BUILDER_HOME or user_content)")
    parser.add_argument("--ai-url", help="AI gateway endpoint (default: $CV_BUILDER_AI_URL)")
    parser.add_argument("--ca-bundle", help="Path to a custom CA certificate bundle for HTTPS verification (proxy environments)")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase output verbosity (-v=WARNING, -vv=INFO, -vvv=DEBUG)")
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress status output (ERROR only)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("new", help="Start a fresh current draft")
    p.add_argument("--label", help="Draft label")

    p = sub.add_parser("show", help="Show the current draft")
    p.add_argument("--json", action="store_true", help="Print the full draft as JSON")

    p = sub.add_parser("edit", help="Edit the current draft")
    for name in ("name", "title", "email", "phone", "location", "summary", "linkedin", "github"):
        p.add_argument(f"--{name}")
    p.add_argument("--photo", help="Image file for the profile photo")
    p.add_argument("--skills", help="Comma-separated skills (replaces the list)")
    p.add_argument("--add-skill", action="append", default=[], help="Add one skill (repeatable)")
    p.add_argument("--remove-skill", action="append", default=[])
    p.add_argument("--add-experience", action="append", default=[], metavar="COMPANY|POSITION|START|END|DESCRIPTION")
    p.add_argument("--remove-experience", action="append", default=[], metavar="ID")
    p.add_argument("--add-education", action="append", default=[], metavar="INSTITUTION|DEGREE|FIELD|GRADE|START|END")
    p.add_argument("--remove-education", action="append", default=[], metavar="ID")
    p.add_argument("--in-progress", nargs=2, metavar=("ID", "on|off"), help="Toggle an education entry's in-progress flag")
    p.add_argument("--template", choices=TEMPLATES)
    p.add_argument("--primary-colour")
    p.add_argument("--sidebar-colour")
    p.add_argument("--text-colour")
    p.add_argument("--font")
    p.add_argument("--heading-font")
    p.add_argument("--font-size", type=float)
    p.add_argument("--job-description", help="URL or file with the target job description")
    p.add_argument("--letter-body", help="Text file with the cover letter body")
    p.add_argument("--job-title")
    p.add_argument("--signature-image")
    p.add_argument("--signature-text")
    p.add_argument("--label")

    p = sub.add_parser("history", help="Manage saved drafts")
    hist = p.add_subparsers(dest="history_command", required=True)
    hist.add_parser("list")
    hist.add_parser("save", help="Snapshot the current draft into history")
    h = hist.add_parser("load", help="Make a history entry the current draft")
    h.add_argument("id")
    h = hist.add_parser("rename")
    h.add_argument("id")
    h.add_argument("label")
    h = hist.add_parser("delete")
    h.add_argument("id")

    p = sub.add_parser("export-draft", help="Write a draft to a JSON file")
    p.add_argument("--id", help="History entry to export (default: current draft)")
    p.add_argument("--output-dir")

    p = sub.add_parser("import-draft", help="Import a draft JSON file into history")
    p.add_argument("file")

    p = sub.add_parser("fit", help="Compute the single-page display scale for the current CV")

    p = sub.add_parser("export", help="Export the current CV or cover letter")
    p.add_argument("format", choices=("pdf", "docx"))
    p.add_argument("--letter", action="store_true", help="Export the cover letter instead of the CV")
    p.add_argument("--single-page", action="store_true", help="Scale the CV down to fit one page")
    p.add_argument("--image", help="Use a pre-rendered PNG instead of rendering with Chromium")
    p.add_argument("--output-dir")

    p = sub.add_parser("ai", help="Ask the AI service for help")
    p.add_argument("action", choices=("polish", "ats", "cover-letter", "parse"))
    p.add_argument("--file", help="CV file to parse (for 'parse')")

    return parser


def _current_or_new(store: DraftStore) -> DraftData:
    draft = store.load_current()
    if draft:
        return draft
    logger.info("No current draft found; starting from defaults.")
    return DraftData(
        id="",
        label="",
        cv_data=hydrate_cv_data({}),
        customisation=hydrate_customisation({}),
        cover_letter=hydrate_cover_letter({}),
    )


def _save(store: DraftStore, draft: DraftData) -> DraftData:
    return store.save_current(
        draft.cv_data,
        draft.customisation,
        draft.cover_letter,
        job_description=draft.job_description,
        id=draft.id or None,
        label=draft.label or None,
    )


def _split(value: str, count: int) -> list:
    parts = [p.strip() for p in value.split("|")]
    return (parts + [""] * count)[:count]


def _cmd_new(args, settings: Settings, store: DraftStore):
    draft = store.save_current(
        hydrate_cv_data({}), hydrate_customisation({}), hydrate_cover_letter({}), label=args.label
    )
    logger.info(f"Started draft '{draft.label}' ({draft.id})")


def _cmd_show(args, settings: Settings, store: DraftStore):
    draft = store.load_current()
    if not draft:
        logger.info("No current draft. Run 'cv-builder new' to start one.")
        return
    if args.json:
        print(json.dumps(draft.to_dict(), indent=2))
        return
    cv = draft.cv_data
    logger.info(f"Draft '{draft.label}' ({draft.id}) saved {draft.saved_at}")
    logger.info(f"    > {cv.personal.full_name or '(no name)'} | {cv.personal.title}")
    for exp in cv.experiences:
        logger.info(f"    > Experience {exp.id}: {exp.position} at {exp.company}")
    for edu in cv.education:
        logger.info(f"    > Education {edu.id}: {edu.degree} at {edu.institution} ({edu.end_date or 'no end date'})")
    if cv.skills:
        logger.info(f"    > Skills: {', '.join(cv.skills)}")
    logger.info(f"    > Template: {draft.customisation.template}")
    if draft.cover_letter.over_word_limit():
        logger.warning(f"    [!] Cover letter is {draft.cover_letter.word_count()} words (limit 500)")


def _cmd_edit(args, settings: Settings, store: DraftStore):
    draft = _current_or_new(store)
    cv, custom, letter = draft.cv_data, draft.customisation, draft.cover_letter

    personal_fields = {
        "name": "full_name", "title": "title", "email": "email", "phone": "phone",
        "location": "location", "summary": "summary", "linkedin": "linkedin", "github": "github",
    }
    for arg, attr in personal_fields.items():
        value = getattr(args, arg)
        if value is not None:
            setattr(cv.personal, attr, value)
    if args.photo:
        cv.personal.photo = read_image_as_data_url(args.photo)

    if args.skills is not None:
        cv.set_skills_from_text(args.skills)
    for skill in args.add_skill:
        if not cv.add_skill(skill):
            logger.info(f"    > Skill '{skill}' already present")
    for skill in args.remove_skill:
        cv.remove_skill(skill)

    for value in args.add_experience:
        company, position, start, end, description = _split(value, 5)
        entry = cv.add_experience(company=company, position=position, start_date=start, end_date=end,
                                  description=description.replace("\\n", "\n"))
        logger.info(f"    > Added experience {entry.id}")
    for entry_id in args.remove_experience:
        cv.remove_experience(entry_id)

    for value in args.add_education:
        institution, degree, field, grade, start, end = _split(value, 6)
        entry = cv.add_education(institution=institution, degree=degree, field=field, grade=grade,
                                 start_date=start, end_date=end)
        logger.info(f"    > Added education {entry.id}")
    for entry_id in args.remove_education:
        cv.remove_education(entry_id)
    if args.in_progress:
        entry_id, flag = args.in_progress
        entry = cv.find_education(entry_id)
        if entry is None:
            logger.error(f"No education entry with id {entry_id}")
            sys.exit(1)
        entry.set_in_progress(flag.lower() in ("on", "true", "yes", "1"))

    custom_fields = {
        "template": "template", "primary_colour": "primary_colour", "sidebar_colour": "sidebar_colour",
        "text_colour": "text_colour", "font": "font_family", "heading_font": "heading_font", "font_size": "font_size",
    }
    for arg, attr in custom_fields.items():
        value = getattr(args, arg)
        if value is not None:
            setattr(custom, attr, value)
    for problem in custom.validate():
        logger.warning(f"    [!] {problem}")

    if args.job_description:
        text = read_job_description(args.job_description)
        if not text:
            logger.error("Could not extract text from the job description.")
            sys.exit(1)
        draft.job_description = text
    if args.letter_body:
        letter.body = read_text_file(args.letter_body)
        if letter.over_word_limit():
            logger.warning(f"    [!] Cover letter is {letter.word_count()} words (limit 500)")
    if args.job_title is not None:
        letter.job_title = args.job_title
    if args.signature_image:
        letter.signature_image = read_image_as_data_url(args.signature_image)
    if args.signature_text is not None:
        letter.signature_text = args.signature_text
    if args.label:
        draft.label = args.label

    saved = _save(store, draft)
    logger.info(f"Saved draft '{saved.label}' ({saved.id})")


def _cmd_history(args, settings: Settings, store: DraftStore):
    cmd = args.history_command
    if cmd == "list":
        drafts = store.load_all_history()
        if not drafts:
            logger.info("No saved drafts yet. Run 'cv-builder history save' to create your first snapshot.")
        for d in drafts:
            logger.info(f"{d.id}  {d.label}  ({d.saved_at})")
    elif cmd == "save":
        current = store.load_current()
        if not current:
            logger.error("No current draft to save.")
            sys.exit(1)
        drafts = store.save_to_history(_save(store, current))
        logger.info(f"Draft saved. {len(drafts)} draft(s) in history.")
    elif cmd == "load":
        draft = store.find_in_history(args.id)
        if not draft:
            logger.error(f"No draft with id {args.id}")
            sys.exit(1)
        _save(store, draft)
        logger.info(f"Loaded draft '{draft.label}'")
    elif cmd == "rename":
        store.rename_in_history(args.id, args.label)
        logger.info(f"Renamed draft {args.id} to '{args.label}'")
    elif cmd == "delete":
        store.delete_from_history(args.id)
        logger.info("Draft deleted.")


def _cmd_export_draft(args, settings: Settings, store: DraftStore):
    draft = store.find_in_history(args.id) if args.id else store.load_current()
    if not draft:
        logger.error("No draft to export.")
        sys.exit(1)
    store.export_as_file(draft, args.output_dir or settings.exports_dir)


def _cmd_import_draft(args, settings: Settings, store: DraftStore):
    try:
        draft = asyncio.run(store.import_from_file(args.file))
    except DraftError as e:
        logger.error(f"Failed to import draft: {e}")
        sys.exit(1)
    store.save_to_history(draft)
    logger.info(f"Draft '{draft.label}' imported successfully ({draft.id}).")


def _fit_scale(draft: DraftData, settings: Settings) -> float:
    engine = FitEngine(min_scale=settings.fit_min_scale)
    engine.set_single_page(True)
    request = engine.request_measurement()
    markup = render_cv_markup(draft.cv_data, draft.customisation, compact=request.compact)
    height = HtmlRenderTarget(markup, f"#{CV_ELEMENT_ID}").measure_height()
    result = engine.report_height(height, compact=request.compact)
    logger.info(f"    > Content height {height:.0f}px, scale {result.scale:.2f}")
    if not engine.fits_at_floor(height):
        logger.warning("    [!] Content still overflows one page at the minimum scale. Consider trimming it.")
    return result.scale


def _cmd_fit(args, settings: Settings, store: DraftStore):
    draft = _current_or_new(store)
    try:
        _fit_scale(draft, settings)
    except CaptureUnavailable as e:
        logger.error(str(e))
        sys.exit(1)


def _cmd_export(args, settings: Settings, store: DraftStore):
    draft = _current_or_new(store)
    label = draft.label or draft.cv_data.personal.full_name or "draft"
    exporter = ExportOrchestrator(args.output_dir or settings.exports_dir)

    if args.letter:
        name, artifact, selector = "letter", "cover-letter", f"#{LETTER_ELEMENT_ID}"
        markup = render_letter_markup(draft.cover_letter, draft.cv_data, draft.customisation)
        mode = PageMode.FIT_TO_PAGE
    else:
        name, artifact, selector = "cv", "cv", f"#{CV_ELEMENT_ID}"
        mode = PageMode.PAGINATE
        compact = args.single_page and args.format == "pdf"
        markup = render_cv_markup(draft.cv_data, draft.customisation, compact=compact)

    try:
        if args.image:
            target = ImageRenderTarget(args.image, html=markup)
        else:
            scale = 1.0
            if args.single_page and not args.letter and args.format == "pdf":
                scale = _fit_scale(draft, settings)
            target = HtmlRenderTarget(markup, selector, scale=scale)
        exporter.mount(name, target)

        if args.format == "pdf":
            exporter.export_pdf(name, label, artifact, mode=mode)
        else:
            exporter.export_docx(name, label, artifact, root_selector=selector,
                                 font_name=draft.customisation.font_family,
                                 font_size=draft.customisation.font_size)
    except (ExportError, CaptureUnavailable) as e:
        logger.error(f"Export failed: {e}")
        sys.exit(1)


def _cmd_ai(args, settings: Settings, store: DraftStore):
    draft = _current_or_new(store)
    client = AIClient.from_settings(settings)
    try:
        if args.action == "polish":
            logger.info("Polishing CV text...")
            draft.cv_data = client.polish(draft.cv_data)
        elif args.action == "ats":
            if not draft.job_description:
                logger.error("Add a job description first (cv-builder edit --job-description ...).")
                sys.exit(1)
            result = client.ats_score(draft.cv_data, draft.job_description)
            logger.info(f"ATS score: {result.score}/100")
            logger.info(f"    > Matched: {', '.join(result.matched_keywords) or '-'}")
            logger.info(f"    > Missing: {', '.join(result.missing_keywords) or '-'}")
            for suggestion in result.suggestions:
                logger.info(f"    > {suggestion}")
            return
        elif args.action == "cover-letter":
            if not draft.job_description:
                logger.error("Add a job description first (cv-builder edit --job-description ...).")
                sys.exit(1)
            logger.info("Drafting cover letter...")
            draft.cover_letter.body = client.generate_cover_letter(draft.cv_data, draft.job_description)
            if draft.cover_letter.over_word_limit():
                logger.warning(f"    [!] Generated letter is {draft.cover_letter.word_count()} words (limit 500)")
        elif args.action == "parse":
            if not args.file:
                logger.error("Pass --file with the CV to parse.")
                sys.exit(1)
            text = read_cv_file(args.file)
            if not text:
                logger.error("Failed to read CV. Try copy-pasting the text into a .txt file instead.")
                sys.exit(1)
            logger.info("Parsing CV text...")
            draft.cv_data = client.parse_raw_text(text)
    except AIError as e:
        logger.error(str(e))
        sys.exit(1)

    saved = _save(store, draft)
    logger.info(f"Saved draft '{saved.label}'")


COMMANDS = {
    "new": _cmd_new,
    "show": _cmd_show,
    "edit": _cmd_edit,
    "history": _cmd_history,
    "export-draft": _cmd_export_draft,
    "import-draft": _cmd_import_draft,
    "fit": _cmd_fit,
    "export": _cmd_export,
    "ai": _cmd_ai,
}


def run_command(args, settings: Settings):
    store = DraftStore(FileStorage(settings.drafts_dir))
    COMMANDS[args.command](args, settings, store)


def main(argv=None):
    try:
        _main_cli(argv)
    except KeyboardInterrupt:
        sys.stderr.write("\n\033[31m[-] Cancelled by user\033[0m\n")
        sys.exit(130)


def _main_cli(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.ca_bundle:
        set_ca_bundle_override(args.ca_bundle)

    settings = load_settings(home=args.home, ai_url=args.ai_url)

    if args.quiet or args.verbose or args.command == "show":
        setup_logging(settings.logs_dir, args.verbose, quiet=args.quiet)
        run_command(args, settings)
        return

    # Default mode: scrolling status panel
    from rich.console import Console
    from rich.live import Live

    console = Console()
    status_handler = StatusLogHandler(console)
    setup_logging(settings.logs_dir, 2, custom_handler=status_handler)
    with Live(status_handler.get_renderable(), refresh_per_second=4, console=console) as live:
        status_handler.live = live
        run_command(args, settings)


if __name__ == "__main__":
    main()
