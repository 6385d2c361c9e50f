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
Builds the HTML preview of a CV or cover letter.

This is one neutral layout. The selected template only travels as a CSS class
on the root element; the customisation colours, fonts and sizes are applied as
inline style so the markup renders the same in any browser engine.
"""

import logging
from html import escape
from typing import List

from cv_builder.fit import A4_WIDTH_PX
from cv_builder.models import CVCustomisation, CVData, CoverLetterData

logger = logging.getLogger(__name__)

CV_ELEMENT_ID = "cv-preview"
LETTER_ELEMENT_ID = "letter-preview"
BULLET_PREFIX = "• "


def _hsl(value: str) -> str:
    return f"hsl({value})"


def _text(value: str) -> str:
    return escape(value or "")


def render_description(description: str) -> str:
    """
    A description may hold bullet lines starting with '• '. If it does, plain
    lines are joined into one paragraph followed by a list of the bullets.
    """
    if not description:
        return ""
    lines = [line for line in description.split("\n") if line]
    bullets = [line[len(BULLET_PREFIX):] for line in lines if line.startswith(BULLET_PREFIX)]
    if not bullets:
        return f"<p>{_text(description)}</p>"

    plain = [line for line in lines if not line.startswith(BULLET_PREFIX)]
    parts = []
    if plain:
        parts.append(f"<p>{_text(' '.join(plain))}</p>")
    parts.append("<ul>" + "".join(f"<li>{_text(b)}</li>" for b in bullets) + "</ul>")
    return "".join(parts)


def _date_range(start: str, end: str) -> str:
    if start and end:
        return f"{start} to {end}"
    return start or end or ""


def _page_style(custom: CVCustomisation, compact: bool) -> str:
    padding = "28px 36px" if compact else "48px 56px"
    line_height = "1.3" if compact else "1.5"
    return (
        f"width:{A4_WIDTH_PX}px;box-sizing:border-box;background:#fff;"
        f"padding:{padding};line-height:{line_height};"
        f"color:{_hsl(custom.text_colour)};"
        f"font-family:'{_text(custom.font_family)}',sans-serif;"
        f"font-size:{custom.font_size}px;"
        f"font-style:{'italic' if custom.body_italic else 'normal'};"
    )


def _heading_style(custom: CVCustomisation) -> str:
    return (
        f"font-family:'{_text(custom.heading_font)}',serif;"
        f"font-weight:{'700' if custom.heading_bold else '400'};"
        f"color:{_hsl(custom.primary_colour)};font-style:normal;"
    )


def _document(body: str, title: str) -> str:
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        f"<title>{_text(title)}</title>"
        "<style>body{margin:0;background:#fff}ul{margin:0.2em 0;padding-left:1.2em}"
        "p{margin:0.2em 0}h1,h2,h3{margin:0.4em 0 0.2em}</style>"
        f"</head><body>{body}</body></html>"
    )


def render_cv_markup(cv: CVData, custom: CVCustomisation, compact: bool = False) -> str:
    personal = cv.personal
    heading = _heading_style(custom)
    parts: List[str] = []

    parts.append("<header>")
    if personal.photo:
        parts.append(f"<img class=\"photo\" src=\"{escape(personal.photo, quote=True)}\" alt=\"Photo\" style=\"width:96px;height:96px;object-fit:cover;float:right\">")
    parts.append(f"<h1 style=\"{heading}\">{_text(personal.full_name)}</h1>")
    if personal.title:
        parts.append(f"<p class=\"role\">{_text(personal.title)}</p>")
    contact = [personal.email, personal.phone, personal.location, personal.linkedin, personal.github]
    contact = [c for c in contact if c]
    if contact:
        parts.append(f"<p class=\"contact\">{' | '.join(_text(c) for c in contact)}</p>")
    parts.append("</header>")

    if personal.summary:
        parts.append(f"<section class=\"summary\"><h2 style=\"{heading}\">Profile</h2>{render_description(personal.summary)}</section>")

    if cv.experiences:
        parts.append(f"<section class=\"experience\"><h2 style=\"{heading}\">Experience</h2>")
        for exp in cv.experiences:
            dates = _date_range(exp.start_date, exp.end_date)
            parts.append(f"<div class=\"entry\" data-id=\"{escape(exp.id, quote=True)}\">")
            parts.append(f"<h3 style=\"{heading}\">{_text(exp.position)}</h3>")
            parts.append(f"<p><strong>{_text(exp.company)}</strong>{' | ' + _text(dates) if dates else ''}</p>")
            parts.append(render_description(exp.description))
            parts.append("</div>")
        parts.append("</section>")

    if cv.education:
        parts.append(f"<section class=\"education\"><h2 style=\"{heading}\">Education</h2>")
        for edu in cv.education:
            degree = ", ".join(x for x in (edu.degree, edu.field) if x)
            dates = _date_range(edu.start_date, edu.end_date)
            parts.append(f"<div class=\"entry\" data-id=\"{escape(edu.id, quote=True)}\">")
            parts.append(f"<h3 style=\"{heading}\">{_text(degree)}</h3>")
            parts.append(f"<p><strong>{_text(edu.institution)}</strong>{' | ' + _text(dates) if dates else ''}</p>")
            if edu.grade:
                parts.append(f"<p class=\"grade\">{_text(edu.grade)}</p>")
            parts.append("</div>")
        parts.append("</section>")

    if cv.skills:
        parts.append(f"<section class=\"skills\"><h2 style=\"{heading}\">Skills</h2><ul>")
        parts.append("".join(f"<li>{_text(s)}</li>" for s in cv.skills))
        parts.append("</ul></section>")

    classes = f"cv template-{_text(custom.template)}{' compact' if compact else ''}"
    body = f"<div id=\"{CV_ELEMENT_ID}\" class=\"{classes}\" style=\"{_page_style(custom, compact)}\">{''.join(parts)}</div>"
    return _document(body, personal.full_name or "CV")


def _signature(letter: CoverLetterData) -> str:
    size = letter.signature_size or 30
    offset = f"margin-left:{letter.signature_offset_x}mm;margin-top:{letter.signature_offset_y}mm;"
    kind = letter.signature_kind
    if kind == "image":
        return (
            f"<img class=\"signature\" src=\"{escape(letter.signature_image, quote=True)}\" alt=\"Signature\" "
            f"style=\"width:{size}mm;height:{size}mm;object-fit:contain;{offset}\">"
        )
    if kind == "text":
        return (
            f"<p class=\"signature\" style=\"font-family:'{_text(letter.signature_font)}',cursive;"
            f"font-size:{size * 0.8}px;{offset}\">{_text(letter.signature_text)}</p>"
        )
    return ""


def render_letter_markup(letter: CoverLetterData, cv: CVData, custom: CVCustomisation) -> str:
    heading = _heading_style(custom)
    contact = letter.contact(cv.personal)
    parts: List[str] = []

    parts.append(f"<header><h1 style=\"{heading}\">{_text(contact['full_name'])}</h1>")
    lines = [contact[k] for k in ("email", "phone", "location", "linkedin", "github") if contact[k]]
    if lines:
        parts.append(f"<p class=\"contact\">{' | '.join(_text(x) for x in lines)}</p>")
    parts.append("</header>")

    parts.append(f"<p class=\"date\">{_text(letter.date)}</p>")
    if letter.job_title:
        parts.append(f"<p class=\"re\"><strong>Re: {_text(letter.job_title)}</strong></p>")
    parts.append(f"<p>{_text(letter.recipient_name)}</p>")
    for paragraph in letter.body.split("\n"):
        if paragraph.strip():
            parts.append(f"<p>{_text(paragraph.strip())}</p>")
    parts.append(f"<p>{_text(letter.sign_off)}</p>")
    parts.append(_signature(letter))
    parts.append(f"<p class=\"name\">{_text(contact['full_name'])}</p>")

    body = (
        f"<div id=\"{LETTER_ELEMENT_ID}\" class=\"letter template-{_text(custom.template)}\" "
        f"style=\"{_page_style(custom, False)}\">{''.join(parts)}</div>"
    )
    return _document(body, f"Cover Letter - {contact['full_name']}" if contact["full_name"] else "Cover Letter")
