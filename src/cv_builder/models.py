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
Data models for the CV Builder application.

Every model knows how to build itself from a partial (possibly older-shaped)
dict via the ``hydrate_*`` functions, and how to serialise itself back to the
camelCase JSON layout used for drafts on disk.
"""

import re
import uuid
from dataclasses import dataclass, field, fields, asdict
from datetime import date
from typing import Any, Dict, List, Optional

IN_PROGRESS = "In Progress"
UNTITLED_LABEL = "Untitled Draft"
LETTER_WORD_LIMIT = 500

TEMPLATES = ("classic", "modern", "minimal", "creative", "executive")
FONT_SIZE_MIN = 8
FONT_SIZE_MAX = 16

HSL_RE = re.compile(r"^\s*\d{1,3}(\.\d+)?\s+\d{1,3}(\.\d+)?%\s+\d{1,3}(\.\d+)?%\s*$")


def new_id() -> str:
    """Returns a fresh opaque identifier."""
    return uuid.uuid4().hex


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _to_camel_dict(obj) -> Dict[str, Any]:
    return {_camel(k): v for k, v in asdict(obj).items()}


def _pick(cls, raw: Dict[str, Any]) -> Dict[str, Any]:
    """Maps camelCase (or snake_case) keys of raw onto the dataclass fields of cls."""
    picked = {}
    for f in fields(cls):
        for key in (_camel(f.name), f.name):
            if key in raw and raw[key] is not None:
                picked[f.name] = raw[key]
                break
    return picked


def _as_dict(raw) -> Dict[str, Any]:
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return raw
    if hasattr(raw, "to_dict"):
        return raw.to_dict()
    return {}


@dataclass
class PersonalInfo:
    """Profile and contact block at the top of the CV."""
    full_name: str = ""
    title: str = ""
    email: str = ""
    phone: str = ""
    location: str = ""
    summary: str = ""
    linkedin: str = ""
    github: str = ""
    photo: str = ""  # data URL

    def to_dict(self) -> Dict[str, Any]:
        return _to_camel_dict(self)


@dataclass
class Experience:
    """Represents a single professional experience entry."""
    id: str = field(default_factory=new_id)
    company: str = ""
    position: str = ""
    start_date: str = ""
    end_date: str = ""
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return _to_camel_dict(self)


@dataclass
class Education:
    """Represents a single education entry."""
    id: str = field(default_factory=new_id)
    institution: str = ""
    degree: str = ""
    field: str = ""
    grade: str = ""
    start_date: str = ""
    end_date: str = ""
    in_progress: bool = False

    def set_in_progress(self, flag: bool) -> None:
        """
        Toggles the in-progress flag, keeping end_date consistent.
        Turning it off only clears the end date if it still holds the sentinel.
        """
        self.in_progress = bool(flag)
        if self.in_progress:
            self.end_date = IN_PROGRESS
        elif self.end_date == IN_PROGRESS:
            self.end_date = ""

    def to_dict(self) -> Dict[str, Any]:
        return _to_camel_dict(self)


@dataclass
class CVData:
    """
    Structured data representing a complete CV.
    This is the document persisted in drafts and rendered for export.
    """
    personal: PersonalInfo = field(default_factory=PersonalInfo)
    experiences: List[Experience] = field(default_factory=list)
    education: List[Education] = field(default_factory=list)
    skills: List[str] = field(default_factory=list)

    # --- Experience ---

    def add_experience(self, **values) -> Experience:
        entry = Experience(**values)
        if any(e.id == entry.id for e in self.experiences):
            entry.id = new_id()
        self.experiences.append(entry)
        return entry

    def remove_experience(self, entry_id: str) -> None:
        self.experiences = [e for e in self.experiences if e.id != entry_id]

    def move_experience(self, entry_id: str, offset: int) -> None:
        """Moves an entry up (negative offset) or down the display order."""
        idx = next((i for i, e in enumerate(self.experiences) if e.id == entry_id), None)
        if idx is None:
            return
        target = max(0, min(len(self.experiences) - 1, idx + offset))
        entry = self.experiences.pop(idx)
        self.experiences.insert(target, entry)

    def find_experience(self, entry_id: str) -> Optional[Experience]:
        return next((e for e in self.experiences if e.id == entry_id), None)

    # --- Education ---

    def add_education(self, in_progress: bool = False, **values) -> Education:
        entry = Education(**values)
        if any(e.id == entry.id for e in self.education):
            entry.id = new_id()
        if in_progress:
            entry.set_in_progress(True)
        self.education.append(entry)
        return entry

    def remove_education(self, entry_id: str) -> None:
        self.education = [e for e in self.education if e.id != entry_id]

    def find_education(self, entry_id: str) -> Optional[Education]:
        return next((e for e in self.education if e.id == entry_id), None)

    # --- Skills ---

    def add_skill(self, skill: str) -> bool:
        """Adds a skill unless it is blank or already present (case-sensitive)."""
        skill = (skill or "").strip()
        if not skill or skill in self.skills:
            return False
        self.skills.append(skill)
        return True

    def remove_skill(self, skill: str) -> None:
        self.skills = [s for s in self.skills if s != skill]

    def set_skills_from_text(self, text: str) -> None:
        """Replaces skills from a comma-separated string, as typed in the editor."""
        self.skills = []
        for part in (text or "").split(","):
            self.add_skill(part)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "personal": self.personal.to_dict(),
            "experiences": [e.to_dict() for e in self.experiences],
            "education": [e.to_dict() for e in self.education],
            "skills": list(self.skills),
        }


@dataclass
class CVCustomisation:
    """Visual styling choices, independent of the CV content."""
    template: str = "minimal"
    primary_colour: str = "0 0% 0%"     # HSL, rendered verbatim
    sidebar_colour: str = "0 0% 96%"
    text_colour: str = "0 0% 10%"
    font_family: str = "Inter"
    heading_font: str = "Cormorant Garamond"
    font_size: float = 11
    heading_bold: bool = True
    body_italic: bool = False

    def validate(self) -> List[str]:
        """Returns a list of human readable problems (empty when valid)."""
        problems = []
        if self.template not in TEMPLATES:
            problems.append(f"Unknown template '{self.template}'. Choose one of: {', '.join(TEMPLATES)}")
        for name in ("primary_colour", "sidebar_colour", "text_colour"):
            value = getattr(self, name)
            if not isinstance(value, str) or not HSL_RE.match(value):
                problems.append(f"{name} must be an HSL triple like '174 72% 40%', got '{value}'")
        for name in ("font_family", "heading_font"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                problems.append(f"{name} must not be empty")
        try:
            size = float(self.font_size)
            if not FONT_SIZE_MIN <= size <= FONT_SIZE_MAX:
                problems.append(f"font_size must be between {FONT_SIZE_MIN} and {FONT_SIZE_MAX}, got {self.font_size}")
        except (TypeError, ValueError):
            problems.append(f"font_size must be numeric, got '{self.font_size}'")
        return problems

    def to_dict(self) -> Dict[str, Any]:
        return _to_camel_dict(self)


@dataclass
class CoverLetterData:
    """A cover letter sharing the draft lifecycle with the CV."""
    recipient_name: str = "Dear Hiring Manager,"
    date: str = field(default_factory=lambda: date.today().isoformat())
    job_title: str = ""
    body: str = ""
    sign_off: str = "Yours sincerely,"
    signature_image: str = ""   # data URL
    signature_text: str = ""    # typed signature
    signature_font: str = "Dancing Script"
    signature_size: float = 30  # mm
    signature_offset_x: float = 0
    signature_offset_y: float = 0
    # Optional overrides; empty means use the CV's personal data
    override_full_name: str = ""
    override_email: str = ""
    override_phone: str = ""
    override_linkedin: str = ""
    override_github: str = ""
    override_location: str = ""

    @property
    def signature_kind(self) -> Optional[str]:
        if self.signature_image:
            return "image"
        if self.signature_text.strip():
            return "text"
        return None

    def word_count(self) -> int:
        return len(self.body.split())

    def over_word_limit(self) -> bool:
        return self.word_count() > LETTER_WORD_LIMIT

    def contact(self, personal: PersonalInfo) -> Dict[str, str]:
        """Resolves the letter's contact block, preferring overrides."""
        resolved = {}
        for name in ("full_name", "email", "phone", "linkedin", "github", "location"):
            resolved[name] = getattr(self, f"override_{name}") or getattr(personal, name)
        return resolved

    def to_dict(self) -> Dict[str, Any]:
        return _to_camel_dict(self)


@dataclass
class DraftData:
    """The persisted envelope around one editing session."""
    id: str
    label: str
    cv_data: CVData
    customisation: CVCustomisation
    cover_letter: CoverLetterData
    job_description: str = ""
    saved_at: Optional[str] = None
    version: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "cvData": self.cv_data.to_dict(),
            "customisation": self.customisation.to_dict(),
            "coverLetter": self.cover_letter.to_dict(),
            "jobDescription": self.job_description,
            "savedAt": self.saved_at,
            "version": self.version,
        }


@dataclass
class ATSResult:
    """Result of scoring a CV against a job description."""
    score: int = 0
    matched_keywords: List[str] = field(default_factory=list)
    missing_keywords: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)


# --- Hydration ---

def coerce_str(value) -> str:
    return value if isinstance(value, str) else ("" if value is None else str(value))


def _coerce_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


def _coerce_fields(cls, values: Dict[str, Any]) -> Dict[str, Any]:
    """
    Coerces picked values to the declared field types. Numbers that do not
    parse are dropped so the dataclass default applies.
    """
    types = {f.name: f.type for f in fields(cls)}
    coerced = {}
    for name, value in values.items():
        kind = types.get(name)
        if kind is str:
            coerced[name] = coerce_str(value)
        elif kind is bool:
            coerced[name] = _coerce_bool(value)
        elif kind is float:
            if isinstance(value, bool):
                continue
            try:
                coerced[name] = float(value)
            except (TypeError, ValueError):
                continue
        else:
            coerced[name] = value
    return coerced


def _as_list(value) -> list:
    return value if isinstance(value, list) else []


def hydrate_personal(raw) -> PersonalInfo:
    return PersonalInfo(**_coerce_fields(PersonalInfo, _pick(PersonalInfo, _as_dict(raw))))


def hydrate_experience(raw) -> Experience:
    values = _coerce_fields(Experience, _pick(Experience, _as_dict(raw)))
    if not values.get("id"):
        values["id"] = new_id()
    return Experience(**values)


def hydrate_education(raw) -> Education:
    """Older drafts have no 'grade'; it defaults to an empty string."""
    values = _coerce_fields(Education, _pick(Education, _as_dict(raw)))
    if not values.get("id"):
        values["id"] = new_id()
    return Education(**values)


def hydrate_cv_data(raw) -> CVData:
    """Merges saved data with current defaults so new fields always exist."""
    if isinstance(raw, CVData):
        raw = raw.to_dict()
    raw = _as_dict(raw)

    experiences = [hydrate_experience(e) for e in _as_list(raw.get("experiences")) if isinstance(e, dict)]
    education = [hydrate_education(e) for e in _as_list(raw.get("education")) if isinstance(e, dict)]

    cv = CVData(personal=hydrate_personal(raw.get("personal")), experiences=experiences, education=education)
    # Stored skills are kept as written; only exact duplicates are dropped
    for skill in _as_list(raw.get("skills")):
        if isinstance(skill, str) and skill not in cv.skills:
            cv.skills.append(skill)
    return cv


def hydrate_customisation(raw) -> CVCustomisation:
    return CVCustomisation(**_coerce_fields(CVCustomisation, _pick(CVCustomisation, _as_dict(raw))))


def hydrate_cover_letter(raw) -> CoverLetterData:
    return CoverLetterData(**_coerce_fields(CoverLetterData, _pick(CoverLetterData, _as_dict(raw))))
