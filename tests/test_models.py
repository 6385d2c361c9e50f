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

import unittest
from dataclasses import fields

from cv_builder.models import (
    CVData,
    CVCustomisation,
    CoverLetterData,
    Education,
    IN_PROGRESS,
    hydrate_cover_letter,
    hydrate_customisation,
    hydrate_cv_data,
)
from cv_builder.preview import render_cv_markup, render_letter_markup


class TestHydration(unittest.TestCase):

    def _assert_complete(self, obj):
        for f in fields(obj):
            self.assertIsNotNone(getattr(obj, f.name), f"{type(obj).__name__}.{f.name} is None")

    def test_empty_cv_gets_defaults(self):
        cv = hydrate_cv_data({})
        self._assert_complete(cv)
        self._assert_complete(cv.personal)
        self.assertEqual(cv.personal.full_name, "")
        self.assertEqual(cv.personal.photo, "")
        self.assertEqual(cv.experiences, [])
        self.assertEqual(cv.education, [])
        self.assertEqual(cv.skills, [])

    def test_none_is_treated_as_empty(self):
        self.assertEqual(hydrate_cv_data(None).personal.email, "")
        self.assertEqual(hydrate_customisation(None).template, "minimal")
        self.assertEqual(hydrate_cover_letter(None).sign_off, "Yours sincerely,")

    def test_partial_personal_is_merged(self):
        cv = hydrate_cv_data({"personal": {"fullName": "Jane Doe"}})
        self.assertEqual(cv.personal.full_name, "Jane Doe")
        self.assertEqual(cv.personal.linkedin, "")

    def test_education_without_grade_gets_empty_grade(self):
        cv = hydrate_cv_data({"education": [{"id": "e1", "institution": "Leeds", "degree": "BSc"}]})
        self.assertEqual(cv.education[0].grade, "")
        self.assertEqual(cv.education[0].id, "e1")
        self.assertEqual(cv.education[0].end_date, "")
        self.assertFalse(cv.education[0].in_progress)

    def test_education_grade_is_preserved(self):
        cv = hydrate_cv_data({"education": [{"id": "e1", "grade": "First Class"}]})
        self.assertEqual(cv.education[0].grade, "First Class")

    def test_experience_entries_are_completed(self):
        cv = hydrate_cv_data({"experiences": [{"company": "ACME"}]})
        exp = cv.experiences[0]
        self._assert_complete(exp)
        self.assertEqual(exp.company, "ACME")
        self.assertTrue(exp.id)

    def test_non_dict_entries_are_skipped(self):
        cv = hydrate_cv_data({"experiences": ["junk", None], "skills": ["Python", 3]})
        self.assertEqual(cv.experiences, [])
        self.assertEqual(cv.skills, ["Python"])

    def test_customisation_shallow_merge(self):
        custom = hydrate_customisation({"template": "modern", "fontSize": 12})
        self._assert_complete(custom)
        self.assertEqual(custom.template, "modern")
        self.assertEqual(custom.font_size, 12)
        self.assertEqual(custom.heading_font, "Cormorant Garamond")

    def test_cover_letter_defaults(self):
        letter = hydrate_cover_letter({"body": "Hello"})
        self._assert_complete(letter)
        self.assertEqual(letter.body, "Hello")
        self.assertEqual(letter.recipient_name, "Dear Hiring Manager,")
        self.assertEqual(letter.signature_size, 30)
        self.assertIsNone(letter.signature_kind)

    def test_round_trip_through_dict(self):
        cv = hydrate_cv_data({})
        cv.personal.full_name = "Jane"
        cv.add_experience(company="ACME", position="Engineer")
        cv.add_education(institution="Leeds", in_progress=True)
        cv.add_skill("Python")
        self.assertEqual(hydrate_cv_data(cv.to_dict()), cv)

    def test_dict_uses_camel_case_keys(self):
        cv = CVData()
        cv.add_education(institution="Leeds")
        data = cv.to_dict()
        self.assertIn("fullName", data["personal"])
        self.assertIn("startDate", data["education"][0])
        self.assertIn("inProgress", data["education"][0])


class TestEducationInProgress(unittest.TestCase):

    def test_in_progress_sets_sentinel(self):
        edu = Education(end_date="2020")
        edu.set_in_progress(True)
        self.assertEqual(edu.end_date, IN_PROGRESS)

    def test_turning_off_clears_sentinel(self):
        edu = Education()
        edu.set_in_progress(True)
        edu.set_in_progress(False)
        self.assertEqual(edu.end_date, "")
        self.assertFalse(edu.in_progress)

    def test_turning_off_keeps_real_date(self):
        edu = Education(end_date="2024", in_progress=True)
        edu.set_in_progress(False)
        self.assertEqual(edu.end_date, "2024")


class TestCVEditing(unittest.TestCase):

    def test_duplicate_skills_are_ignored(self):
        cv = CVData()
        self.assertTrue(cv.add_skill("Python"))
        self.assertFalse(cv.add_skill("Python"))
        self.assertTrue(cv.add_skill("python"))
        self.assertFalse(cv.add_skill("   "))
        self.assertEqual(cv.skills, ["Python", "python"])

    def test_skills_from_text(self):
        cv = CVData()
        cv.set_skills_from_text("Python, SQL, , Python,Go")
        self.assertEqual(cv.skills, ["Python", "SQL", "Go"])

    def test_experience_ids_are_unique(self):
        cv = CVData()
        a = cv.add_experience(company="A")
        b = cv.add_experience(id=a.id, company="B")
        self.assertNotEqual(a.id, b.id)

    def test_move_and_remove_experience(self):
        cv = CVData()
        a = cv.add_experience(company="A")
        b = cv.add_experience(company="B")
        cv.move_experience(b.id, -1)
        self.assertEqual([e.company for e in cv.experiences], ["B", "A"])
        cv.move_experience(b.id, -5)
        self.assertEqual([e.company for e in cv.experiences], ["B", "A"])
        cv.remove_experience(a.id)
        self.assertEqual([e.company for e in cv.experiences], ["B"])
        self.assertIsNone(cv.find_experience(a.id))


class TestCustomisationValidation(unittest.TestCase):

    def test_defaults_are_valid(self):
        self.assertEqual(CVCustomisation().validate(), [])

    def test_problems_are_reported(self):
        custom = CVCustomisation(template="fancy", primary_colour="red", font_family=" ", font_size=40)
        problems = custom.validate()
        self.assertEqual(len(problems), 4)
        self.assertEqual(custom.template, "fancy")


class TestCoverLetter(unittest.TestCase):

    def test_word_limit_is_a_warning_only(self):
        letter = CoverLetterData(body="word " * 501)
        self.assertEqual(letter.word_count(), 501)
        self.assertTrue(letter.over_word_limit())
        self.assertFalse(CoverLetterData(body="short letter").over_word_limit())

    def test_signature_kind(self):
        self.assertEqual(CoverLetterData(signature_text="Jane").signature_kind, "text")
        self.assertEqual(CoverLetterData(signature_image="data:image/png;base64,AA==", signature_text="Jane").signature_kind, "image")

    def test_contact_overrides_fall_back_to_cv(self):
        cv = CVData()
        cv.personal.full_name = "Jane Doe"
        cv.personal.email = "jane@example.com"
        letter = CoverLetterData(override_email="work@example.com")
        contact = letter.contact(cv.personal)
        self.assertEqual(contact["full_name"], "Jane Doe")
        self.assertEqual(contact["email"], "work@example.com")


class TestMistypedValues(unittest.TestCase):

    def test_cover_letter_numbers_from_strings(self):
        letter = hydrate_cover_letter({"signatureText": "Jane", "signatureSize": "30", "signatureOffsetX": "oops"})
        self.assertEqual(letter.signature_size, 30.0)
        self.assertEqual(letter.signature_offset_x, 0)
        html = render_letter_markup(letter, CVData(), CVCustomisation())
        self.assertIn("Jane</p>", html)

    def test_non_string_text_is_coerced(self):
        letter = hydrate_cover_letter({"body": 42, "signOff": ["x"]})
        self.assertEqual(letter.body, "42")
        self.assertFalse(letter.over_word_limit())
        self.assertIsInstance(letter.sign_off, str)

    def test_customisation_types(self):
        custom = hydrate_customisation({"fontSize": "big", "headingBold": "false", "bodyItalic": 1, "template": 7})
        self.assertEqual(custom.font_size, 11)
        self.assertFalse(custom.heading_bold)
        self.assertTrue(custom.body_italic)
        self.assertEqual(custom.template, "7")
        self.assertIn("template-7", render_cv_markup(CVData(), custom))

    def test_education_flag_from_string(self):
        cv = hydrate_cv_data({"education": [{"id": "e1", "inProgress": "true", "grade": 1}]})
        self.assertTrue(cv.education[0].in_progress)
        self.assertEqual(cv.education[0].grade, "1")

    def test_stored_skills_are_kept_verbatim(self):
        cv = hydrate_cv_data({"skills": [" Python ", "", "Python", " Python "]})
        self.assertEqual(cv.skills, [" Python ", "", "Python"])


if __name__ == '__main__':
    unittest.main()
