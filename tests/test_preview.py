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

from bs4 import BeautifulSoup

from cv_builder.models import CoverLetterData, hydrate_customisation, hydrate_cv_data
from cv_builder.preview import (
    CV_ELEMENT_ID,
    LETTER_ELEMENT_ID,
    render_cv_markup,
    render_description,
    render_letter_markup,
)


def sample_cv():
    return hydrate_cv_data({
        "personal": {"fullName": "Jane <Doe>", "title": "Engineer", "email": "jane@example.com", "summary": "Builds things."},
        "experiences": [{"id": "x1", "company": "ACME", "position": "Lead", "startDate": "2020", "endDate": "2024"}],
        "education": [{"id": "e1", "institution": "Leeds", "degree": "BSc", "field": "Physics", "grade": "First Class"}],
        "skills": ["Python", "SQL"],
    })


class TestRenderDescription(unittest.TestCase):

    def test_plain_text(self):
        self.assertEqual(render_description("Did work"), "<p>Did work</p>")
        self.assertEqual(render_description(""), "")

    def test_bullets_follow_plain_text(self):
        html = render_description("• One\nIntro\n• Two")
        self.assertEqual(html, "<p>Intro</p><ul><li>One</li><li>Two</li></ul>")

    def test_only_bullets(self):
        self.assertEqual(render_description("• One"), "<ul><li>One</li></ul>")

    def test_text_is_escaped(self):
        self.assertIn("&lt;b&gt;", render_description("<b>bold</b>"))


class TestCVMarkup(unittest.TestCase):

    def test_root_element(self):
        soup = BeautifulSoup(render_cv_markup(sample_cv(), hydrate_customisation({"template": "modern"})), "html.parser")
        root = soup.select_one(f"#{CV_ELEMENT_ID}")
        self.assertIsNotNone(root)
        self.assertEqual(root["class"], ["cv", "template-modern"])
        self.assertIn("width:794px", root["style"])
        self.assertIn("hsl(0 0% 10%)", root["style"])

    def test_compact_layout(self):
        soup = BeautifulSoup(render_cv_markup(sample_cv(), hydrate_customisation({}), compact=True), "html.parser")
        root = soup.select_one(f"#{CV_ELEMENT_ID}")
        self.assertIn("compact", root["class"])
        self.assertIn("line-height:1.3", root["style"])

    def test_sections(self):
        soup = BeautifulSoup(render_cv_markup(sample_cv(), hydrate_customisation({})), "html.parser")
        self.assertEqual(soup.h1.get_text(), "Jane <Doe>")
        self.assertEqual([h.get_text() for h in soup.find_all("h2")], ["Profile", "Experience", "Education", "Skills"])
        self.assertEqual(soup.select_one(".grade").get_text(), "First Class")
        self.assertIn("2020 to 2024", soup.select_one(".experience").get_text())
        self.assertEqual([li.get_text() for li in soup.select(".skills li")], ["Python", "SQL"])

    def test_empty_sections_are_omitted(self):
        soup = BeautifulSoup(render_cv_markup(hydrate_cv_data({}), hydrate_customisation({})), "html.parser")
        self.assertEqual(soup.find_all("h2"), [])
        self.assertEqual(soup.title.get_text(), "CV")


class TestLetterMarkup(unittest.TestCase):

    def test_letter_uses_overrides(self):
        letter = CoverLetterData(body="First paragraph.\n\nSecond paragraph.", override_email="work@example.com", job_title="Lead")
        soup = BeautifulSoup(render_letter_markup(letter, sample_cv(), hydrate_customisation({})), "html.parser")
        root = soup.select_one(f"#{LETTER_ELEMENT_ID}")
        text = root.get_text(" ")
        self.assertIn("work@example.com", text)
        self.assertNotIn("jane@example.com", text)
        self.assertIn("Re: Lead", text)
        self.assertIn("Second paragraph.", text)

    def test_signature_variants(self):
        cv, custom = sample_cv(), hydrate_customisation({})
        image = CoverLetterData(signature_image="data:image/png;base64,AA==")
        soup = BeautifulSoup(render_letter_markup(image, cv, custom), "html.parser")
        self.assertEqual(soup.select_one("img.signature")["src"], "data:image/png;base64,AA==")

        text = CoverLetterData(signature_text="Jane")
        soup = BeautifulSoup(render_letter_markup(text, cv, custom), "html.parser")
        self.assertEqual(soup.select_one("p.signature").get_text(), "Jane")
        self.assertIn("Dancing Script", soup.select_one("p.signature")["style"])

        soup = BeautifulSoup(render_letter_markup(CoverLetterData(), cv, custom), "html.parser")
        self.assertIsNone(soup.select_one(".signature"))


if __name__ == '__main__':
    unittest.main()
