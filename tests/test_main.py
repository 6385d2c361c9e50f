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

import json
import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from docx import Document
from PIL import Image
from pypdf import PdfReader

from cv_builder import main as cli
from cv_builder.drafts import CURRENT_KEY, DraftStore, FileStorage
from cv_builder.models import IN_PROGRESS


@patch('cv_builder.main.setup_logging')
class TestCli(unittest.TestCase):

    def setUp(self):
        self.home = tempfile.mkdtemp()
        self.env = patch.dict(os.environ, {}, clear=True)
        self.env.start()

    def tearDown(self):
        self.env.stop()
        shutil.rmtree(self.home)

    def run_cli(self, *argv):
        cli.main(["--home", self.home, "-q", *argv])

    @property
    def store(self):
        return DraftStore(FileStorage(Path(self.home) / "drafts"))

    def test_new_creates_current_draft(self, mock_logging):
        self.run_cli("new", "--label", "Job hunt")
        draft = self.store.load_current()
        self.assertEqual(draft.label, "Job hunt")
        self.assertTrue(os.path.exists(Path(self.home) / "drafts" / f"{CURRENT_KEY}.json"))
        mock_logging.assert_called_once()

    def test_edit(self, mock_logging):
        self.run_cli(
            "edit", "--name", "Jane Doe", "--skills", "Python, SQL", "--add-skill", "Python",
            "--add-experience", "ACME|Engineer|2020|2024|Led a team\\n• Shipped X",
            "--add-education", "Leeds|BSc|Physics||2019|",
            "--template", "modern",
        )
        draft = self.store.load_current()
        cv = draft.cv_data
        self.assertEqual(cv.personal.full_name, "Jane Doe")
        self.assertEqual(cv.skills, ["Python", "SQL"])
        self.assertEqual(cv.experiences[0].description, "Led a team\n• Shipped X")
        self.assertEqual(cv.education[0].grade, "")
        self.assertEqual(draft.customisation.template, "modern")
        self.assertEqual(draft.label, "Jane Doe")

        self.run_cli("edit", "--in-progress", cv.education[0].id, "on")
        edu = self.store.load_current().cv_data.education[0]
        self.assertTrue(edu.in_progress)
        self.assertEqual(edu.end_date, IN_PROGRESS)

    def test_edit_unknown_education(self, mock_logging):
        with self.assertRaises(SystemExit) as ctx:
            self.run_cli("edit", "--in-progress", "missing", "on")
        self.assertEqual(ctx.exception.code, 1)

    def test_history_flow(self, mock_logging):
        self.run_cli("new", "--label", "First")
        self.run_cli("history", "save")
        drafts = self.store.load_all_history()
        self.assertEqual([d.label for d in drafts], ["First"])

        self.run_cli("history", "rename", drafts[0].id, "Renamed")
        self.assertEqual(self.store.load_all_history()[0].label, "Renamed")

        self.run_cli("new", "--label", "Second")
        self.run_cli("history", "load", drafts[0].id)
        self.assertEqual(self.store.load_current().label, "Renamed")

        self.run_cli("history", "delete", drafts[0].id)
        self.assertEqual(self.store.load_all_history(), [])

    def test_history_save_without_current(self, mock_logging):
        with self.assertRaises(SystemExit):
            self.run_cli("history", "save")

    def test_draft_file_round_trip(self, mock_logging):
        self.run_cli("edit", "--name", "Jane Doe")
        out_dir = os.path.join(self.home, "out")
        self.run_cli("export-draft", "--output-dir", out_dir)
        files = os.listdir(out_dir)
        self.assertEqual(len(files), 1)

        self.run_cli("import-draft", os.path.join(out_dir, files[0]))
        drafts = self.store.load_all_history()
        self.assertEqual(len(drafts), 1)
        self.assertEqual(drafts[0].cv_data.personal.full_name, "Jane Doe")
        self.assertNotEqual(drafts[0].id, self.store.load_current().id)

    def test_import_invalid_file(self, mock_logging):
        path = os.path.join(self.home, "bad.json")
        with open(path, "w") as f:
            f.write("not json")
        with self.assertRaises(SystemExit) as ctx:
            self.run_cli("import-draft", path)
        self.assertEqual(ctx.exception.code, 1)
        self.assertEqual(self.store.load_all_history(), [])

    def test_export_pdf_from_image(self, mock_logging):
        self.run_cli("edit", "--name", "Jane Doe")
        image = os.path.join(self.home, "preview.png")
        Image.new("RGB", (794, 1123 * 2), "white").save(image)
        out_dir = os.path.join(self.home, "out")
        self.run_cli("export", "pdf", "--image", image, "--output-dir", out_dir)

        files = os.listdir(out_dir)
        self.assertEqual(len(files), 1)
        self.assertTrue(files[0].startswith("Jane Doe-cv-"))
        self.assertEqual(len(PdfReader(os.path.join(out_dir, files[0])).pages), 2)

    def test_export_docx(self, mock_logging):
        self.run_cli("edit", "--name", "Jane Doe", "--skills", "Python")
        out_dir = os.path.join(self.home, "out")
        self.run_cli("export", "docx", "--output-dir", out_dir)
        files = os.listdir(out_dir)
        self.assertTrue(files[0].endswith(".docx"))
        texts = [p.text for p in Document(os.path.join(out_dir, files[0])).paragraphs]
        self.assertIn("Jane Doe", texts)
        self.assertIn("Python", texts)

    def test_ai_without_configuration(self, mock_logging):
        self.run_cli("new")
        with self.assertRaises(SystemExit) as ctx:
            self.run_cli("ai", "polish")
        self.assertEqual(ctx.exception.code, 1)

    def test_show_json(self, mock_logging):
        self.run_cli("edit", "--name", "Jane Doe")
        with patch('builtins.print') as mock_print:
            self.run_cli("show", "--json")
        shown = json.loads(mock_print.call_args[0][0])
        self.assertEqual(shown["cvData"]["personal"]["fullName"], "Jane Doe")
        self.assertEqual(shown["version"], 3)


if __name__ == '__main__':
    unittest.main()
