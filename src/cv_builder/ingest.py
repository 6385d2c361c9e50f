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
Handles ingestion of uploaded material: CV text (TXT, MD, DOCX, PDF), job
descriptions (file or URL) and photo/signature images.
"""

import os
import base64
import logging

import requests
from bs4 import BeautifulSoup
from docx import Document
from pypdf import PdfReader

from cv_builder.config import get_ca_bundle

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = (".txt", ".md", ".text", ".rtf")
IMAGE_TYPES = {".png": "image/png", ".jpg": "image/jpeg", ".jpeg": "image/jpeg", ".webp": "image/webp"}
MAX_IMAGE_BYTES = 2 * 1024 * 1024


def read_text_file(file_path: str) -> str:
    try:
        with open(file_path, "r", encoding="utf-8", errors="replace") as f:
            return f.read()
    except OSError as e:
        logger.error(f"Error reading {file_path}: {e}")
        return ""


def read_docx(file_path: str) -> str:
    """
    Extracts text from a DOCX file.
    """
    try:
        doc = Document(file_path)
        return '\n'.join(para.text for para in doc.paragraphs)
    except Exception as e:
        logger.error(f"Error reading {file_path}: {e}")
        return ""


def read_pdf(file_path: str) -> str:
    """
    Extracts text from a PDF file.
    """
    try:
        reader = PdfReader(file_path)
        return '\n'.join(page.extract_text() or "" for page in reader.pages)
    except Exception as e:
        logger.error(f"Error reading PDF {file_path}: {e}")
        return ""


def read_cv_file(file_path: str) -> str:
    """Reads an uploaded CV into plain text, dispatching on the extension."""
    ext = os.path.splitext(file_path)[1].lower()
    if ext in TEXT_EXTENSIONS:
        return read_text_file(file_path)
    if ext == ".docx":
        return read_docx(file_path)
    if ext == ".pdf":
        return read_pdf(file_path)
    logger.warning(f"Unsupported CV file type '{ext}'. Use TXT, MD, DOCX or PDF, or paste the text instead.")
    return ""


def _extract_text_from_html(html) -> str:
    """Extracts clean text from raw HTML content."""
    soup = BeautifulSoup(html, 'html.parser')

    for script in soup(["script", "style"]):
        script.decompose()

    lines = (line.strip() for line in soup.get_text().splitlines())
    chunks = (phrase.strip() for line in lines for phrase in line.split("  "))
    return '\n'.join(chunk for chunk in chunks if chunk)


def read_url(url: str) -> str:
    """
    Fetches a job advert and returns its visible text.
    """
    headers = {'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36'}
    try:
        response = requests.get(url, headers=headers, timeout=10, verify=get_ca_bundle())
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        logger.error(f"Failed to fetch {url}: {e}")
        return ""
    return _extract_text_from_html(response.content)


def read_job_description(source: str) -> str:
    """A job description may be a URL, a document, or a plain text file."""
    if source.startswith(("http://", "https://")):
        return read_url(source)
    return read_cv_file(source)


def read_image_as_data_url(file_path: str) -> str:
    """Encodes a photo or signature image as a data URL for storage in a draft."""
    ext = os.path.splitext(file_path)[1].lower()
    mime = IMAGE_TYPES.get(ext)
    if not mime:
        logger.error(f"Unsupported image type '{ext}'. Use PNG, JPG or WEBP.")
        return ""
    try:
        with open(file_path, "rb") as f:
            data = f.read()
    except OSError as e:
        logger.error(f"Error reading {file_path}: {e}")
        return ""
    if len(data) > MAX_IMAGE_BYTES:
        logger.error(f"Image {file_path} is larger than {MAX_IMAGE_BYTES // (1024 * 1024)} MB")
        return ""
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"
