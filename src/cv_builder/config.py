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
Runtime configuration resolved from the environment and CLI flags.

CA bundle resolution (in priority order):
  1. Explicit override via --ca-bundle CLI arg
  2. REQUESTS_CA_BUNDLE environment variable
  3. CURL_CA_BUNDLE environment variable
  4. SSL_CERT_FILE environment variable
  5. System defaults (True, i.e. certifi or the OS trust store)
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_HOME = "user_content"
DEFAULT_AI_TIMEOUT = 60.0
DEFAULT_FIT_MIN_SCALE = 0.5

# Module-level override set by the CLI --ca-bundle flag
_ca_bundle_override: Optional[str] = None


def set_ca_bundle_override(path: str) -> None:
    """Set an explicit CA bundle path from a CLI argument."""
    global _ca_bundle_override
    _ca_bundle_override = path
    logger.info(f"CA bundle override set to: {path}")


def get_ca_bundle() -> str | bool:
    """
    Resolve the CA bundle to use for outbound HTTPS requests.

    Returns:
        str: Absolute path to a CA bundle file, or
        bool: True to use the default system/certifi trust store.
    """
    if _ca_bundle_override:
        return _ca_bundle_override

    for var in ("REQUESTS_CA_BUNDLE", "CURL_CA_BUNDLE", "SSL_CERT_FILE"):
        value = os.environ.get(var)
        if value:
            logger.debug(f"Using CA bundle from {var}: {value}")
            return value

    return True


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring malformed {name}={raw!r}; using {default}")
        return default


@dataclass
class Settings:
    """Resolved settings for one CLI invocation."""
    home: Path
    ai_url: str = ""
    ai_key: str = ""
    ai_timeout: float = DEFAULT_AI_TIMEOUT
    fit_min_scale: float = DEFAULT_FIT_MIN_SCALE

    @property
    def drafts_dir(self) -> Path:
        return self.home / "drafts"

    @property
    def exports_dir(self) -> Path:
        return self.home / "exports"

    @property
    def logs_dir(self) -> Path:
        return self.home / "logs"


def load_settings(home: Optional[str] = None, ai_url: Optional[str] = None) -> Settings:
    """
    Builds Settings from the environment. Explicit arguments (CLI flags) win.
    Malformed numbers fall back to defaults rather than aborting the run.
    """
    fit_min_scale = _env_float("CV_BUILDER_FIT_MIN_SCALE", DEFAULT_FIT_MIN_SCALE)
    if not 0 < fit_min_scale <= 1:
        logger.warning(f"CV_BUILDER_FIT_MIN_SCALE must be in (0, 1]; using {DEFAULT_FIT_MIN_SCALE}")
        fit_min_scale = DEFAULT_FIT_MIN_SCALE

    ai_timeout = _env_float("CV_BUILDER_AI_TIMEOUT", DEFAULT_AI_TIMEOUT)
    if ai_timeout <= 0:
        ai_timeout = DEFAULT_AI_TIMEOUT

    return Settings(
        home=Path(home or os.environ.get("CV_BUILDER_HOME") or DEFAULT_HOME),
        ai_url=ai_url or os.environ.get("CV_BUILDER_AI_URL", ""),
        ai_key=os.environ.get("CV_BUILDER_AI_KEY", ""),
        ai_timeout=ai_timeout,
        fit_min_scale=fit_min_scale,
    )
