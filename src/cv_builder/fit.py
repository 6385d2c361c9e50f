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
One-page fit engine.

Computes a display scale so rendered CV content appears to occupy a single
A4 page. The engine knows nothing about layout: the caller lays the content
out (applying the compact style when asked), measures it, and reports the
height back.

    engine.set_single_page(True)
    request = engine.request_measurement()   # -> MeasureRequest(compact=True)
    height = target.measure_height()         # caller's job
    result = engine.report_height(height)    # -> FitResult(scale=0.83, ...)
"""

import math
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from cv_builder.config import DEFAULT_FIT_MIN_SCALE

logger = logging.getLogger(__name__)

# A4 at the 96 dpi CSS reference density
A4_WIDTH_PX = 794
A4_HEIGHT_PX = 1123


class FitMode(Enum):
    NATURAL = "natural"
    FITTING = "fitting"


@dataclass(frozen=True)
class MeasureRequest:
    """Asks the caller to lay out (compact or not) and report the height."""
    compact: bool


@dataclass(frozen=True)
class FitResult:
    mode: FitMode
    scale: float
    measured_height: Optional[float] = None
    compact: bool = False

    @property
    def overflows(self) -> bool:
        return self.scale < 1.0


def fit_scale(measured: float, target: float, floor: float) -> float:
    """
    Scale that shrinks `measured` into `target`, never below `floor`.
    Zero, negative or non-finite heights mean there is nothing to fit.
    """
    try:
        measured = float(measured)
    except (TypeError, ValueError):
        return 1.0
    if not math.isfinite(measured) or measured <= 0:
        return 1.0
    if measured <= target:
        return 1.0
    return max(target / measured, floor)


class FitEngine:
    """
    Per-session state machine: NATURAL until single-page mode is requested,
    then FITTING, recomputing on every content change.
    """

    def __init__(self, target_height: float = A4_HEIGHT_PX, min_scale: float = DEFAULT_FIT_MIN_SCALE, compact_first: bool = True):
        if not (isinstance(target_height, (int, float)) and math.isfinite(target_height) and target_height > 0):
            raise ValueError(f"target_height must be a positive number, got {target_height!r}")
        if not (isinstance(min_scale, (int, float)) and 0 < min_scale <= 1):
            raise ValueError(f"min_scale must be in (0, 1], got {min_scale!r}")
        self.target_height = float(target_height)
        self.min_scale = float(min_scale)
        self.compact_first = compact_first
        self._result = FitResult(FitMode.NATURAL, 1.0)
        self._stale = False

    @property
    def mode(self) -> FitMode:
        return self._result.mode

    @property
    def scale(self) -> float:
        return self._result.scale

    @property
    def result(self) -> FitResult:
        return self._result

    @property
    def single_page(self) -> bool:
        return self._result.mode is FitMode.FITTING

    @property
    def needs_measurement(self) -> bool:
        return self.single_page and self._stale

    def set_single_page(self, enabled: bool) -> FitResult:
        if enabled:
            if not self.single_page:
                logger.debug("Entering single-page fitting")
            self._result = FitResult(FitMode.FITTING, self._result.scale if self.single_page else 1.0)
            self._stale = True
        else:
            # Back to natural immediately, no measurement pass
            self._result = FitResult(FitMode.NATURAL, 1.0)
            self._stale = False
        return self._result

    def content_changed(self) -> None:
        """CV data or customisation changed; the last measurement is void."""
        if self.single_page:
            self._stale = True

    def request_measurement(self) -> Optional[MeasureRequest]:
        if not self.single_page:
            return None
        return MeasureRequest(compact=self.compact_first)

    def report_height(self, measured_height: float, compact: Optional[bool] = None) -> FitResult:
        """
        Phase two: accept the caller's laid-out height. Ignored in NATURAL mode.
        """
        if not self.single_page:
            return self._result

        if compact is None:
            compact = self.compact_first
        scale = fit_scale(measured_height, self.target_height, self.min_scale)
        if scale < 1.0 and scale == self.min_scale:
            logger.warning(
                f"Content ({measured_height:.0f}px) needs more than the {self.min_scale:.2f} scale floor to fit one page; "
                "it will still overflow"
            )
        self._result = FitResult(FitMode.FITTING, scale, measured_height, compact)
        self._stale = False
        logger.debug(f"Fit: measured={measured_height!r} target={self.target_height:.0f} scale={scale:.3f}")
        return self._result

    def fits_at_floor(self, measured_height: float) -> bool:
        """Whether the content fits one page once scaled (False if the floor bites)."""
        scale = fit_scale(measured_height, self.target_height, self.min_scale)
        try:
            return float(measured_height) * scale <= self.target_height + 1e-6
        except (TypeError, ValueError):
            return True
