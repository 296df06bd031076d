"""
Temporal smoothing of scalar pose features (joint angles, ratios).

SMOOTHING STRATEGY:
1. Savitzky-Golay filter: primary smoother once the window is full.
   Preserves peaks/valleys (the bottom of a push-up, the top of a squat)
   and has no phase lag, so threshold crossings are not delayed.
2. EMA fallback: for the first frames, before the window fills.

Each classifier owns its smoother instances; the state is explicit and is
cleared by reset() when a session is reset.
"""

import logging
from collections import deque
from typing import Deque, Dict, Optional

import numpy as np
from scipy.signal import savgol_filter

logger = logging.getLogger(__name__)


class FeatureSmoother:
    """
    Smooths one scalar feature over a short rolling window.

    A window of 1 (or less) disables smoothing: values pass through
    unchanged.
    """

    SG_POLY_ORDER = 2   # Quadratic fit - good for smooth movements

    def __init__(self, window: int = 5, alpha: float = 0.5):
        """
        Initialize smoother.

        Args:
            window: Savitzky-Golay window in frames (forced odd, >= 3 to filter)
            alpha: EMA smoothing factor used until the window is full
        """
        if window > 1 and window % 2 == 0:
            window += 1
        self.window = max(1, window)
        self.alpha = alpha
        self._history: Deque[float] = deque(maxlen=self.window)
        self._ema: Optional[float] = None

    @property
    def enabled(self) -> bool:
        return self.window >= 3

    def update(self, value: float) -> float:
        """Add a raw value and return the smoothed value for this frame."""
        if not self.enabled:
            return value

        self._history.append(value)

        if self._ema is None:
            self._ema = value
        else:
            self._ema = self._ema * (1 - self.alpha) + value * self.alpha

        if len(self._history) < self.window:
            return self._ema

        values = np.array(self._history, dtype=float)
        try:
            smoothed = savgol_filter(values, self.window, self.SG_POLY_ORDER, mode="interp")
        except ValueError as e:
            logger.warning(f"Savgol filter failed: {e}")
            return value
        return float(smoothed[-1])

    def reset(self):
        """Clear all smoothing history."""
        self._history.clear()
        self._ema = None


class SmootherBank:
    """Named FeatureSmoothers sharing one configuration."""

    def __init__(self, window: int = 5, alpha: float = 0.5):
        self.window = window
        self.alpha = alpha
        self._smoothers: Dict[str, FeatureSmoother] = {}

    def update(self, name: str, value: float) -> float:
        smoother = self._smoothers.get(name)
        if smoother is None:
            smoother = FeatureSmoother(self.window, self.alpha)
            self._smoothers[name] = smoother
        return smoother.update(value)

    def reset(self):
        for smoother in self._smoothers.values():
            smoother.reset()
