import logging
from typing import Sequence

import numpy as np

from ..config import Config

logger = logging.getLogger("RoadRough")


class RoughnessEstimator:
    """Reduces a window of filtered samples to one roughness score.

    The score is the population variance of the window: higher variance of
    the vertical residual means a rougher surface.
    """

    def estimate(self, samples: Sequence[float]) -> float:
        """Population variance of ``samples``; 0.0 for an empty window."""
        if len(samples) == 0:
            return 0.0

        data = np.asarray(samples, dtype=np.float64)
        data = data[np.isfinite(data)]
        if data.size == 0:
            return 0.0

        # Centre on the first sample so a constant window cancels exactly to 0.
        # ddof=0: divide by n, not n - 1
        return max(0.0, float(np.var(data - data[0])))

    def estimate_from(self, signal_filter) -> float:
        """Drain ``signal_filter`` and score what it held."""
        samples = signal_filter.drain()
        roughness = self.estimate(samples)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Roughness {roughness:.4f} from {len(samples)} samples")
        return roughness


def roughness_to_color(roughness, thresholds=None, colors=None):
    """Convert a roughness score to a grey-scale color in hex format.

    The first threshold the score does not exceed picks the color; anything
    above the last threshold gets the darkest shade.

    Args:
        roughness (float): Roughness score (variance, >= 0)
        thresholds (list): Ascending upper bounds, defaults to Config.ROUGH_THRESHOLDS
        colors (list): One more color than thresholds, defaults to Config.ROUGH_COLORS

    Returns:
        str: Hex color code in format #rrggbb
    """
    if thresholds is None:
        thresholds = Config.ROUGH_THRESHOLDS
    if colors is None:
        colors = Config.ROUGH_COLORS

    for threshold, color in zip(thresholds, colors):
        if roughness <= threshold:
            return color
    return colors[-1]
