"""
Polar histogram: nearest obstacle distance per (elevation, azimuth) bin.
0 means no obstacle seen in that direction.
"""

import numpy as np

from .common import ALPHA_RES


class HistogramResolutionError(ValueError):
    """Resampling requested at a resolution that does not support it."""


class Histogram:
    """
    Dense elevation x azimuth grid. Supports the regular resolution
    (ALPHA_RES) and a coarse one (2 * ALPHA_RES).
    """

    def __init__(self, res: int = ALPHA_RES):
        if res not in (ALPHA_RES, 2 * ALPHA_RES):
            raise HistogramResolutionError(f"Unsupported histogram resolution: {res}")
        self._resolution = res
        self._dist = np.zeros((180 // res, 360 // res), dtype=float)

    @property
    def resolution(self) -> int:
        return self._resolution

    @property
    def e_dim(self) -> int:
        return self._dist.shape[0]

    @property
    def z_dim(self) -> int:
        return self._dist.shape[1]

    @property
    def dist(self) -> np.ndarray:
        """Underlying distance array (shape e_dim x z_dim)."""
        return self._dist

    def get_dist(self, e: int, z: int) -> float:
        return float(self._dist[e, z])

    def set_dist(self, e: int, z: int, value: float) -> None:
        self._dist[e, z] = value

    def set_zero(self) -> None:
        self._dist.fill(0.0)

    def is_empty(self) -> bool:
        return not np.any(self._dist)

    def downsample(self) -> None:
        """
        Halve the resolution. Each coarse bin keeps the nearest obstacle of
        its 2x2 block of regular bins (smallest non-zero distance), or 0 if
        the block is empty.
        """
        if self._resolution != ALPHA_RES:
            raise HistogramResolutionError(
                "downsample() requires a histogram at resolution %d, got %d" % (ALPHA_RES, self._resolution)
            )
        e_dim, z_dim = self.e_dim // 2, self.z_dim // 2
        blocks = self._dist.reshape(e_dim, 2, z_dim, 2).transpose(0, 2, 1, 3).reshape(e_dim, z_dim, 4)
        masked = np.where(blocks > 0.0, blocks, np.inf)
        nearest = masked.min(axis=2)
        self._dist = np.where(np.isfinite(nearest), nearest, 0.0)
        self._resolution = 2 * ALPHA_RES

    def upsample(self) -> None:
        """Double the resolution, copying every coarse bin into its four regular bins."""
        if self._resolution != 2 * ALPHA_RES:
            raise HistogramResolutionError(
                "upsample() requires a histogram at resolution %d, got %d" % (2 * ALPHA_RES, self._resolution)
            )
        self._dist = np.repeat(np.repeat(self._dist, 2, axis=0), 2, axis=1)
        self._resolution = ALPHA_RES
