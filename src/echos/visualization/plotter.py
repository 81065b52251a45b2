"""Quick-look rendering of reconstructed volumes.

Draws three orthogonal views of a finalized volume side by side so a run
can be checked without a 3D viewer.
"""

import logging
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
import xarray as xr
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

__all__ = ['VolumePlotter']

logger = logging.getLogger(__name__)


class VolumePlotter:
    """Renders a volume Dataset to an image file.

    Panels, left to right:

    - **Longitudinal**: depth against track distance through the centre
      lateral column (instrument mode) or the maximum over lateral
      (spatial mode).
    - **Cross-section**: depth against lateral offset at mid-track.
    - **Plan**: maximum echo over depth, lateral against track.

    Depth increases downwards in every depth panel.

    Example usage::

        plotter = VolumePlotter(config.visualization)
        plotter.plot_volume(volume, "plots/survey_volume.png")
    """

    def __init__(self, config=None):
        """Read display options.

        Parameters
        ----------
        config : InternalVisualizationConfig, optional
            ``dpi``, ``figsize``, ``output_format``, ``cmap``, ``vmin`` and
            ``vmax``. Defaults are used when omitted.
        """
        self.dpi = getattr(config, "dpi", 150)
        self.figsize = tuple(getattr(config, "figsize", (15, 5)))
        self.output_format = getattr(config, "output_format", "png")
        self.cmap = getattr(config, "cmap", "magma")
        self.vmin = getattr(config, "vmin", 0.0)
        self.vmax = getattr(config, "vmax", 1.0)

        logger.info("VolumePlotter initialized (format=%s, dpi=%s)", self.output_format, self.dpi)

    def _setup_figure(self) -> Tuple[plt.Figure, np.ndarray]:
        fig, axes = plt.subplots(1, 3, figsize=self.figsize, dpi=self.dpi)
        return fig, axes

    def _imshow(self, ax, image, extent, title, xlabel, ylabel):
        im = ax.imshow(
            image,
            extent=extent,
            origin="upper",
            aspect="auto",
            cmap=self.cmap,
            vmin=self.vmin,
            vmax=self.vmax,
            interpolation="nearest",
        )
        ax.set_title(title)
        ax.set_xlabel(xlabel)
        ax.set_ylabel(ylabel)
        return im

    def render(self, volume: xr.Dataset) -> plt.Figure:
        """Build the figure without saving it."""
        intensity = volume["intensity"]
        lateral = volume["lateral"].values
        depth = volume["depth"].values
        track = volume["track"].values
        view_mode = volume.attrs.get("view_mode", "spatial")

        spacing = tuple(volume.attrs.get("spacing", (1.0, 1.0, 1.0)))

        def span(coord, step):
            if coord.size == 0:
                return 0.0, 0.0
            step = float(step) or 1.0
            return float(coord[0]), float(coord[-1]) + step

        x0, x1 = span(lateral, spacing[0])
        y0, y1 = span(depth, spacing[1])
        z0, z1 = span(track, spacing[2])

        if view_mode == "instrument":
            longitudinal = intensity.isel(lateral=intensity.sizes["lateral"] // 2)
        else:
            longitudinal = intensity.max(dim="lateral")
        cross = intensity.isel(track=intensity.sizes["track"] // 2)
        plan = intensity.max(dim="depth")

        fig, (ax1, ax2, ax3) = self._setup_figure()
        # longitudinal is (track, depth); show depth on the vertical axis.
        self._imshow(ax1, longitudinal.values.T, (z0, z1, y1, y0),
                     "Longitudinal", "Track distance (m)", "Depth (m)")
        self._imshow(ax2, cross.values, (x0, x1, y1, y0),
                     "Cross-section (mid-track)", "Lateral offset (m)", "Depth (m)")
        im = self._imshow(ax3, plan.values.T, (z0, z1, x1, x0),
                          "Plan (max over depth)", "Track distance (m)", "Lateral offset (m)")
        fig.colorbar(im, ax=[ax1, ax2, ax3], shrink=0.8, label="Echo intensity")

        dims = tuple(volume.attrs.get("dimensions", ()))
        fig.suptitle(
            f"{view_mode} volume {dims}, "
            f"{float(volume.attrs.get('total_distance_m', 0.0)):.1f} m track"
        )
        return fig

    def plot_volume(self, volume: xr.Dataset, output_path: Union[str, Path]) -> Optional[Path]:
        """Render ``volume`` and save it.

        Returns
        -------
        Path or None
            The saved file, or None when the volume has no voxels.
        """
        if volume["intensity"].size == 0:
            logger.warning("Empty volume, nothing to plot")
            return None

        output_path = Path(output_path)
        if output_path.suffix.lstrip(".") != self.output_format:
            output_path = output_path.with_suffix(f".{self.output_format}")
        output_path.parent.mkdir(parents=True, exist_ok=True)

        fig = self.render(volume)
        try:
            fig.savefig(output_path, dpi=self.dpi, bbox_inches="tight")
        finally:
            plt.close(fig)

        logger.info("Volume plot saved: %s", output_path)
        return output_path
