"""
Shared test helpers for the cone footprint test suite.

Provides plot embedding for the HTML report and small builders for cones
hovering over a ground point.
"""

import base64
import io

import numpy as np

from conescan.cone import Cone

CENTER_LON = 116.4  # [deg] default region centre
CENTER_LAT = 39.9   # [deg]


def attach_plot_to_html_report(request, fig, name):
    """
    Embed a matplotlib figure into the pytest HTML report as an inline PNG.

    The figure is rendered to an in memory byte buffer, Base64 encoded, and
    appended to the ``extras`` list on the current test node. If pytest-html
    is not active the function does nothing.

    :param request:  the pytest ``request`` fixture
    :param fig:      a ``matplotlib.figure.Figure`` to embed
    :param name:     a short label shown beside the image in the report
    """
    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=160)

    html_plugin = request.config.pluginmanager.getplugin("html")
    if html_plugin is not None and hasattr(html_plugin, "extras"):
        png_b64 = base64.b64encode(buf.getvalue()).decode("ascii")
        extra = getattr(request.node, "extra", [])
        extra.append(html_plugin.extras.png(png_b64, name=name))
        request.node.extra = extra


def nadir_cone(ellipsoid, lon, lat, height, cone_id="Cone"):
    """Cone hovering at height [m] above (lon, lat) [deg], aimed straight down."""
    apex = ellipsoid.cartesian_from_degrees(lon, lat, height)
    target = ellipsoid.cartesian_from_degrees(lon, lat, 0.0)
    return Cone(cone_id, position=apex, target=target)


def ring_array(footprint):
    """Footprint ring as an (n, 3) array [m]."""
    return np.asarray(footprint["ring"], dtype=float).reshape(-1, 3)


def plot_lonlat_ring(ax, ring_lonlat, **kwargs):
    """Draw a closed (lon, lat) ring on a matplotlib axis."""
    ring = np.asarray(ring_lonlat, dtype=float).reshape(-1, 2)
    if ring.shape[0] == 0:
        return
    closed = np.vstack([ring, ring[:1]])
    ax.plot(closed[:, 0], closed[:, 1], **kwargs)
