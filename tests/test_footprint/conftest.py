"""
Shared fixtures for the cone footprint test suite.

Every test works over the default target region (116.4 E, 39.9 N, 30 km)
on the WGS84 ellipsoid unless it builds its own geometry.
"""

import numpy as np
import pytest

from conescan.Config import ConeScanConfig
from conescan.accumulator import ScanSession
from conescan.footprint import FootprintSensor
from conescan.geometry import Ellipsoid, TargetRegion

from .helpers import CENTER_LAT, CENTER_LON


@pytest.fixture
def ellipsoid():
    return Ellipsoid.wgs84()


@pytest.fixture
def region(ellipsoid):
    return TargetRegion.from_degrees(CENTER_LON, CENTER_LAT, ConeScanConfig.region_radius, ellipsoid)


@pytest.fixture
def sensor():
    return FootprintSensor(config=ConeScanConfig)


@pytest.fixture
def session(region, ellipsoid):
    return ScanSession(region, ellipsoid, config=ConeScanConfig)


@pytest.fixture
def rng():
    return np.random.default_rng(20240611)
