import numpy as np


class ConeScanConfig:
    # Cone envelope
    cone_angle = np.deg2rad(22.0)  # [rad], full apex angle; rays are cast at cone_angle / 2
    cone_length = 100000.0  # [m], nominal length, informational only
    ring_samples = 72  # number of angular samples around the cone axis (5 deg steps)

    # Target region: circle on the reference surface
    region_longitude = 116.4  # [deg]
    region_latitude = 39.9  # [deg]
    region_radius = 30000.0  # [m], chord distance gate

    # Frame construction
    parallel_threshold = 0.99  # |dot(axis, up)| above this uses a fallback reference axis
    target_orientation = True  # a target point, when present, overrides the manual orientation

    # Accumulation model
    min_displacement = 100.0  # [m], centroid travel needed before a footprint is folded in
    trajectory_capacity = 200  # centroids kept, oldest evicted first
    simplify_tolerance = 1e-4  # [deg], applied after every union
    simplify_preserve_topology = True  # keep simplified parts valid (no self-intersections)

    # Reference ellipsoid (WGS84)
    equatorial_radius = 6378137.0  # [m]
    polar_radius = 6356752.3142451793  # [m]

    # Output
    include_metadata = True  # expose per-sample and frame diagnostics
