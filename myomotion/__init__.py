"""myomotion -- Balance, force-cycle and jump analysis toolkit.

Quick start::

    from myomotion import frequency_spectrum, filter_block
    filtered = filter_block(signal, cutoff=5.0, order=4, sample_rate=100.0)
    spectrum = frequency_spectrum(filtered, sample_rate=100.0)
    print(spectrum["dominant_frequency"])

Static balance from device-motion samples::

    from myomotion import BalanceSession
    session = BalanceSession()
    for sample in samples:
        session.process(sample)
    analysis = session.stop()
    print(analysis["cop"]["ellipse"]["area"])

Force cycles and fatigue::

    from myomotion import CycleDetector, segment_cycles
    detector = CycleDetector({"hysteresis": 0.5})
    history = []
    for point in stream:
        history.append(point)
        cycle = detector.update(history)
    print(detector.fatigue_status())

Jumps from pose frames::

    from myomotion import build_jump_frames, detect_jumps
    frames = build_jump_frames(pose_frames, joint="knee", side="right")
    jumps = detect_jumps(frames)

Export::

    from myomotion import export_cycles_csv, to_dataframe, save_json
    export_cycles_csv(cycles, "cycles.csv")
    df = to_dataframe(result, what="cycles")
"""

__version__ = "0.1.0"

from .filters import (
    FilterState,
    butterworth_coefficients,
    filter_sample,
    filter_block,
    new_cascade,
    validate_filter_params,
)
from .spectrum import (
    frequency_spectrum,
    find_spectral_peaks,
    peak_prominence,
    dominant_frequency,
    frequency_features,
)
from .cop import (
    acceleration_to_displacement,
    rms_sway,
    confidence_ellipse,
    convex_hull,
    polygon_area,
    sway_area,
    jerk,
    cop_stats,
)
from .balance import (
    BalanceSession,
    static_balance_quality,
    classify_sway,
    vibration_range,
)
from .cycles import (
    CycleDetector,
    detect_cycles,
    detect_fatigue,
    fatigue_interpretation,
    average_velocity,
    segment_cycles,
    find_best_stable_region,
    safe_extended_start_x,
    safe_extended_end_x,
    detect_outlier_edges,
    rate_of_force_development,
)
from .jump import (
    moving_average,
    detect_angle_event,
    find_previous_peak,
    find_next_peak,
    find_amortization_end,
    find_candidate_minima,
    is_jump_like_detailed,
    analyze_jump,
    detect_jumps,
)
from .angles import (
    JOINT_TRIPLETS,
    joint_angle,
    compute_joint_angle,
    compute_joint_angles,
    build_jump_frames,
)
from .sensor import (
    parse_packet,
    split_packets,
    encode_samples,
    command_packet,
    samples_to_points,
)
from .config import DEFAULT_CONFIG, get_settings, load_config, save_config
from .schema import create_result, save_json, load_json
from .export import (
    export_samples_csv,
    load_samples_csv,
    load_motion_csv,
    export_cycles_csv,
    export_frames_json,
    load_frames_json,
    export_summary_json,
    to_dataframe,
)
from .plotting import plot_spectrum, plot_cop, plot_force_cycles, plot_jump

__all__ = [
    # Signal processing
    "FilterState",
    "butterworth_coefficients",
    "filter_sample",
    "filter_block",
    "new_cascade",
    "validate_filter_params",
    "frequency_spectrum",
    "find_spectral_peaks",
    "peak_prominence",
    "dominant_frequency",
    "frequency_features",
    # Balance
    "acceleration_to_displacement",
    "rms_sway",
    "confidence_ellipse",
    "convex_hull",
    "polygon_area",
    "sway_area",
    "jerk",
    "cop_stats",
    "BalanceSession",
    "static_balance_quality",
    "classify_sway",
    "vibration_range",
    # Force cycles
    "CycleDetector",
    "detect_cycles",
    "detect_fatigue",
    "fatigue_interpretation",
    "average_velocity",
    "segment_cycles",
    "find_best_stable_region",
    "safe_extended_start_x",
    "safe_extended_end_x",
    "detect_outlier_edges",
    "rate_of_force_development",
    # Jumps
    "moving_average",
    "detect_angle_event",
    "find_previous_peak",
    "find_next_peak",
    "find_amortization_end",
    "find_candidate_minima",
    "is_jump_like_detailed",
    "analyze_jump",
    "detect_jumps",
    "JOINT_TRIPLETS",
    "joint_angle",
    "compute_joint_angle",
    "compute_joint_angles",
    "build_jump_frames",
    # Sensor
    "parse_packet",
    "split_packets",
    "encode_samples",
    "command_packet",
    "samples_to_points",
    # Config & I/O
    "DEFAULT_CONFIG",
    "get_settings",
    "load_config",
    "save_config",
    "create_result",
    "save_json",
    "load_json",
    "export_samples_csv",
    "load_samples_csv",
    "load_motion_csv",
    "export_cycles_csv",
    "export_frames_json",
    "load_frames_json",
    "export_summary_json",
    "to_dataframe",
    # Plotting
    "plot_spectrum",
    "plot_cop",
    "plot_force_cycles",
    "plot_jump",
]
