"""Command-line interface for myomotion.

Provides subcommands for offline analysis of recorded sessions:

    myomotion spectrum samples.csv --cutoff 5 --output spectrum.json
    myomotion cycles force.csv --plot cycles.png --csv cycles.csv
    myomotion cycles force.csv --batch --work-load 20
    myomotion balance motion.csv --output balance.json
    myomotion jump frames.json --joint knee --side right
    myomotion decode capture.bin --output force.csv
"""

import argparse
import copy
import logging
import sys
from pathlib import Path
from importlib.metadata import version as pkg_version, PackageNotFoundError

import numpy as np


def _get_version() -> str:
    """Return package version without importing the full myomotion package."""
    try:
        return pkg_version("myomotion")
    except PackageNotFoundError:
        # Fallback for editable/local runs where metadata may be unavailable.
        return "0.0.0+local"


def _setup_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _load_sections(args) -> dict:
    from .config import DEFAULT_CONFIG, load_config
    if getattr(args, "config", None):
        return load_config(args.config)
    return copy.deepcopy(DEFAULT_CONFIG)


def _infer_sample_rate(points) -> float:
    times = np.array([p[0] for p in points], dtype=float)
    if len(times) < 2:
        raise ValueError("Need at least two samples to infer the sample rate")
    step = float(np.median(np.diff(times)))
    if step <= 0:
        raise ValueError("Timestamps must be increasing to infer the sample rate")
    return 1000.0 / step


def _save_figure(fig, path: str):
    import matplotlib.pyplot as plt
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    print(f"  Plot: {path}")


def cmd_spectrum(args):
    """Amplitude spectrum and dominant frequency of a sample file."""
    from .export import load_samples_csv
    from .filters import filter_block
    from .schema import create_result, save_json
    from .spectrum import dominant_frequency, frequency_spectrum

    cfg = _load_sections(args)
    spec_cfg = cfg["spectrum"]
    points = load_samples_csv(args.csv_file)
    fs = args.sample_rate or _infer_sample_rate(points)
    cutoff = args.cutoff if args.cutoff is not None else cfg["filter"]["cutoff_frequency"]
    values = [p[1] for p in points]
    if not args.no_filter:
        values = filter_block(values, cutoff, cfg["filter"]["order"], fs)

    spectrum = frequency_spectrum(values, fs, time_window=args.window,
                                  discard_seconds=spec_cfg["discard_seconds"])
    spectrum["dominant_frequency"] = dominant_frequency(
        spectrum["frequencies"], spectrum["amplitudes"],
        low_band=spec_cfg["low_band"],
        high_band=spec_cfg["high_band"],
        amplitude_margin=spec_cfg["amplitude_margin"],
        prominence_threshold=spec_cfg["prominence_threshold"],
        prominence_window=spec_cfg["prominence_window"],
    )
    print(f"{len(points)} samples at {fs:.1f} Hz")
    print(f"  Dominant frequency: {spectrum['dominant_frequency']:.3f} Hz")

    output = args.output or str(Path(args.csv_file).with_suffix(".spectrum.json"))
    save_json(create_result("spectrum", spectrum, {"input": args.csv_file, "sample_rate": fs}), output)
    print(f"Saved to {output}")

    if args.plot:
        from .plotting import plot_spectrum
        _save_figure(plot_spectrum(spectrum), args.plot)


def cmd_cycles(args):
    """Detect force cycles and fatigue in a sample file."""
    from .cycles import detect_cycles, segment_cycles
    from .export import export_cycles_csv, export_summary_json, load_samples_csv
    from .schema import create_result, save_json

    cfg = _load_sections(args)
    force_cfg = cfg["force"]
    work_load = args.work_load if args.work_load is not None else force_cfg.get("work_load")
    points = load_samples_csv(args.csv_file)

    if args.batch:
        result = segment_cycles(
            points,
            baseline=args.baseline,
            cycles_to_average=force_cfg["cycles_to_average"],
            min_cycle_amplitude=force_cfg["min_cycle_amplitude"],
            min_cycle_duration=force_cfg["min_cycle_duration"],
            work_load=work_load,
        )
        cycles = result["cycles"]
        kind = "segments"
        print(f"{len(result['segments'])} segments, {len(cycles)} cycles")
    else:
        result = detect_cycles(points, force_cfg, work_load=work_load)
        cycles = result["all_cycles"]
        kind = "cycles"
        fatigue = result["fatigue"]
        print(f"{result['cycle_count']} cycles")
        if result["avg_duration"] is not None:
            print(f"  Mean duration: {result['avg_duration']:.0f} ms, "
                  f"amplitude: {result['avg_amplitude']:.2f}")
        print(f"  Fatigue: {'yes' if fatigue['is_fatigued'] else 'no'} "
              f"{fatigue['codes']}".rstrip())
        if fatigue["interpretation"]:
            print(f"  {fatigue['interpretation']}")

    output = args.output or str(Path(args.csv_file).with_suffix(f".{kind}.json"))
    save_json(create_result(kind, result, {"input": args.csv_file, "work_load": work_load}), output)
    print(f"Saved to {output}")

    if args.csv:
        export_cycles_csv(cycles, args.csv)
        print(f"  CSV: {args.csv}")
    if args.summary and not args.batch:
        export_summary_json(result, "cycles", args.summary)
        print(f"  Summary: {args.summary}")
    if args.plot:
        from .plotting import plot_force_cycles
        _save_figure(plot_force_cycles(points, cycles), args.plot)


def cmd_balance(args):
    """Replay a motion recording through a balance session."""
    from .balance import BalanceSession
    from .export import export_summary_json, load_motion_csv
    from .schema import create_result, save_json

    cfg = _load_sections(args)
    samples = load_motion_csv(args.csv_file)
    session = BalanceSession(cfg["balance"], cfg["spectrum"])
    stored = sum(1 for s in samples if session.process(s))
    analysis = session.stop()

    print(f"{len(samples)} samples, {stored} analysed")
    if not session.is_calibrated:
        print(f"  Calibration not reached (last status: {session.log or 'none'})")
    cop = analysis["cop"]
    print(f"  RMS ML/AP: {cop['rms_ml']:.3f} / {cop['rms_ap']:.3f} cm")
    print(f"  Sway area: {cop['cop_area']['value']:.3f} cm2, "
          f"ellipse: {cop['ellipse']['area']:.3f} cm2")
    for axis in ("ml", "ap"):
        print(f"  Dominant {axis.upper()}: {analysis['frequency'][axis]['dominant_frequency']:.3f} Hz")

    output = args.output or str(Path(args.csv_file).with_suffix(".balance.json"))
    save_json(create_result("balance", analysis, {"input": args.csv_file}), output)
    print(f"Saved to {output}")

    if args.summary:
        export_summary_json(analysis, "balance", args.summary)
        print(f"  Summary: {args.summary}")
    if args.plot:
        from .plotting import plot_cop
        _save_figure(plot_cop(cop), args.plot)


def cmd_jump(args):
    """Detect jumps in jump or pose frames."""
    from .angles import build_jump_frames
    from .export import load_frames_json, to_dataframe
    from .jump import detect_jumps
    from .schema import create_result, save_json

    cfg = _load_sections(args)
    jump_cfg = cfg["jump"]
    joint = args.joint or jump_cfg["joint"]
    side = args.side or jump_cfg["side"]

    frames = load_frames_json(args.json_file)
    if frames and "keypoints" in frames[0]:
        frames = build_jump_frames(frames, joint=joint, side=side)
        print(f"Built {len(frames)} {side} {joint} frames from pose data")

    jumps = detect_jumps(frames, jump_cfg)
    print(f"{len(jumps)} jump(s)")
    for i, j in enumerate(jumps, 1):
        print(f"  #{i}: flight {j['flight_time']:.3f} s, height {j['height'] * 100:.1f} cm, "
              f"RSI {j['rsi']:.2f}")

    output = args.output or str(Path(args.json_file).with_suffix(".jumps.json"))
    save_json(create_result("jump", {"jumps": jumps}, {"input": args.json_file,
                                                       "joint": joint, "side": side}), output)
    print(f"Saved to {output}")

    if args.csv:
        to_dataframe(jumps, "jumps").to_csv(args.csv, index=False, float_format="%.4f")
        print(f"  CSV: {args.csv}")
    if args.plot:
        from .plotting import plot_jump
        _save_figure(plot_jump(frames, jumps), args.plot)


def cmd_decode(args):
    """Decode a raw sensor capture into a sample CSV."""
    from .export import export_samples_csv
    from .sensor import parse_packet, samples_to_points, split_packets

    path = Path(args.capture)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    samples = []
    n_packets = 0
    for raw in split_packets(path.read_bytes()):
        if len(raw) < 2:
            logging.getLogger(__name__).warning(f"Ignoring {len(raw)}-byte trailing fragment")
            continue
        packet = parse_packet(raw)
        n_packets += 1
        if packet["low_power"]:
            print("  Sensor reported low power")
        if packet["kind"] == "weight":
            samples.extend(packet["samples"])

    points = samples_to_points(samples)
    output = args.output or str(path.with_suffix(".csv"))
    export_samples_csv(points, output)
    print(f"{n_packets} packets, {len(points)} samples")
    print(f"Saved to {output}")


def main():
    parser = argparse.ArgumentParser(
        prog="myomotion",
        description="Balance, force-cycle and jump analysis toolkit",
    )
    parser.add_argument("--version", action="version", version=f"myomotion {_get_version()}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")

    sub = parser.add_subparsers(dest="command", help="Available commands")

    # spectrum
    p_spec = sub.add_parser("spectrum", help="Amplitude spectrum of a timestamp,value CSV")
    p_spec.add_argument("csv_file", help="Samples CSV (timestamp in ms, value)")
    p_spec.add_argument("-o", "--output", help="Output JSON path")
    p_spec.add_argument("--sample-rate", type=float, help="Sampling rate Hz (default: from timestamps)")
    p_spec.add_argument("--cutoff", type=float, help="Low-pass cutoff Hz (default: config)")
    p_spec.add_argument("--no-filter", action="store_true", help="Skip low-pass filtering")
    p_spec.add_argument("--window", type=float, help="Analyse only the last N seconds")
    p_spec.add_argument("--config", help="Config file (JSON/YAML)")
    p_spec.add_argument("--plot", help="Save spectrum plot to this path")
    p_spec.set_defaults(func=cmd_spectrum)

    # cycles
    p_cyc = sub.add_parser("cycles", help="Detect force cycles and fatigue")
    p_cyc.add_argument("csv_file", help="Force CSV (timestamp in ms, value in kg)")
    p_cyc.add_argument("-o", "--output", help="Output JSON path")
    p_cyc.add_argument("--batch", action="store_true",
                       help="Baseline-crossing segmentation instead of streaming detection")
    p_cyc.add_argument("--baseline", type=float, default=0.0, help="Baseline for --batch (default: 0)")
    p_cyc.add_argument("--work-load", type=float, help="Work load in kg for velocity normalisation")
    p_cyc.add_argument("--csv", help="Export cycles to this CSV path")
    p_cyc.add_argument("--summary", help="Export summary JSON to this path")
    p_cyc.add_argument("--config", help="Config file (JSON/YAML)")
    p_cyc.add_argument("--plot", help="Save cycles plot to this path")
    p_cyc.set_defaults(func=cmd_cycles)

    # balance
    p_bal = sub.add_parser("balance", help="Static balance analysis of a motion CSV")
    p_bal.add_argument("csv_file", help="Motion CSV (timestamp, interval_ms, acc_*, acc_g_*)")
    p_bal.add_argument("-o", "--output", help="Output JSON path")
    p_bal.add_argument("--summary", help="Export summary JSON to this path")
    p_bal.add_argument("--config", help="Config file (JSON/YAML)")
    p_bal.add_argument("--plot", help="Save COP plot to this path")
    p_bal.set_defaults(func=cmd_balance)

    # jump
    p_jump = sub.add_parser("jump", help="Detect jumps in jump or pose frames")
    p_jump.add_argument("json_file", help="Frames JSON (list or {'frames': [...]})")
    p_jump.add_argument("-o", "--output", help="Output JSON path")
    p_jump.add_argument("--joint", choices=["knee", "hip", "elbow", "shoulder"],
                        help="Joint for pose input (default: config)")
    p_jump.add_argument("--side", choices=["left", "right"], help="Side for pose input (default: config)")
    p_jump.add_argument("--csv", help="Export jump metrics to this CSV path")
    p_jump.add_argument("--config", help="Config file (JSON/YAML)")
    p_jump.add_argument("--plot", help="Save jump plot to this path")
    p_jump.set_defaults(func=cmd_jump)

    # decode
    p_dec = sub.add_parser("decode", help="Decode a raw force-sensor capture to CSV")
    p_dec.add_argument("capture", help="Binary capture of back-to-back packets")
    p_dec.add_argument("-o", "--output", help="Output CSV path (default: capture.csv)")
    p_dec.set_defaults(func=cmd_decode)

    args = parser.parse_args()
    _setup_logging(args.verbose)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        args.func(args)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except ImportError as e:
        print(f"Missing dependency: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    main()
