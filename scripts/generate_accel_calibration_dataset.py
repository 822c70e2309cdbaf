"""
Generate Accelerometer Calibration Dataset.

This script generates static accelerometer readings at a known site for a
sensor with a known bias and an unknown scale-factor / cross-coupling matrix
Ma, with a configurable share of gross outliers. The output feeds the robust
calibrators in ``imucal.calibration``.

Measurement model:
    f_meas = ba + (I + Ma) f_true + w,    f_true = C_b^n^T (-g_n)

Output files:
    measurements.npz: specific_force (N×3), specific_force_std (N,),
        orientation (N×3×3, NaN when not recorded), quality_scores (N,),
        outlier_mask (N,), true_ma (3×3), bias (3,), site_llh (3,)
    config.json: generation parameters and summary statistics

Author: Navigation Engineering Team
Date: October 2026
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Dict, Optional

import numpy as np

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from imucal.sensors import NedPosition, gravity_norm  # noqa: E402
from imucal.sim import generate_accel_measurements, random_error_matrix  # noqa: E402

PRESETS: Dict[str, Dict] = {
    "baseline": {
        "num_measurements": 60,
        "noise_std": 1e-3,
        "outlier_ratio": 0.0,
        "include_orientation": True,
        "common_axis": False,
    },
    "outliers": {
        "num_measurements": 80,
        "noise_std": 1e-3,
        "outlier_ratio": 0.3,
        "include_orientation": True,
        "common_axis": False,
    },
    "common_axis": {
        "num_measurements": 60,
        "noise_std": 1e-3,
        "outlier_ratio": 0.2,
        "include_orientation": True,
        "common_axis": True,
    },
    "gravity_norm": {
        "num_measurements": 120,
        "noise_std": 1e-3,
        "outlier_ratio": 0.1,
        "include_orientation": False,
        "common_axis": True,
    },
}


def save_dataset(output_dir: Path, data, site: NedPosition, config: Dict) -> None:
    """Save calibration dataset to disk."""
    output_dir.mkdir(parents=True, exist_ok=True)

    n = len(data.measurements)
    orientation = np.full((n, 3, 3), np.nan)
    for k, m in enumerate(data.measurements):
        if m.has_orientation:
            orientation[k] = m.orientation

    np.savez(
        output_dir / "measurements.npz",
        specific_force=np.array([m.specific_force for m in data.measurements]),
        specific_force_std=np.array([m.specific_force_std for m in data.measurements]),
        orientation=orientation,
        quality_scores=data.quality_scores,
        outlier_mask=data.outlier_mask,
        true_ma=data.true_ma,
        bias=data.bias,
        site_llh=site.as_array(),
    )

    with open(output_dir / "config.json", "w") as f:
        json.dump(config, f, indent=2)

    print(f"\n  Saved dataset to: {output_dir}")
    print("    Files: measurements.npz, config.json")
    print(f"    Measurements: {n}")
    print(f"    Outliers: {int(np.count_nonzero(data.outlier_mask))}")


def generate_dataset(
    output_dir: Optional[str] = None,
    preset: Optional[str] = None,
    num_measurements: int = 60,
    noise_std: float = 1e-3,
    outlier_ratio: float = 0.0,
    outlier_std: float = 1.0,
    include_orientation: bool = True,
    common_axis: bool = False,
    latitude_deg: float = 22.3193,
    longitude_deg: float = 114.1694,
    height: float = 50.0,
    max_ma: float = 1e-3,
    seed: int = 42,
) -> None:
    """
    Generate an accelerometer calibration dataset.

    Args:
        output_dir: Output directory path. Default: data/sim/accel_calibration_<preset>.
        preset: Preset name from PRESETS; overrides the measurement options.
        num_measurements: Number of static readings.
        noise_std: White noise std per axis (m/s²).
        outlier_ratio: Fraction of readings turned into outliers.
        outlier_std: Std of the outlier offsets (m/s²).
        include_orientation: Record the body attitude of each reading.
        common_axis: Generate an upper-triangular Ma.
        latitude_deg: Site latitude (degrees).
        longitude_deg: Site longitude (degrees).
        height: Site height above the ellipsoid (m).
        max_ma: Largest absolute entry of the random Ma.
        seed: Random seed.
    """
    if preset is not None:
        if preset not in PRESETS:
            raise ValueError(f"Unknown preset '{preset}', choose from {sorted(PRESETS)}")
        options = PRESETS[preset]
        num_measurements = options["num_measurements"]
        noise_std = options["noise_std"]
        outlier_ratio = options["outlier_ratio"]
        include_orientation = options["include_orientation"]
        common_axis = options["common_axis"]

    if output_dir is None:
        output_dir = f"data/sim/accel_calibration_{preset or 'custom'}"

    print("\n" + "=" * 70)
    print(f"Generating Accelerometer Calibration Dataset: {Path(output_dir).name}")
    print("=" * 70)

    print("\nStep 1: Calibration site...")
    site = NedPosition.from_degrees(latitude_deg, longitude_deg, height)
    g = gravity_norm(site)
    print(f"  Latitude: {latitude_deg:.4f} deg, longitude: {longitude_deg:.4f} deg")
    print(f"  Height: {height:.1f} m")
    print(f"  Gravity norm: {g:.6f} m/s²")

    print("\nStep 2: Sensor errors...")
    rng = np.random.default_rng(seed)
    true_ma = random_error_matrix(rng, max_ma, common_axis_used=common_axis)
    print(f"  Ma (ppm):\n{np.array2string(true_ma * 1e6, precision=1)}")

    print("\nStep 3: Generating measurements...")
    data = generate_accel_measurements(
        site,
        num_measurements,
        ma=true_ma,
        noise_std=noise_std,
        outlier_ratio=outlier_ratio,
        outlier_std=outlier_std,
        include_orientation=include_orientation,
        seed=seed + 1,
    )
    print(f"  Measurements: {num_measurements}")
    print(f"  Noise: {noise_std:.2e} m/s²")
    print(f"  Outlier ratio: {outlier_ratio * 100:.1f}%")
    print(f"  Orientation recorded: {include_orientation}")

    measured_norms = np.linalg.norm(
        np.array([m.specific_force for m in data.measurements]) - data.bias, axis=1
    )
    norm_errors = measured_norms[~data.outlier_mask] - g

    config = {
        "dataset": "accel_calibration",
        "preset": preset,
        "site": {
            "latitude_deg": latitude_deg,
            "longitude_deg": longitude_deg,
            "height_m": height,
            "gravity_norm_mps2": g,
        },
        "sensor": {
            "true_ma": true_ma.tolist(),
            "bias_mps2": data.bias.tolist(),
            "common_axis": common_axis,
        },
        "measurements": {
            "count": num_measurements,
            "noise_std_mps2": noise_std,
            "outlier_ratio": outlier_ratio,
            "outlier_std_mps2": outlier_std,
            "include_orientation": include_orientation,
        },
        "statistics": {
            "inlier_norm_error_rms_mps2": float(np.sqrt(np.mean(norm_errors**2))),
        },
        "seed": seed,
    }

    save_dataset(Path(output_dir), data, site, config)

    print("\n" + "=" * 70)
    print("Dataset generation complete!")
    print("=" * 70)


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Generate Accelerometer Calibration Dataset",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Presets:
  baseline       60 oriented readings, no outliers
  outliers       80 oriented readings, 30%% outliers
  common_axis    Upper-triangular Ma, 20%% outliers
  gravity_norm   No orientation recorded, upper-triangular Ma, 10%% outliers

Examples:
  python scripts/generate_accel_calibration_dataset.py --preset outliers
  python scripts/generate_accel_calibration_dataset.py --num-measurements 200 --outlier-ratio 0.4
        """,
    )

    parser.add_argument("--output", type=str, default=None, help="Output directory")
    parser.add_argument(
        "--preset", type=str, choices=sorted(PRESETS), default=None, help="Preset configuration"
    )
    parser.add_argument("--num-measurements", type=int, default=60, help="Number of readings")
    parser.add_argument("--noise-std", type=float, default=1e-3, help="Noise std (m/s²)")
    parser.add_argument("--outlier-ratio", type=float, default=0.0, help="Outlier fraction")
    parser.add_argument("--outlier-std", type=float, default=1.0, help="Outlier std (m/s²)")
    parser.add_argument(
        "--no-orientation", action="store_true", help="Do not record body attitude"
    )
    parser.add_argument("--common-axis", action="store_true", help="Upper-triangular Ma")
    parser.add_argument("--lat", type=float, default=22.3193, help="Latitude (deg)")
    parser.add_argument("--lon", type=float, default=114.1694, help="Longitude (deg)")
    parser.add_argument("--height", type=float, default=50.0, help="Height (m)")
    parser.add_argument("--max-ma", type=float, default=1e-3, help="Largest |Ma| entry")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")

    args = parser.parse_args()

    generate_dataset(
        output_dir=args.output,
        preset=args.preset,
        num_measurements=args.num_measurements,
        noise_std=args.noise_std,
        outlier_ratio=args.outlier_ratio,
        outlier_std=args.outlier_std,
        include_orientation=not args.no_orientation,
        common_axis=args.common_axis,
        latitude_deg=args.lat,
        longitude_deg=args.lon,
        height=args.height,
        max_ma=args.max_ma,
        seed=args.seed,
    )


if __name__ == "__main__":
    main()
