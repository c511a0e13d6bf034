#!/usr/bin/env python3
"""
Convert labeled volumes into flatmaps.

Usage:
    python process_label_volume_to_flatmaps.py --label_volume cerebellum.nii.gz --output_dir out/
    python process_label_volume_to_flatmaps.py --main main.nii.gz --flocculus fl.nii.gz \
        --paraflocculus pfl.nii.gz --output_dir out/ --intensity stats.nii.gz --points points.csv
"""

import argparse
import json
import sys
from pathlib import Path
import numpy as np
import pandas as pd
from tqdm import tqdm

sys.path.insert(0, str(Path(__file__).parent))

from flat.compositor import RegionCompositor
from flat.config import (
    DEFAULT_CONNECTIVITY,
    DEFAULT_LABEL_IDS_TO_REMOVE,
    DEFAULT_VERTICAL_OFFSETS,
    DEFAULT_VERTICAL_PADDING,
    LABEL_ID_INCISION,
    LABEL_ID_ORIGIN,
    REGION_FLOCCULUS,
    REGION_MAIN,
    REGION_PARAFLOCCULUS,
)
from flat.generator import FlatMapGenerator
from volume.loader import load_intensity_volume, load_world_points


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Unroll labeled volumes into 2D flatmaps"
    )

    inputs = parser.add_argument_group("inputs")
    inputs.add_argument(
        "--label_volume",
        help="Single-region NIfTI label volume"
    )
    inputs.add_argument("--main", help="Main region NIfTI label volume (three-region mode)")
    inputs.add_argument("--flocculus", help="Flocculus NIfTI label volume (three-region mode)")
    inputs.add_argument("--paraflocculus", help="Paraflocculus NIfTI label volume (three-region mode)")
    inputs.add_argument(
        "--intensity",
        help="Co-registered intensity volume to sample along the contours"
    )
    inputs.add_argument(
        "--points",
        help="World-space point cloud (X Y Z per line) to map onto the flatmap"
    )

    parser.add_argument(
        "--output_dir",
        required=True,
        help="Directory for the .npy rasters and metadata"
    )
    parser.add_argument(
        "--label_id_incision",
        type=int,
        default=LABEL_ID_INCISION,
        help=f"Incision landmark label (default: {LABEL_ID_INCISION})"
    )
    parser.add_argument(
        "--label_id_origin",
        type=int,
        default=LABEL_ID_ORIGIN,
        help=f"Origin landmark label (default: {LABEL_ID_ORIGIN})"
    )
    parser.add_argument(
        "--label_ids_to_remove",
        type=int,
        nargs="*",
        default=list(DEFAULT_LABEL_IDS_TO_REMOVE),
        help="Label IDs blanked out in every flatmap"
    )
    parser.add_argument(
        "--offset_sign",
        type=int,
        choices=[1, -1],
        default=1,
        help="+1: offset = i - origin, -1: offset = origin - i (default: 1)"
    )
    parser.add_argument(
        "--connectivity",
        type=int,
        choices=[4, 8],
        default=DEFAULT_CONNECTIVITY,
        help=f"Pixel connectivity of objects (default: {DEFAULT_CONNECTIVITY})"
    )
    parser.add_argument(
        "--vertical_offsets",
        type=int,
        nargs=2,
        metavar=("FLOCCULUS", "PARAFLOCCULUS"),
        default=[DEFAULT_VERTICAL_OFFSETS[REGION_FLOCCULUS], DEFAULT_VERTICAL_OFFSETS[REGION_PARAFLOCCULUS]],
        help="Vertical pixel offsets of the satellite regions"
    )
    parser.add_argument(
        "--vertical_padding",
        type=int,
        default=DEFAULT_VERTICAL_PADDING,
        help=f"Rows added below the main region (default: {DEFAULT_VERTICAL_PADDING})"
    )
    parser.add_argument(
        "--max_workers",
        type=int,
        help="Threads for slice processing (default: sequential)"
    )
    parser.add_argument(
        "--verbose_slice_parsing",
        action="store_true",
        help="Log the outcome of every slice"
    )
    parser.add_argument(
        "--disable_detailed_logging",
        action="store_true",
        help="Disable step-by-step logging"
    )
    parser.add_argument(
        "--log_dir",
        help="Directory where construction logs will be saved"
    )
    return parser


def main():
    args = build_parser().parse_args()

    three_region = any([args.main, args.flocculus, args.paraflocculus])
    if three_region and not all([args.main, args.flocculus, args.paraflocculus]):
        print("Error: --main, --flocculus and --paraflocculus must be given together")
        sys.exit(1)
    if three_region == bool(args.label_volume):
        print("Error: give either --label_volume or the three region volumes")
        sys.exit(1)

    input_paths = [args.main, args.flocculus, args.paraflocculus] if three_region else [args.label_volume]
    for path in input_paths + [args.intensity, args.points]:
        if path and not Path(path).exists():
            print(f"Error: input does not exist: {path}")
            sys.exit(1)

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    generator_kwargs = dict(
        label_id_incision=args.label_id_incision,
        label_id_origin=args.label_id_origin,
        verbose_slice_parsing=args.verbose_slice_parsing,
        enable_detailed_logging=not args.disable_detailed_logging,
        log_dir=args.log_dir,
        offset_sign=args.offset_sign,
        connectivity=args.connectivity,
        max_workers=args.max_workers,
        show_progress=args.disable_detailed_logging,
    )

    try:
        if three_region:
            print("Building region flatmap generators...")
            vertical_offsets = {
                REGION_MAIN: 0,
                REGION_FLOCCULUS: args.vertical_offsets[0],
                REGION_PARAFLOCCULUS: args.vertical_offsets[1],
            }
            pipeline = RegionCompositor.from_nifti(
                args.main,
                args.flocculus,
                args.paraflocculus,
                generator_kwargs=generator_kwargs,
                vertical_offsets=vertical_offsets,
                vertical_padding=args.vertical_padding,
                label_ids_to_remove=args.label_ids_to_remove,
            )
            creators = {
                'label': pipeline.create_label_flatmap,
                'border': pipeline.create_border_flatmap,
                'curvature': pipeline.create_curvature_flatmap,
                'coordinate': pipeline.create_coordinate_flatmap,
            }
            meta = {
                'mode': 'composite',
                'canvas_shape': list(pipeline.canvas_shape),
                'reference_region': pipeline.layout.reference,
                'regions': {name: _bounds_to_dict(b) for name, b in pipeline.bounds_by_region().items()},
                'world_x_per_column': pipeline.world_x_per_column().tolist(),
            }
        else:
            print("Building flatmap generator...")
            pipeline = FlatMapGenerator.from_nifti(args.label_volume, **generator_kwargs)
            remove = args.label_ids_to_remove
            creators = {
                'label': lambda: pipeline.create_label_flatmap(remove),
                'border': lambda: pipeline.create_border_flatmap(remove),
                'curvature': lambda: pipeline.create_curvature_flatmap(remove),
                'coordinate': lambda: pipeline.create_coordinate_flatmap(remove),
            }
            bounds = pipeline.bounds
            meta = {
                'mode': 'single',
                **_bounds_to_dict(bounds),
                'world_x_per_column': pipeline.samples_x[bounds.first_valid:bounds.last_valid + 1].tolist()
                if not bounds.is_empty else [],
            }

        if args.intensity:
            intensity, intensity_affine = load_intensity_volume(args.intensity)
            if three_region:
                creators['intensity'] = lambda: pipeline.create_intensity_flatmap(intensity, intensity_affine)
            else:
                creators['intensity'] = lambda: pipeline.create_intensity_flatmap(
                    intensity, intensity_affine, label_ids_to_remove=remove)

        with tqdm(creators.items(), desc="Rasterizing", unit="flatmap") as pbar:
            for name, create in pbar:
                pbar.set_postfix({'channel': name})
                flatmap = create()
                np.save(output_dir / f"{name}.npy", flatmap)
                meta.setdefault('flatmaps', {})[name] = {
                    'shape': list(flatmap.shape),
                    'dtype': str(flatmap.dtype),
                }

        if args.points:
            points = load_world_points(args.points)
            rows, cols = pipeline.map_world_points_to_flatmap(
                points[:, 0], points[:, 1], points[:, 2], verbose=args.verbose_slice_parsing
            )
            mapped = pd.DataFrame({
                'x': points[:, 0], 'y': points[:, 1], 'z': points[:, 2],
                'row': rows, 'column': cols,
            })
            mapped.to_csv(output_dir / "mapped_points.csv", index=False)
            n_mapped = int(np.count_nonzero(~np.isnan(rows)))
            meta['points'] = {'total': len(points), 'mapped': n_mapped}
            print(f"Mapped {n_mapped}/{len(points)} points")

    except Exception as e:
        print(f"❌ Error: {e}")
        sys.exit(1)

    with open(output_dir / "meta.json", 'w') as f:
        json.dump(meta, f, indent=2)

    print(f"\nFlatmaps written to: {output_dir}")


def _bounds_to_dict(bounds) -> dict:
    return {
        'first_valid_slice': bounds.first_valid,
        'last_valid_slice': bounds.last_valid,
        'top_extent': bounds.top_extent,
        'bottom_extent': bounds.bottom_extent,
    }


if __name__ == "__main__":
    main()
