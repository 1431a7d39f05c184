#!/usr/bin/env python3
"""CLI: decode motion files (.npy RIC / joints JSON / RIC JSON) and summarize or export them."""

import argparse
import json
import logging
import sys
from concurrent.futures import ProcessPoolExecutor, as_completed
from pathlib import Path

from .loader import LOADERS, load_path

log = logging.getLogger(__name__)

INPUT_SUFFIXES = (".npy", ".json")


def gather_inputs(paths):
    """Resolve input paths to a list of .npy / .json files."""
    files = []
    for p in paths:
        p = Path(p)
        if p.is_file() and p.suffix.lower() in INPUT_SUFFIXES:
            files.append(p)
        elif p.is_dir():
            files.extend(sorted(f for f in p.iterdir() if f.suffix.lower() in INPUT_SUFFIXES))
        else:
            log.warning("Skipping %s (not a .npy/.json file or directory)", p)
    return files


def clip_to_dict(clip, max_frames=None):
    """JSON-serializable export of a decoded clip."""
    frames = clip.frames if max_frames is None else clip.frames[:max_frames]
    trajectory = clip.trajectory if max_frames is None else clip.trajectory[:max_frames]
    topo = clip.topology
    return {
        "source": clip.source,
        "variant": clip.variant,
        "fps": clip.fps,
        "joints_num": clip.joints_num,
        "height_offset": clip.height_offset,
        "bbox": {"min": clip.bbox_min.tolist(), "max": clip.bbox_max.tolist()},
        "frames": frames.round(6).tolist(),
        "trajectory": trajectory.round(6).tolist(),
        "topology": {
            "chains": {name: list(chain) for name, chain in zip(topo.chain_names, topo.chains)},
            "joint_colors": list(topo.joint_colors),
            "bones": [[b.parent, b.child, b.color] for b in topo.bones],
        },
    }


def summarize(clip):
    ext = clip.bbox_max - clip.bbox_min
    return (f"{clip.num_frames} frames, {clip.joints_num} joints @ {clip.fps:g} fps, "
            f"extent x={ext[0]:.3f} y={ext[1]:.3f} z={ext[2]:.3f}")


def convert_one(args):
    """Wrapper for ProcessPoolExecutor. Returns (path, summary, error)."""
    path, output_path, kind, fps, max_frames = args
    outcome = load_path(path, kind=kind, fps=fps)
    if not outcome.ok:
        return str(path), None, f"{outcome.kind.value}: {outcome.reason}"
    clip = outcome.clip
    if output_path is not None:
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        Path(output_path).write_text(json.dumps(clip_to_dict(clip, max_frames)))
    return str(path), summarize(clip), None


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Decode motion-capture files into normalized joint positions"
    )
    parser.add_argument("input", nargs="+", help="Input .npy/.json file(s) or directory")
    parser.add_argument("--kind", choices=["auto"] + sorted(LOADERS), default="auto",
                        help="Input encoding (default: detect from suffix and keys)")
    parser.add_argument("--fps", type=float, default=None,
                        help="Override playback FPS (default: payload value or 30)")
    parser.add_argument("--output-dir", type=str, default=None,
                        help="Write normalized <stem>.json files here")
    parser.add_argument("--workers", type=int, default=1,
                        help="Number of parallel workers (default: 1)")
    parser.add_argument("--overwrite", action="store_true",
                        help="Overwrite existing output files")
    parser.add_argument("--max-frames", type=int, default=None,
                        help="Truncate exported frames to N")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(levelname)s | %(message)s")

    files = gather_inputs(args.input)
    if not files:
        log.error("No .npy/.json files found.")
        return 1

    output_dir = Path(args.output_dir) if args.output_dir else None

    tasks = []
    for f in files:
        out_path = None
        if output_dir is not None:
            out_path = output_dir / f"{f.stem}.json"
            if out_path.exists() and not args.overwrite:
                print(f"Skipping {f.name} (exists, use --overwrite)")
                continue
            out_path = str(out_path)
        tasks.append((str(f), out_path, args.kind, args.fps, args.max_frames))

    if not tasks:
        print("Nothing to do.")
        return 0

    failed = 0

    def report(name, summary, err):
        nonlocal failed
        if err:
            failed += 1
            print(f"FAIL: {Path(name).name}: {err}", file=sys.stderr)
        else:
            print(f"OK: {Path(name).name}: {summary}")

    if args.workers <= 1:
        for task in tasks:
            report(*convert_one(task))
    else:
        with ProcessPoolExecutor(max_workers=args.workers) as pool:
            futures = {pool.submit(convert_one, t): t for t in tasks}
            for future in as_completed(futures):
                report(*future.result())

    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
