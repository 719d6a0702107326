from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

import cv2

from core.config import load_config
from inference.errors import PipelineError
from inference.pipeline import LeafClassifier
from inference.preprocess import resize_to_input
from schemas import Frame
from ui.overlay import blend_heatmap


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m scripts.classify_image",
        description=(
            "Classify a single leaf photo and optionally write an occlusion\n"
            "heatmap showing which regions drove the top prediction."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("image", help="Path to the photo (any format OpenCV reads)")
    parser.add_argument(
        "--config",
        default="config/default.yaml",
        help="YAML config file (default: config/default.yaml)",
    )
    parser.add_argument(
        "--top-k",
        type=int,
        default=None,
        help="How many predictions to print (default: model.top_k from config)",
    )
    parser.add_argument(
        "--heatmap",
        nargs="?",
        const="",
        default=None,
        metavar="OUT.png",
        help=(
            "Write the occlusion heatmap blended over the resized photo "
            "(no value: <paths.output_dir>/<image stem>_heatmap.png)"
        ),
    )
    parser.add_argument("--patch-size", type=int, default=None)
    parser.add_argument("--stride", type=int, default=None)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    log = logging.getLogger("leafscan.classify_image")

    parser = build_arg_parser()
    args = parser.parse_args(argv)
    for flag, value in (("--patch-size", args.patch_size), ("--stride", args.stride)):
        if value is not None and value <= 0:
            parser.error(f"{flag} must be positive")

    cfg = load_config(args.config)
    if args.top_k is not None:
        if args.top_k <= 0:
            parser.error("--top-k must be positive")
        cfg.model.top_k = args.top_k

    image_path = Path(args.image)
    img = cv2.imread(str(image_path), cv2.IMREAD_COLOR)
    if img is None:
        print(f"Could not read image: {image_path}")
        return 2

    classifier = LeafClassifier.from_config(cfg)
    try:
        classifier.load_model()
        classifier.load_labels()

        frame = Frame(frame_id=0, ts=0.0, image=img, pixel_format="BGR", camera_id="file")
        result = classifier.classify_image(frame)

        print(f"{image_path.name}  ({img.shape[1]}x{img.shape[0]})")
        for rank_no, pred in enumerate(result.predictions, start=1):
            print(f"  {rank_no}. {pred.display_text()}  [index {pred.index}]")
        if not result.predictions:
            print("  No result")
        print(f"  Inference Time: {result.inference_ms:.1f} ms, FPS: {result.fps:.1f}")

        if args.heatmap is not None:
            log.info("Generating occlusion heatmap (this runs one pass per tile)")
            heatmap = classifier.generate_occlusion_heatmap(
                frame,
                patch_size=args.patch_size,
                stride=args.stride,
            ).result()
            if heatmap is None:
                print("Heatmap generation failed")
                return 1

            base = cv2.cvtColor(
                resize_to_input(img, "BGR", cfg.model.input),
                cv2.COLOR_RGBA2BGR,
            )
            out_path = (
                Path(args.heatmap)
                if args.heatmap
                else Path(cfg.paths.output_dir) / f"{image_path.stem}_heatmap.png"
            )
            out_path.parent.mkdir(parents=True, exist_ok=True)
            cv2.imwrite(str(out_path), blend_heatmap(base, heatmap))
            print(f"  Heatmap written to {out_path}")

    except PipelineError as exc:
        log.error("Classification failed (%s): %s", exc.kind.value, exc)
        return 1
    finally:
        classifier.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
