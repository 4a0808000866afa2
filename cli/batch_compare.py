from __future__ import annotations
import argparse
import os
import logging
from pathlib import Path
from typing import List, Tuple
from dotenv import load_dotenv
from tqdm import tqdm

# Load environment variables first
load_dotenv()

from models.comparison_stats import ComparisonStats
from models.exceptions import ComparisonError
from pipeline.compare_images import compare, DEFAULT_THRESHOLD
from services.image_service import ImageService

logger = logging.getLogger(__name__)

OVERLAY_DIR = os.getenv("OVERLAY_DIR_PATH", "data/overlays")


def overlay_target(image_path: str | Path, gallery_dir: str | Path, output_dir: str | Path) -> Path:
    relative = Path(image_path).relative_to(gallery_dir)
    return Path(output_dir) / relative.parent / f"{relative.stem}_diff.png"


def compare_gallery(
    reference_path: str | Path,
    gallery_dir: str | Path,
    threshold: int = DEFAULT_THRESHOLD,
    *,
    output_dir: str | Path | None = OVERLAY_DIR,
    recursive: bool = False,
    image_service: ImageService = ImageService(),
) -> List[Tuple[Path, ComparisonStats]]:
    """
    Compare every image in *gallery_dir* against one reference.

    Overlays are written as <stem>_diff.png into *output_dir* (skipped when None),
    under the same sub-folder the image has inside *gallery_dir*.
    Images that fail to compare are logged and left out of the result.
    Returns (path, stats) pairs sorted by descending percentage.
    """
    reference = image_service.load(reference_path)
    if output_dir is not None:
        Path(output_dir).mkdir(parents=True, exist_ok=True)

    results = []
    for img in tqdm(image_service.stream_gallery(gallery_dir, recursive=recursive), desc="compare", ncols=70):
        if img.path is not None and Path(img.path).resolve() == Path(reference_path).resolve():
            continue
        try:
            result = compare(reference, img, threshold)
        except ComparisonError as err:
            logger.warning(f"Skipping {img.path}: {err}")
            continue

        if output_dir is not None:
            result.overlay.path = overlay_target(img.path, gallery_dir, output_dir)
            result.overlay.path.parent.mkdir(parents=True, exist_ok=True)
            image_service.save(result.overlay)

        logger.info(f"{Path(img.path).name}: {result.stats.summary()} [{result.stats.severity.name}]")
        results.append((Path(img.path), result.stats))

    results.sort(key=lambda item: item[1].percentage, reverse=True)
    return results


def log_results(results: List[Tuple[Path, ComparisonStats]]) -> None:
    logger.info("=" * 60)
    logger.info(f"{'file':<30} {'pixels':>10} {'%':>8}  severity")
    for path, stats in results:
        logger.info(f"{path.name:<30} {stats.differing_pixels:>10} "
                    f"{stats.percentage_display:>8.2f}  {stats.severity.name}")
    logger.info("=" * 60)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Compare a folder of images against a reference image.")
    parser.add_argument("reference", type=Path, help="Reference image")
    parser.add_argument("gallery", type=Path, help="Folder of test images")
    parser.add_argument("--threshold", type=int, default=DEFAULT_THRESHOLD,
                        help=f"Gray difference cut-off 0-255 (default: {DEFAULT_THRESHOLD})")
    parser.add_argument("--output-dir", type=Path, default=Path(OVERLAY_DIR),
                        help="Where overlays are written")
    parser.add_argument("--no-save", action="store_true", help="Do not write overlays")
    parser.add_argument("--recursive", action="store_true", help="Descend into sub-folders")
    return parser


def main(argv=None) -> int:
    # --- Centralized Logging Configuration ---
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
        datefmt='%H:%M:%S'
    )
    args = build_parser().parse_args(argv)
    if not 0 <= args.threshold <= 255:
        logger.error(f"Threshold must be in [0, 255], got {args.threshold}")
        return 2

    try:
        results = compare_gallery(
            args.reference,
            args.gallery,
            args.threshold,
            output_dir=None if args.no_save else args.output_dir,
            recursive=args.recursive,
        )
    except (ComparisonError, NotADirectoryError) as err:
        logger.error(f"Batch comparison failed: {err}")
        return 1

    log_results(results)
    logger.info(f"Compared {len(results)} images against {args.reference}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
