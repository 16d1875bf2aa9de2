"""
Command line interface and main workflow orchestration.
"""

import argparse
import json
import os
import sys

from .config import EngineConfig
from .errors import ConfigError, PermissionDenied
from .filesystem import LocalGallery, StorageUsage
from .reporting import make_report
from .session import PhotoSweeper


def parse_args(argv=None):
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        description="Find the photos most worth deleting using on-device image analysis",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "folder", type=str, help="Root folder to scan recursively for images"
    )

    parser.add_argument(
        "--k", type=int, default=9, help="Photos to select per round. Default: 9"
    )

    parser.add_argument(
        "--rounds",
        type=int,
        default=1,
        help="Selection rounds; later rounds never repeat earlier photos. Default: 1",
    )

    parser.add_argument(
        "--threshold",
        type=int,
        default=10,
        help="Near-duplicate Hamming distance threshold in bits. Default: 10",
    )

    parser.add_argument(
        "--batch-size",
        type=int,
        default=10,
        help="Photos analyzed per batch. Default: 10",
    )

    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Worker threads. Default: one per batch slot",
    )

    parser.add_argument(
        "--max-assets",
        type=int,
        default=10000,
        help="Maximum number of photos to analyze. Default: 10000",
    )

    parser.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="PATH",
        help="Photo to never select (repeatable)",
    )

    parser.add_argument(
        "--aesthetic",
        action="store_true",
        help="Score aesthetic quality with a CLIP/SigLIP model",
    )

    parser.add_argument(
        "--model",
        type=str,
        default="google/siglip2-base-patch16-naflex",
        help="Hugging Face model for --aesthetic. Default: google/siglip2-base-patch16-naflex",
    )

    parser.add_argument(
        "--cpu",
        action="store_true",
        help="Run the aesthetic model on CPU even when a GPU is available",
    )

    parser.add_argument(
        "--inplace",
        action="store_true",
        help="Delete selected photos immediately (default is dry run)",
    )

    parser.add_argument(
        "--report",
        type=str,
        default=None,
        help="Path to output JSON report. Default: <folder>/photosweep_report.json",
    )

    return parser.parse_args(argv)


def validate_args(args):
    """Validate command line arguments"""
    if not os.path.isdir(args.folder):
        print(f"Error: {args.folder} is not a valid directory")
        sys.exit(1)

    if args.rounds < 1:
        print(f"Error: --rounds must be at least 1, got {args.rounds}")
        sys.exit(1)

    if args.report is None:
        args.report = os.path.join(args.folder, "photosweep_report.json")

    args.exclude = [os.path.abspath(p) for p in args.exclude]


def print_config(args, config: EngineConfig):
    """Print configuration summary"""
    print("=" * 60)
    print("PhotoSweep - On-device Photo Cleanup")
    print("=" * 60)
    print(f"Folder: {args.folder}")
    print(f"Photos per round: {config.selection_size}")
    print(f"Rounds: {args.rounds}")
    print(f"Near-duplicate threshold: {config.similarity_threshold} bits")
    print(f"Batch size: {config.batch_size}")
    print(f"Workers: {config.workers}")
    print(f"Max photos: {config.max_assets}")
    print(f"Excluded photos: {len(args.exclude)}")
    print(f"Aesthetic model: {args.model if args.aesthetic else 'disabled'}")
    print(
        f"Mode: {'IN-PLACE (will delete)' if args.inplace else 'DRY RUN (no deletion)'}"
    )
    print(f"Report: {args.report}")
    print("=" * 60)
    print()


def print_storage(storage: StorageUsage):
    print(
        f"Storage: {storage.used_space_gb} used of {storage.total_space_gb} "
        f"({storage.used_percentage:.1f}%)"
    )


def build_aesthetic_scorer(args):
    """Set up the optional model-backed scorer and report its device"""
    # torch and transformers load only when --aesthetic is given
    from .hardware import get_device_info, select_device
    from .models import ClipAestheticScorer

    device = select_device(prefer_gpu=not args.cpu)
    info = get_device_info(device)
    print(f"Aesthetic model device: {info['name']}")
    if device.type == "cuda":
        print(f"  Total Memory: {info['total_memory']:.1f} GB")
        print(f"  Free Memory:  {info['free_memory']:.1f} GB")
    return ClipAestheticScorer(model_name=args.model, device=device)


def main(argv=None):
    """Main entry point for the CLI"""
    args = parse_args(argv)
    validate_args(args)

    try:
        config = EngineConfig.from_args(args)
    except ConfigError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print_config(args, config)

    gallery = LocalGallery(args.folder)
    aesthetic_scorer = build_aesthetic_scorer(args) if args.aesthetic else None
    sweeper = PhotoSweeper(gallery, config, aesthetic_scorer=aesthetic_scorer)

    # Step 1: Storage usage
    print("[1/5] Reading storage usage...")
    print_storage(sweeper.storage_usage())
    print()

    # Step 2: Analyze photos
    print("[2/5] Analyzing photos...")
    try:
        summary = sweeper.scan()
    except PermissionDenied as e:
        print(f"Error: {e}")
        sys.exit(1)

    if summary.analyzed == 0:
        print("No readable images found. Exiting.")
        sys.exit(0)

    print(f"Analyzed {summary.analyzed} of {summary.total} photos")
    if summary.skipped:
        print(f"Skipped {len(summary.skipped)} unreadable photos")
    print()

    # Step 3: Select candidates
    print("[3/5] Selecting deletion candidates...")
    rounds = []
    for number in range(1, args.rounds + 1):
        selection = sweeper.select(excluded_ids=args.exclude)
        if not selection:
            print(f"Round {number}: no candidates left")
            break
        rounds.append(selection)
        print(f"Round {number}:")
        for photo in selection:
            mark = f" [{photo.mark}]" if photo.mark else ""
            print(f"  {photo.score:6.1f}  {photo.asset_id}{mark}")
    print()

    # Step 4: Generate report
    print("[4/5] Generating report...")
    report = make_report(rounds, summary, sweeper.storage_usage(), config)

    os.makedirs(os.path.dirname(os.path.abspath(args.report)), exist_ok=True)
    with open(args.report, "w") as f:
        json.dump(report, f, indent=2)

    print(f"Report saved to: {args.report}\n")

    print("Summary:")
    print(f"  Total images scanned: {report['total_images']}")
    print(f"  Images analyzed: {report['analyzed_images']}")
    print(f"  Photos selected: {report['total_selected']}")

    # Step 5: Delete if inplace
    if args.inplace:
        print("\n[5/5] Deleting selected photos...")
        ids = [asset_id for selection in rounds for asset_id in selection.ids]
        result = gallery.delete_by_ids(ids)
        sweeper.confirm_deletion(result.removed_ids)

        print(f"\nCleanup Summary:")
        print(f"  Total files processed: {result.total_attempted}")
        print(f"  Successfully deleted: {len(result.deleted)}")
        print(f"  Already removed: {len(result.already_deleted)}")
        print(f"  Actual errors: {len(result.errors)}")

        if result.errors:
            print(f"\nEncountered {len(result.errors)} real errors:")
            for err in result.error_details:
                print(f"  - {err}")
            if result.has_more_errors:
                print(f"  ... and {len(result.errors) - len(result.error_details)} more")
        elif result.deleted:
            print(f"✓ Successfully deleted {len(result.deleted)} photos")
        print_storage(sweeper.storage_usage())
    else:
        print("\nDry run complete. No files deleted.")
        print(f"To delete the selected photos, run again with --inplace flag")

    print("\nDone.")


if __name__ == "__main__":
    main()
