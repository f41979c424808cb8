"""Command-line interface for page transcription.

Provides subcommands to transcribe a single page image, write the
preprocessed preview of a page, and transcribe a folder of pages into a CSV.
"""

import argparse
import csv
import sys
import time
from pathlib import Path

from pydantic import ValidationError

from src.ocr.document_processor import DocumentProcessor
from src.ocr.progress import ProgressEvent
from src.preprocessing.raster import encode_png
from src.utils.config import (
    PRESETS,
    SUPPORTED_LANGUAGES,
    AppConfig,
    BinarizeMode,
    ChannelMode,
    PreprocessConfig,
    RecognitionConfig,
    load_config,
)
from src.utils.errors import TranscriptionError
from src.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

_SUPPORTED_EXTENSIONS = (
    "*.png",
    "*.jpg",
    "*.jpeg",
    "*.webp",
    "*.tiff",
    "*.tif",
    "*.bmp",
)
_LANGUAGE_CHOICES = ", ".join(
    f"{code}: {name}" for code, name in SUPPORTED_LANGUAGES.items()
)
_CSV_COLUMNS = [
    "filename",
    "status",
    "width",
    "height",
    "processing_time_s",
    "text",
    "error",
]


def _find_images(input_dir: Path) -> list[Path]:
    """Find all supported page images in a directory.

    Args:
        input_dir: Directory to scan.

    Returns:
        Sorted list of image file paths.
    """
    files: list[Path] = []
    for ext in _SUPPORTED_EXTENSIONS:
        files.extend(input_dir.glob(ext))
        files.extend(input_dir.glob(ext.upper()))
    return sorted(set(files))


def build_configs(
    args: argparse.Namespace, app_config: AppConfig
) -> tuple[PreprocessConfig, RecognitionConfig]:
    """Combine the configured defaults, an optional preset and CLI overrides.

    Args:
        args: Parsed command-line arguments.
        app_config: Loaded application configuration.

    Returns:
        Validated preprocessing and recognition settings.
    """
    if args.preset:
        preprocess, recognition = PRESETS[args.preset]()
    else:
        preprocess, recognition = app_config.preprocessing, app_config.recognition

    pre = preprocess.model_dump()
    if args.crop is not None:
        top, bottom, left, right = args.crop
        pre["crop"] = {"top": top, "bottom": bottom, "left": left, "right": right}
    if args.binarize is not None:
        pre["binarize"] = args.binarize
    if args.channel is not None:
        pre["channel"] = args.channel
    if args.invert:
        pre["invert"] = True
    if args.skew is not None:
        pre["skew_degrees"] = args.skew

    rec = recognition.model_dump()
    if args.lang is not None:
        rec["language"] = args.lang
    if args.psm is not None:
        rec["page_seg_mode"] = args.psm
    if args.strips is not None:
        rec["strip_mode"] = True
        rec["strip_count"] = args.strips
    if args.no_strips:
        rec["strip_mode"] = False
    if args.overlap is not None:
        rec["overlap_fraction"] = args.overlap

    return PreprocessConfig.model_validate(pre), RecognitionConfig.model_validate(rec)


def _print_progress(event: ProgressEvent) -> None:
    if event.strip_index is None:
        label = "page"
    else:
        label = f"strip {event.strip_index + 1}/{event.strip_count}"
    print(f"\r[{event.percent:3d}%] {label}", end="", file=sys.stderr, flush=True)
    if event.percent >= 100:
        print(file=sys.stderr)


def transcribe_file(
    file_path: Path,
    processor: DocumentProcessor,
    preprocess: PreprocessConfig,
    recognition: RecognitionConfig,
    verbose: bool = False,
) -> dict[str, object]:
    """Transcribe one page image.

    Args:
        file_path: Path to the page image.
        processor: Document processor instance.
        preprocess: Preprocessing settings.
        recognition: Recognition settings.
        verbose: Whether to show progress on stderr.

    Returns:
        Row dictionary with image size, timing and transcription.
    """
    start_time = time.time()
    image = processor.load_image(file_path)
    transcription = processor.transcribe(
        image,
        preprocess,
        recognition,
        on_progress=_print_progress if verbose else None,
    )
    return {
        "filename": file_path.name,
        "status": "success",
        "width": image.width,
        "height": image.height,
        "processing_time_s": round(time.time() - start_time, 2),
        "text": transcription.text,
        "error": None,
    }


def process_folder(
    input_dir: Path,
    output_csv: Path,
    app_config: AppConfig,
    preprocess: PreprocessConfig,
    recognition: RecognitionConfig,
    verbose: bool = False,
) -> dict[str, int]:
    """Transcribe all page images in a folder and export results to CSV.

    Args:
        input_dir: Directory containing page images.
        output_csv: Path for the output CSV file.
        app_config: Loaded application configuration.
        preprocess: Preprocessing settings applied to every page.
        recognition: Recognition settings applied to every page.
        verbose: Whether to print per-file progress.

    Returns:
        Summary dict with total, successful, and failed counts.
    """
    processor = DocumentProcessor(app_config)

    files = _find_images(input_dir)
    if not files:
        logger.warning("No images found in %s", input_dir)
        return {"total": 0, "successful": 0, "failed": 0}

    logger.info("Found %d images to transcribe", len(files))

    results: list[dict[str, object]] = []
    successful = 0
    failed = 0

    for i, file_path in enumerate(files, 1):
        if verbose:
            print(f"Processing [{i}/{len(files)}]: {file_path.name}")

        try:
            results.append(
                transcribe_file(file_path, processor, preprocess, recognition)
            )
            successful += 1
        except Exception as exc:
            logger.error("Failed to transcribe %s: %s", file_path.name, exc)
            results.append(
                {
                    "filename": file_path.name,
                    "status": "failed",
                    "error": str(exc),
                }
            )
            failed += 1

    _write_csv(results, output_csv)
    logger.info("Results written to %s", output_csv)

    summary = {"total": len(files), "successful": successful, "failed": failed}
    _print_summary(summary, output_csv)
    return summary


def _write_csv(results: list[dict[str, object]], output_path: Path) -> None:
    """Write transcription rows to a CSV file.

    Args:
        results: List of row dictionaries.
        output_path: Path for the output CSV file.
    """
    if not results:
        return

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=_CSV_COLUMNS, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(results)


def _print_summary(summary: dict[str, int], output_csv: Path) -> None:
    """Print batch processing summary to stdout."""
    print(f"\n{'=' * 50}")
    print("Batch Transcription Complete")
    print(f"{'=' * 50}")
    print(f"Total:      {summary['total']}")
    print(f"Successful: {summary['successful']}")
    print(f"Failed:     {summary['failed']}")
    print(f"Output:     {output_csv}")


def _add_settings_arguments(parser: argparse.ArgumentParser) -> None:
    """Register the preprocessing and recognition override flags."""
    parser.add_argument(
        "--preset",
        choices=sorted(PRESETS),
        help="Start from a built-in preset instead of the config file",
    )
    parser.add_argument(
        "--crop",
        nargs=4,
        type=float,
        metavar=("TOP", "BOTTOM", "LEFT", "RIGHT"),
        help="Percentages cropped from each edge",
    )
    parser.add_argument(
        "--binarize", choices=[m.value for m in BinarizeMode], help="Binarization"
    )
    parser.add_argument(
        "--channel", choices=[m.value for m in ChannelMode], help="Channel selection"
    )
    parser.add_argument("--invert", action="store_true", help="Invert tones last")
    parser.add_argument("--skew", type=float, help="Rotation in degrees (clockwise)")
    parser.add_argument(
        "--lang",
        help=f"Recognizer language code ({_LANGUAGE_CHOICES}); any installed "
        "Tesseract code is accepted",
    )
    parser.add_argument("--psm", type=int, help="Page segmentation mode")
    parser.add_argument("--strips", type=int, help="Recognize in N horizontal strips")
    parser.add_argument(
        "--no-strips", action="store_true", help="Recognize the whole page at once"
    )
    parser.add_argument("--overlap", type=float, help="Strip overlap fraction [0, 1)")
    parser.add_argument(
        "-c", "--config", type=Path, default=None, help="YAML configuration file"
    )


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and dispatch to the appropriate command.

    Args:
        argv: Command-line arguments (defaults to sys.argv).
    """
    parser = argparse.ArgumentParser(
        description="Historical page transcription",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    single_parser = subparsers.add_parser("transcribe", help="Transcribe one image")
    single_parser.add_argument("file", type=Path, help="Page image to transcribe")
    single_parser.add_argument("-o", "--output", type=Path, help="Output text file")
    single_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Show progress"
    )
    _add_settings_arguments(single_parser)

    preview_parser = subparsers.add_parser(
        "preview", help="Write the preprocessed image as PNG"
    )
    preview_parser.add_argument("file", type=Path, help="Page image to preprocess")
    preview_parser.add_argument(
        "-o", "--output", type=Path, required=True, help="Output PNG file"
    )
    _add_settings_arguments(preview_parser)

    batch_parser = subparsers.add_parser("batch", help="Transcribe a folder of images")
    batch_parser.add_argument("input_dir", type=Path, help="Input directory")
    batch_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("results.csv"),
        help="Output CSV file (default: results.csv)",
    )
    batch_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Verbose output"
    )
    _add_settings_arguments(batch_parser)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    app_config = load_config(args.config)
    setup_logging(app_config.log_level)
    try:
        preprocess, recognition = build_configs(args, app_config)
    except ValidationError as exc:
        parser.error(f"invalid settings: {exc}")

    if args.command == "batch":
        if not args.input_dir.is_dir():
            print(f"Error: {args.input_dir} is not a directory", file=sys.stderr)
            sys.exit(1)
        process_folder(
            args.input_dir,
            args.output,
            app_config,
            preprocess,
            recognition,
            args.verbose,
        )
        return

    if not args.file.exists():
        print(f"Error: {args.file} does not exist", file=sys.stderr)
        sys.exit(1)

    processor = DocumentProcessor(app_config)
    try:
        if args.command == "preview":
            processed = processor.preview(args.file, preprocess)
            args.output.parent.mkdir(parents=True, exist_ok=True)
            args.output.write_bytes(encode_png(processed))
            print(f"Preview written to {args.output}")
            return

        row = transcribe_file(
            args.file, processor, preprocess, recognition, args.verbose
        )
    except TranscriptionError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    text = str(row["text"])
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(text, encoding="utf-8")
        print(f"Output written to {args.output}")
    else:
        print(text, end="" if text.endswith("\n") else "\n")


if __name__ == "__main__":
    main()
