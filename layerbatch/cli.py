"""
Command Line Interface for batch generation and upload.
"""

import argparse
import logging
import sys
from typing import List, Optional

from .config import DriveConfig, GenerationConfig, IMAGE_FORMATS
from .errors import AuthError
from .pipeline import Pipeline
from .run_stats import GenerationStats, TransferStats


def setup_logging(verbose: bool) -> logging.Logger:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('PIL').setLevel(logging.WARNING)

    return logging.getLogger('layerbatch')


def get_generation_config(args: argparse.Namespace) -> GenerationConfig:
    """Get generation configuration from environment and CLI overrides."""
    config = GenerationConfig.from_env()

    if getattr(args, 'output_dir', None):
        config.output_dir = args.output_dir
    if getattr(args, 'layers_dir', None):
        config.layers_dir = args.layers_dir
    if getattr(args, 'layer', None):
        config.layer_order = args.layer
    if getattr(args, 'workers', None) is not None:
        config.num_workers = args.workers
    if getattr(args, 'format', None):
        config.image_format = 'jpg' if args.format == 'jpeg' else args.format
    if getattr(args, 'quality', None):
        config.quality = args.quality
    if getattr(args, 'compression_level', None) is not None:
        config.compression_level = args.compression_level
    if getattr(args, 'batch_size', None):
        config.batch_size = args.batch_size
    if getattr(args, 'start_index', None):
        config.start_index = args.start_index
    if getattr(args, 'end_index', None):
        config.end_index = args.end_index
    if getattr(args, 'force', False):
        config.force_regenerate = True

    return config


def get_drive_config(args: argparse.Namespace) -> DriveConfig:
    """Get upload configuration from environment and CLI overrides."""
    config = DriveConfig.from_env()

    if getattr(args, 'folder_id', None):
        config.folder_id = args.folder_id
    if getattr(args, 'chunk_size', None):
        config.chunk_size = args.chunk_size
    if getattr(args, 'max_retries', None):
        config.max_retries = args.max_retries
    if getattr(args, 'concurrent_uploads', None):
        config.concurrent_uploads = args.concurrent_uploads
    if getattr(args, 'delete_local', False):
        config.delete_local_after_upload = True
    if getattr(args, 'progress_path', None):
        config.progress_path = args.progress_path

    return config


def _report_errors(logger: logging.Logger, errors: List[str], what: str) -> bool:
    for error in errors:
        logger.error(error)
    if errors:
        logger.error(f"{what} configuration invalid")
    return bool(errors)


def print_generation_summary(stats: GenerationStats) -> None:
    print()
    print(f"Rendered: {stats.rendered} of {stats.total_to_process}")
    print(f"Errors: {stats.errors}")
    print(f"Time: {stats.elapsed_seconds:.1f}s")
    print(f"Rate: {stats.rate_per_minute:.1f}/min")


def print_transfer_summary(stats: TransferStats) -> None:
    print()
    print(f"Uploaded: {stats.uploaded}")
    print(f"Failed: {stats.failed}")
    print(f"Already uploaded: {stats.skipped_files}")
    print(f"Batches skipped: {stats.skipped_batches}")
    print(f"Time: {stats.elapsed_seconds:.1f}s")


def _run_generate(pipeline: Pipeline, args: argparse.Namespace) -> int:
    stats = pipeline.generate()
    if not args.quiet:
        print_generation_summary(stats)
    return 0 if stats.errors == 0 else 1


def _run_upload(pipeline: Pipeline, args: argparse.Namespace) -> int:
    stats = pipeline.upload()
    if not args.quiet:
        print_transfer_summary(stats)
    return 0 if stats.failed == 0 else 1


def cmd_generate(args: argparse.Namespace) -> int:
    """Execute generate command."""
    logger = setup_logging(args.verbose)
    config = get_generation_config(args)
    if _report_errors(logger, config.validate(), 'Generation'):
        return 1

    try:
        return _run_generate(Pipeline(config, logger=logger), args)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.exception(f"Generation failed: {e}")
        return 1


def cmd_upload(args: argparse.Namespace) -> int:
    """Execute upload command."""
    logger = setup_logging(args.verbose)
    config = get_generation_config(args)
    drive = get_drive_config(args)
    if _report_errors(logger, drive.validate(), 'Upload'):
        return 1

    logger.info(f"Output: {config.output_dir}")
    logger.info(f"Remote folder: {drive.folder_id}")

    try:
        return _run_upload(Pipeline(config, drive, logger=logger), args)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except AuthError as e:
        logger.error(f"Could not authenticate with Google Drive: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Upload failed: {e}")
        return 1


def cmd_run(args: argparse.Namespace) -> int:
    """Execute generate, then upload."""
    logger = setup_logging(args.verbose)
    config = get_generation_config(args)
    drive = get_drive_config(args)
    invalid = _report_errors(logger, config.validate(), 'Generation')
    invalid = _report_errors(logger, drive.validate(), 'Upload') or invalid
    if invalid:
        return 1

    pipeline = Pipeline(config, drive, logger=logger)
    try:
        generate_code = _run_generate(pipeline, args)
        upload_code = _run_upload(pipeline, args)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except AuthError as e:
        logger.error(f"Could not authenticate with Google Drive: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Pipeline failed: {e}")
        return 1

    return generate_code or upload_code


def add_output_arguments(parser: argparse.ArgumentParser) -> None:
    """Arguments shared by every command."""
    parser.add_argument('-o', '--output-dir', help='Output root (default: LAYERBATCH_OUTPUT_DIR or ./output)')
    parser.add_argument('--batch-size', type=int, help='Items per batch directory (default: 10)')
    parser.add_argument('-q', '--quiet', action='store_true', help='Suppress summary output')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')


def add_generation_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group('Generation')
    group.add_argument('--layers-dir', help='Directory with one sub-directory per layer')
    group.add_argument('--layer', action='append', metavar='NAME',
                       help='Layer name, bottom to top (repeat for each layer)')
    group.add_argument('-w', '--workers', type=int, help='Worker processes (0 = CPU count - 1)')
    group.add_argument('--format', choices=IMAGE_FORMATS + ('jpeg',), help='Output image format')
    group.add_argument('--quality', type=int, help='JPEG/WebP quality (default: 90)')
    group.add_argument('--compression-level', type=int, help='PNG compression level 0-9 (default: 6)')
    group.add_argument('--start-index', type=int, help='First index when no progress exists')
    group.add_argument('--end-index', type=int, help='Last index to render')
    group.add_argument('-f', '--force', action='store_true', help='Discard progress and regenerate everything')


def add_upload_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group('Upload')
    group.add_argument('--folder-id', help='Override GOOGLE_DRIVE_FOLDER_ID')
    group.add_argument('--chunk-size', type=int, help='Bytes per chunk (default: 5 MiB)')
    group.add_argument('--max-retries', type=int, help='Retries per remote call (default: 5)')
    group.add_argument('--concurrent-uploads', type=int, help='Simultaneous uploads (default: 3)')
    group.add_argument('--delete-local', action='store_true', help='Delete local files after upload')
    group.add_argument('--progress-path', help='Upload checkpoint path')


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog='layerbatch',
        description='Layered image batch generation and Google Drive upload',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Workflow:
  1. Generate: python -m layerbatch generate --layer bg --layer body --layer hat
  2. Upload:   python -m layerbatch upload
  3. Both:     python -m layerbatch run --layer bg --layer body --layer hat

Both stages resume from their progress files in the output directory.
Credentials come from GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET,
GOOGLE_REFRESH_TOKEN and GOOGLE_DRIVE_FOLDER_ID.
"""
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    gen_parser = subparsers.add_parser('generate', help='Render images for every batch')
    add_output_arguments(gen_parser)
    add_generation_arguments(gen_parser)

    upload_parser = subparsers.add_parser('upload', help='Upload rendered batches')
    add_output_arguments(upload_parser)
    add_upload_arguments(upload_parser)

    run_parser = subparsers.add_parser('run', help='Generate, then upload')
    add_output_arguments(run_parser)
    add_generation_arguments(run_parser)
    add_upload_arguments(run_parser)

    return parser


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    if parsed_args.command == 'generate':
        return cmd_generate(parsed_args)
    elif parsed_args.command == 'upload':
        return cmd_upload(parsed_args)
    elif parsed_args.command == 'run':
        return cmd_run(parsed_args)

    return 1


if __name__ == '__main__':
    sys.exit(main())
