"""Command-line entry point for the batch image scanner."""

from __future__ import annotations

import argparse
import functools
import logging
from pathlib import Path
from typing import Any, Dict, List

from .config import Settings, load_settings
from .errors import ImageScanError, ServiceNotReady
from .pipeline import run_batch
from .provision import ToolLocations, ensure_tool, locate_tool
from .readiness import wait_until_ready
from .result import BatchResult, format_summary_table
from .runtime import DockerRuntime, TrivyScanner
from .utils import image_list, load_properties

logger = logging.getLogger(__name__)

TOOL_NAME = "trivy"
LOG_FORMAT = "%(levelname)s: %(message)s"
SETUP_FAILURE_EXIT_CODE = 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Pull and scan every image listed in a properties file.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional YAML file with default settings.",
    )
    parser.add_argument(
        "--properties",
        dest="properties_file",
        default=None,
        help="Properties file listing windows.images and linux.images.",
    )
    parser.add_argument(
        "--report-dir",
        default=None,
        help="Directory that receives one report per image.",
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        default=None,
        help="How many times to probe the container runtime before giving up.",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds to wait between readiness probes.",
    )
    parser.add_argument(
        "--trivy-url",
        default=None,
        help="Archive to download when trivy is not installed.",
    )
    parser.add_argument(
        "--tools-dir",
        default=None,
        help="Directory the trivy archive is unpacked into.",
    )
    parser.add_argument(
        "--fail-on-error",
        action="store_const",
        const=True,
        default=None,
        help="Exit non-zero when any image was skipped or failed to scan.",
    )
    parser.add_argument(
        "--skip-wait",
        action="store_true",
        help="Do not wait for the container runtime to become ready.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log every command and readiness attempt.",
    )
    return parser


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)


def settings_from_args(args: argparse.Namespace) -> Settings:
    overrides: Dict[str, Any] = {
        "properties_file": args.properties_file,
        "report_dir": args.report_dir,
        "max_attempts": args.max_attempts,
        "interval": args.interval,
        "trivy_url": args.trivy_url,
        "tools_dir": args.tools_dir,
        "fail_on_error": args.fail_on_error,
    }
    return load_settings(config_file=args.config, overrides=overrides)


def provision_scanner(settings: Settings) -> ToolLocations:
    fetch_spec = settings.fetch_spec
    locate = functools.partial(locate_tool, TOOL_NAME, [fetch_spec.install_dir])
    return ensure_tool(TOOL_NAME, locate, fetch_spec)


def run(settings: Settings, runtime: DockerRuntime, skip_wait: bool = False) -> BatchResult:
    """Sequence readiness, provisioning, loading and the batch itself."""

    if not skip_wait:
        logger.info("Waiting for the container runtime to become ready")
        if not wait_until_ready(runtime.probe, settings.max_attempts, settings.interval):
            raise ServiceNotReady(f"Container runtime not ready after {settings.max_attempts} attempt(s)")

    tool = provision_scanner(settings)
    scanner = TrivyScanner(tool, template=settings.report_template, timeout=settings.command_timeout)

    properties = load_properties(settings.properties_file)
    images = image_list(properties)
    logger.info("Loaded %d image(s) from %s", len(images), settings.properties_file)

    if settings.has_credentials:
        runtime.login(settings.registry_username, settings.registry_password, settings.registry_server)

    return run_batch(
        images,
        pull=runtime.pull,
        exists=runtime.exists,
        scan=scanner.scan,
        report_dir=settings.report_dir,
        extension=settings.report_extension,
    )


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    try:
        settings = settings_from_args(args)
        runtime = DockerRuntime(timeout=settings.command_timeout)
        result = run(settings, runtime, skip_wait=args.skip_wait)
    except ImageScanError as exc:
        logger.error("%s", exc)
        return SETUP_FAILURE_EXIT_CODE
    print(format_summary_table(result))
    return result.exit_code(settings.fail_on_error)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
