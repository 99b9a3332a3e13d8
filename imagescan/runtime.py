"""Subprocess-backed collaborators for the container runtime and the scanner."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from .errors import ScanFailed
from .provision import ToolLocations
from .status import PullStatus, Readiness

logger = logging.getLogger(__name__)

DEFAULT_REPORT_TEMPLATE = "contrib/html.tpl"


def _run(command: Sequence[str], timeout: Optional[float] = None, stdin: Optional[str] = None) -> subprocess.CompletedProcess:
    logger.debug("Running %s", " ".join(command))
    return subprocess.run(
        list(command),
        input=stdin,
        capture_output=True,
        text=True,
        encoding="utf-8",
        errors="replace",
        timeout=timeout,
        check=False,
    )


def _last_line(text: str) -> str:
    lines = [line for line in (text or "").strip().splitlines() if line.strip()]
    return lines[-1] if lines else ""


class DockerRuntime:
    """Talk to the local Docker daemon through the ``docker`` CLI."""

    def __init__(self, docker: str = "docker", timeout: Optional[float] = None) -> None:
        self.docker = docker
        self.timeout = timeout

    def probe(self) -> Readiness:
        completed = _run([self.docker, "info"], timeout=self.timeout)
        return Readiness.READY if completed.returncode == 0 else Readiness.NOT_READY

    def login(self, username: str, password: str, server: Optional[str] = None) -> bool:
        command = [self.docker, "login", "--username", username, "--password-stdin"]
        if server:
            command.append(server)
        completed = _run(command, timeout=self.timeout, stdin=password)
        if completed.returncode != 0:
            logger.warning("Registry login failed: %s", _last_line(completed.stderr))
            return False
        logger.info("Logged in to %s", server or "default registry")
        return True

    def pull(self, image: str) -> PullStatus:
        completed = _run([self.docker, "pull", image], timeout=self.timeout)
        if completed.returncode != 0:
            logger.debug("docker pull %s: %s", image, _last_line(completed.stderr))
            return PullStatus.FAILED
        return PullStatus.PULLED

    def exists(self, image: str) -> bool:
        completed = _run([self.docker, "image", "inspect", "--format", "{{.Id}}", image], timeout=self.timeout)
        return completed.returncode == 0


class TrivyScanner:
    """Run ``trivy image`` with a report template for one image at a time."""

    def __init__(
        self,
        tool: ToolLocations,
        template: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.tool = tool
        self.template = template
        self.timeout = timeout
        if not template and not (tool.directory / DEFAULT_REPORT_TEMPLATE).is_file():
            logger.warning(
                "No %s beside %s; scans will look for it relative to %s. Set report_template to its location.",
                DEFAULT_REPORT_TEMPLATE,
                tool.executable,
                Path.cwd(),
            )

    def resolve_template(self) -> str:
        """Return the template argument, preferring one shipped beside the tool."""

        if self.template:
            return self.template
        bundled = self.tool.directory / DEFAULT_REPORT_TEMPLATE
        if bundled.is_file():
            return str(bundled)
        return DEFAULT_REPORT_TEMPLATE

    def build_command(self, image: str, report_path: Path) -> List[str]:
        return self.tool.command(
            "image",
            "--format",
            "template",
            "--template",
            f"@{self.resolve_template()}",
            "--output",
            str(report_path),
            image,
        )

    def scan(self, image: str, report_path: Path) -> None:
        completed = _run(self.build_command(image, report_path), timeout=self.timeout)
        if completed.returncode != 0:
            raise ScanFailed(image, f"trivy exited with {completed.returncode}: {_last_line(completed.stderr)}")
