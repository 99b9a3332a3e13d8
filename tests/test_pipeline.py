import subprocess

from imagescan.errors import ScanFailed
from imagescan.pipeline import plan_report_paths, report_filename, run_batch
from imagescan.result import format_summary_table
from imagescan.status import OutcomeStatus, PullStatus


class FakeRuntime:
    """In-memory stand-in for the Docker CLI."""

    def __init__(self, available, pull_errors=()):
        self.available = set(available)
        self.pull_errors = set(pull_errors)
        self.pulled = []

    def pull(self, image):
        self.pulled.append(image)
        if image in self.pull_errors:
            raise subprocess.CalledProcessError(1, ["docker", "pull", image])
        return PullStatus.PULLED if image in self.available else PullStatus.FAILED

    def exists(self, image):
        return image in self.available


class FakeScanner:
    def __init__(self, failing=()):
        self.failing = set(failing)
        self.scanned = []

    def scan(self, image, report_path):
        self.scanned.append(image)
        if image in self.failing:
            raise ScanFailed(image, "trivy exited with 1")
        report_path.write_text(f"<html>{image}</html>", encoding="utf-8")


def test_missing_image_is_skipped_and_batch_continues(tmp_path):
    runtime = FakeRuntime(available={"a:1"})
    scanner = FakeScanner()
    report_dir = tmp_path / "reports"

    result = run_batch(["a:1", "b:2"], runtime.pull, runtime.exists, scanner.scan, report_dir)

    assert [(o.image, o.status) for o in result.outcomes] == [
        ("a:1", OutcomeStatus.SCANNED),
        ("b:2", OutcomeStatus.SKIPPED_MISSING),
    ]
    assert result.outcomes[0].report_path == report_dir / "a_1.html"
    assert result.outcomes[1].report_path is None
    assert sorted(p.name for p in report_dir.iterdir()) == ["a_1.html"]
    assert runtime.pulled == ["a:1", "b:2"]
    assert scanner.scanned == ["a:1"]


def test_pull_errors_are_absorbed_when_image_is_cached(tmp_path):
    runtime = FakeRuntime(available={"registry.local/team/app:2"}, pull_errors={"registry.local/team/app:2"})
    scanner = FakeScanner()

    result = run_batch(["registry.local/team/app:2"], runtime.pull, runtime.exists, scanner.scan, tmp_path)

    assert result.outcomes[0].status is OutcomeStatus.SCANNED
    assert result.outcomes[0].report_path == tmp_path / "registry.local_team_app_2.html"


def test_scan_failure_is_recorded_and_isolated(tmp_path):
    runtime = FakeRuntime(available={"a:1", "b:2", "c:3"})
    scanner = FakeScanner(failing={"b:2"})

    result = run_batch(["a:1", "b:2", "c:3"], runtime.pull, runtime.exists, scanner.scan, tmp_path)

    assert [o.status for o in result.outcomes] == [
        OutcomeStatus.SCANNED,
        OutcomeStatus.FAILED,
        OutcomeStatus.SCANNED,
    ]
    assert result.outcomes[1].report_path is None
    assert "trivy exited with 1" in result.outcomes[1].detail
    assert result.summary.scanned == 2
    assert result.summary.failed == 1
    assert not result.passed
    assert result.exit_code() == 0
    assert result.exit_code(fail_on_error=True) == 3


def test_scanner_os_errors_do_not_abort_batch(tmp_path):
    runtime = FakeRuntime(available={"a:1", "b:2"})

    def scan(image, report_path):
        if image == "a:1":
            raise FileNotFoundError("trivy")
        report_path.write_text("ok", encoding="utf-8")

    result = run_batch(["a:1", "b:2"], runtime.pull, runtime.exists, scan, tmp_path)

    assert [o.status for o in result.outcomes] == [OutcomeStatus.FAILED, OutcomeStatus.SCANNED]


def test_empty_batch_produces_no_outcomes(tmp_path):
    runtime = FakeRuntime(available=())

    result = run_batch([], runtime.pull, runtime.exists, FakeScanner().scan, tmp_path / "reports")

    assert result.outcomes == []
    assert result.passed
    assert not (tmp_path / "reports").exists()


def test_report_filename_replaces_separators():
    assert report_filename("a:1") == "a_1.html"
    assert report_filename("repo/name:tag", extension=".txt") == "repo_name_tag.txt"


def test_report_paths_stay_distinct_for_separator_swaps(tmp_path):
    paths = plan_report_paths(["team/app:1", "team:app/1", "alpine:3"], tmp_path)

    assert paths["team/app:1"] != paths["team:app/1"]
    assert paths["team/app:1"].name.startswith("team_app_1-")
    assert paths["team:app/1"].name.startswith("team_app_1-")
    assert paths["alpine:3"] == tmp_path / "alpine_3.html"


def test_report_names_are_stable_across_runs(tmp_path):
    first = plan_report_paths(["team/app:1", "team:app/1"], tmp_path)
    second = plan_report_paths(["team:app/1", "team/app:1"], tmp_path)

    assert first == second


def test_rerun_overwrites_existing_report(tmp_path):
    runtime = FakeRuntime(available={"a:1"})
    (tmp_path / "a_1.html").write_text("stale", encoding="utf-8")

    run_batch(["a:1"], runtime.pull, runtime.exists, FakeScanner().scan, tmp_path)

    assert (tmp_path / "a_1.html").read_text(encoding="utf-8") == "<html>a:1</html>"
    assert len(list(tmp_path.iterdir())) == 1


def test_summary_table_lists_reports_and_problems(tmp_path):
    runtime = FakeRuntime(available={"a:1"})

    result = run_batch(["a:1", "b:2"], runtime.pull, runtime.exists, FakeScanner().scan, tmp_path)
    table = format_summary_table(result)

    assert "Batch Summary" in table
    assert f"a:1 -> {tmp_path / 'a_1.html'}" in table
    assert "[SKIPPED_MISSING] b:2" in table


def test_unexpected_scanner_errors_are_recorded_as_failed(tmp_path):
    runtime = FakeRuntime(available={"a:1", "b:2"})
    scanner = FakeScanner()

    def scan(image, report_path):
        if image == "a:1":
            raise RuntimeError("boom")
        scanner.scan(image, report_path)

    result = run_batch(["a:1", "b:2"], runtime.pull, runtime.exists, scan, tmp_path)

    assert [o.status for o in result.outcomes] == [OutcomeStatus.FAILED, OutcomeStatus.SCANNED]
    assert result.outcomes[0].detail == "boom"
    assert scanner.scanned == ["b:2"]


def test_unexpected_pull_and_inspect_errors_do_not_abort_batch(tmp_path):
    def pull(image):
        raise ValueError("bad reference")

    def exists(image):
        if image == "a:1":
            raise RuntimeError("inspect crashed")
        return True

    result = run_batch(["a:1", "b:2"], pull, exists, FakeScanner().scan, tmp_path)

    assert [o.status for o in result.outcomes] == [OutcomeStatus.SKIPPED_MISSING, OutcomeStatus.SCANNED]
