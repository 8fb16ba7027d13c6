"""
Tests for host services — downloads and archives, apt source repair,
and the post-install report.
"""

import hashlib
import io
import os
import tarfile
import zipfile
from unittest.mock import patch

import pytest

from devsetup.core.engine.executor import ExecutionReport
from devsetup.core.models.task import TaskResult
from devsetup.core.services import apt
from devsetup.core.services.download import (
    DownloadError,
    download_file,
    extract_archive,
    fetch_script,
    machine_arch,
)
from devsetup.core.services.report import (
    CHECK_SCRIPT_NAME,
    REPORT_NAME,
    render_check_script,
    render_report,
    write_artifacts,
)

# ── Downloads ───────────────────────────────────────────────────


class TestDownload:
    def test_file_url(self, tmp_path):
        src = tmp_path / "src.txt"
        src.write_text("payload")
        dest = download_file(src.as_uri(), tmp_path / "out" / "dest.txt")
        assert dest.read_text() == "payload"

    def test_checksum_verified(self, tmp_path):
        src = tmp_path / "src.bin"
        src.write_bytes(b"abc")
        digest = hashlib.sha256(b"abc").hexdigest()
        download_file(src.as_uri(), tmp_path / "ok.bin", checksum=f"sha256:{digest}")
        with pytest.raises(DownloadError, match="Checksum"):
            download_file(src.as_uri(), tmp_path / "bad.bin", checksum="sha256:00")
        assert not (tmp_path / "bad.bin").exists()

    def test_missing_source(self, tmp_path):
        with pytest.raises(DownloadError):
            download_file((tmp_path / "missing").as_uri(), tmp_path / "x")

    def test_fetch_script_is_executable(self, tmp_path):
        src = tmp_path / "installer.sh"
        src.write_text("#!/bin/sh\necho hi\n")
        workdir = tmp_path / "work"
        script = fetch_script(src.as_uri(), workdir)
        assert script == workdir / "install.sh"
        assert os.access(script, os.X_OK)


class TestArchives:
    def test_tar_gz(self, tmp_path):
        archive = tmp_path / "go1.21.7.linux-amd64.tar.gz"
        with tarfile.open(archive, "w:gz") as tf:
            data = b"#!/bin/sh\n"
            info = tarfile.TarInfo("go/bin/go")
            info.size = len(data)
            tf.addfile(info, io.BytesIO(data))
        extract_archive(archive, tmp_path / "prefix")
        assert (tmp_path / "prefix" / "go" / "bin" / "go").read_bytes() == b"#!/bin/sh\n"

    def test_zip(self, tmp_path):
        archive = tmp_path / "Hack.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("HackNerdFont-Regular.ttf", "font")
        extract_archive(archive, tmp_path / "fonts")
        assert (tmp_path / "fonts" / "HackNerdFont-Regular.ttf").exists()

    def test_unsupported_format(self, tmp_path):
        archive = tmp_path / "thing.rar"
        archive.write_text("")
        with pytest.raises(DownloadError, match="Unsupported"):
            extract_archive(archive, tmp_path / "out")

    @pytest.mark.parametrize("machine,go_style,raw", [
        ("x86_64", "amd64", "x86_64"),
        ("aarch64", "arm64", "arm64"),
    ])
    def test_machine_arch(self, machine, go_style, raw):
        with patch("devsetup.core.services.download.platform.machine", return_value=machine):
            assert machine_arch() == go_style
            assert machine_arch(raw=True) == raw


# ── APT sources ─────────────────────────────────────────────────


class TestAptSources:
    def test_disables_html_and_error_lists(self, tmp_path):
        (tmp_path / "good.list").write_text("deb http://deb.debian.org/debian stable main\n")
        (tmp_path / "html.list").write_text("<!DOCTYPE html>\n")
        (tmp_path / "err.list").write_text("E: Malformed entry 1\n")
        disabled = apt.disable_corrupt_sources(tmp_path)
        assert sorted(p.name for p in disabled) == ["err.list", "html.list"]
        assert (tmp_path / "good.list").read_text().startswith("deb ")
        assert (tmp_path / "html.list.bak").read_text() == "<!DOCTYPE html>\n"

    def test_missing_dir(self, tmp_path):
        assert apt.disable_corrupt_sources(tmp_path / "nope") == []

    def test_quarantine_all(self, tmp_path):
        sources = tmp_path / "sources.list.d"
        sources.mkdir()
        (sources / "docker.list").write_text("deb x\n")
        backup = apt.quarantine_all_sources(sources)
        assert (backup / "docker.list").exists()
        assert [p.name for p in sources.iterdir()] == ["empty.list"]

    def test_update_failure_triggers_quarantine(self, ctx, runner, tmp_path):
        from devsetup.core.tasks.apt import SystemUpdateTask

        sources = tmp_path / "sources.list.d"
        sources.mkdir()
        (sources / "bad.list").write_text("deb broken\n")
        runner.set_failure("apt-get update")
        task = SystemUpdateTask("1", "Update system packages", sources_dir=sources)
        assert task.fix_sources(ctx) is False
        assert (tmp_path / "sources.list.d.backup" / "bad.list").exists()


# ── Report ──────────────────────────────────────────────────────


@pytest.fixture
def report() -> ExecutionReport:
    return ExecutionReport(action="install", results=[
        TaskResult.success("2", "done", label="Install essential build tools"),
        TaskResult.skip("6", "already installed", label="Install utilities"),
        TaskResult.failure("13", "[13] Failed to import signing key", label="Install Docker"),
    ])


class TestReport:
    def test_render_report(self, report, ctx):
        text = render_report(report, ctx)
        assert "Install essential build tools" in text
        assert "already present" in text
        assert "FAILED" in text
        assert "Failed to import signing key" in text
        assert "1 installed, 1 already present, 1 failed" in text
        assert str(ctx.log.log_file) in text

    def test_check_script_probes_pinned_python(self, ctx):
        script = render_check_script(ctx)
        assert script.startswith("#!/usr/bin/env bash")
        assert f"python{ctx.versions.python_short} --version" in script

    def test_write_artifacts(self, report, ctx):
        report_path, script_path = write_artifacts(report, ctx)
        assert report_path == ctx.identity.path(REPORT_NAME)
        assert script_path == ctx.identity.path(CHECK_SCRIPT_NAME)
        assert os.access(script_path, os.X_OK)
        for path in (report_path, script_path):
            assert os.stat(path).st_uid == ctx.identity.uid
