"""Unit tests for wrk2 command construction and attachment installation."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from loadbench.command import build_command, describe_job, install_attachments, prepare_command
from loadbench.exceptions import LoadbenchProcessError
from loadbench.models import Attachment, JobSpec


def test_build_command_headers_and_fixed_flags(job: JobSpec) -> None:
    assert build_command(job) == (
        'wrk2 -H "Host: localhost" -H "Accept: text/plain"'
        " --latency -d 15 -c 256 --timeout 2 -t 32  http://localhost:5000/plaintext"
    )


def test_build_command_appends_query(job: JobSpec) -> None:
    cmd = build_command(replace(job, query="?queries=20"))
    assert cmd.endswith("http://localhost:5000/plaintext?queries=20")


def test_build_command_rate_from_client_properties(job: JobSpec) -> None:
    cmd = build_command(replace(job, client_properties={"rate": "5000"}))
    assert cmd.endswith(" --rate 5000")


def test_build_command_empty_rate_ignored(job: JobSpec) -> None:
    cmd = build_command(replace(job, client_properties={"rate": ""}))
    assert "--rate" not in cmd


def test_build_command_custom_scripts_in_order(job: JobSpec) -> None:
    cmd = build_command(job, ["scripts/custom/a.lua", "scripts/custom/b.lua"])
    assert cmd.endswith(" -s scripts/custom/a.lua -s scripts/custom/b.lua")


def test_build_command_script_name_with_pipeline_depth(job: JobSpec) -> None:
    j = replace(job, client_properties={"ScriptName": "pipeline", "PipelineDepth": "16", "rate": "100"})
    cmd = build_command(j, ["scripts/custom/a.lua"])
    assert cmd.endswith(" --rate 100 -s scripts/custom/a.lua -s scripts/pipeline.lua -- 16")


def test_build_command_pipeline_depth_zero_omitted(job: JobSpec) -> None:
    j = replace(job, client_properties={"ScriptName": "pipeline", "PipelineDepth": "0"})
    assert build_command(j).endswith(" -s scripts/pipeline.lua --")


def test_build_command_custom_executable(job: JobSpec) -> None:
    assert build_command(job, executable="/opt/wrk2/wrk").startswith("/opt/wrk2/wrk -H")


def test_install_attachments_copies_and_deletes_source(tmp_path: Path, job: JobSpec) -> None:
    upload = tmp_path / "upload-1"
    upload.write_text("wrk.method = 'POST'")
    root = tmp_path / "root"
    j = replace(job, attachments=(Attachment("post.lua", str(upload)),))
    scripts = install_attachments(j, root)
    assert scripts == ["scripts/custom/post.lua"]
    assert (root / "scripts/custom/post.lua").read_text() == "wrk.method = 'POST'"
    assert not upload.exists()


def test_install_attachments_overwrites_existing(tmp_path: Path, job: JobSpec) -> None:
    root = tmp_path / "root"
    dest = root / "scripts/custom/post.lua"
    dest.parent.mkdir(parents=True)
    dest.write_text("old")
    upload = tmp_path / "upload"
    upload.write_text("new")
    install_attachments(replace(job, attachments=(Attachment("post.lua", str(upload)),)), root)
    assert dest.read_text() == "new"


def test_install_attachments_rerun_is_safe(tmp_path: Path, job: JobSpec) -> None:
    upload = tmp_path / "upload"
    upload.write_text("body")
    j = replace(job, attachments=(Attachment("post.lua", str(upload)),))
    first = install_attachments(j, tmp_path)
    second = install_attachments(j, tmp_path)
    assert first == second == ["scripts/custom/post.lua"]
    assert (tmp_path / "scripts/custom/post.lua").read_text() == "body"


def test_install_attachments_missing_source(tmp_path: Path, job: JobSpec) -> None:
    j = replace(job, attachments=(Attachment("gone.lua", str(tmp_path / "nope")),))
    with pytest.raises(LoadbenchProcessError, match="Attachment source not found"):
        install_attachments(j, tmp_path)


def test_prepare_command_includes_installed_scripts(tmp_path: Path, job: JobSpec) -> None:
    upload = tmp_path / "u"
    upload.write_text("x")
    j = replace(job, attachments=(Attachment("a.lua", str(upload)),))
    assert prepare_command(j, tmp_path).endswith(" -s scripts/custom/a.lua")


def test_describe_job(job: JobSpec) -> None:
    j = replace(job, client_properties={"ScriptName": "pipeline", "PipelineDepth": "16"})
    text = describe_job(j)
    assert text.startswith("[ID:job-1 Connections:256 Threads:32 Duration:15 Method:GET")
    assert "ServerUrl:http://localhost:5000/plaintext" in text
    assert "Script:pipeline" in text
    assert "Pipeline:16" in text
    assert 'Headers:{"Host":"localhost","Accept":"text/plain"}]' in text


def test_describe_job_without_headers() -> None:
    j = JobSpec(url="http://x", connections=1, threads=1, duration=1, job_id="j")
    assert describe_job(j) == "[ID:j Connections:1 Threads:1 Duration:1 Method:GET ServerUrl:http://x]"
