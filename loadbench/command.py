"""wrk2 command line construction from a JobSpec.

The only side effect is installing attachment scripts into the scripts
directory; re-running it for the same job is safe.
"""

from __future__ import annotations

import shutil
from pathlib import Path

import orjson

from .exceptions import LoadbenchProcessError
from .logging_config import get_logger
from .models import JobSpec

logger = get_logger("command")

CUSTOM_SCRIPTS_DIR = "scripts/custom"
SCRIPTS_DIR = "scripts"
DEFAULT_EXECUTABLE = "wrk2"


def install_attachments(job: JobSpec, scripts_root: str | Path) -> list[str]:
    """Copy each attachment into <scripts_root>/scripts/custom and delete the temporary source.

    Returns the script paths relative to scripts_root, in attachment order.
    An attachment whose temporary file is gone but whose destination exists
    was installed by a previous attempt and is reused.
    """
    root = Path(scripts_root)
    installed: list[str] = []
    for attachment in job.attachments:
        relative = f"{CUSTOM_SCRIPTS_DIR}/{attachment.filename}"
        destination = root / relative
        source = Path(attachment.temp_path)
        logger.info("Copying script: %s", attachment.filename)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            if source.exists():
                shutil.copyfile(source, destination)
                source.unlink()
            elif not destination.exists():
                raise LoadbenchProcessError(
                    f"Attachment source not found: {attachment.temp_path}",
                    context={"filename": attachment.filename},
                )
        except OSError as e:
            raise LoadbenchProcessError(
                f"Cannot install attachment {attachment.filename}",
                context={"destination": str(destination)},
                original_error=e,
            ) from e
        installed.append(relative)
    return installed


def build_command(
    job: JobSpec,
    custom_scripts: list[str] | None = None,
    executable: str = DEFAULT_EXECUTABLE,
) -> str:
    """Assemble the wrk2 invocation line.

    Args:
        job: Job to run
        custom_scripts: Installed attachment scripts (see install_attachments)
        executable: Load generator binary

    Returns:
        Single command-line string
    """
    command = executable

    for name, value in job.headers.items():
        command += f' -H "{name}: {value}"'

    command += (
        f" --latency -d {job.duration} -c {job.connections}"
        f" --timeout {job.timeout} -t {job.threads}  {job.server_url}"
    )

    rate = job.effective_rate()
    if rate:
        command += f" --rate {rate}"

    for script in custom_scripts or []:
        command += f" -s {script}"

    script_name = job.script_name
    if script_name:
        command += f" -s {SCRIPTS_DIR}/{script_name}.lua --"
        depth = job.effective_pipeline_depth()
        if depth is not None and depth > 0:
            command += f" {depth}"

    return command


def prepare_command(job: JobSpec, scripts_root: str | Path, executable: str = DEFAULT_EXECUTABLE) -> str:
    """Install attachments then build the command line."""
    scripts = install_attachments(job, scripts_root)
    command = build_command(job, scripts, executable)
    logger.info(command)
    return command


def describe_job(job: JobSpec) -> str:
    """One-line job summary used as the log prefix for a job."""
    text = (
        f"[ID:{job.job_id} Connections:{job.connections} Threads:{job.threads}"
        f" Duration:{job.duration} Method:{job.method} ServerUrl:{job.server_url}"
    )
    if job.script_name:
        text += f" Script:{job.script_name}"
    depth = job.effective_pipeline_depth()
    if depth is not None and depth > 0:
        text += f" Pipeline:{depth}"
    if job.headers:
        text += f" Headers:{orjson.dumps(dict(job.headers)).decode('utf-8')}"
    return text + "]"
