from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path
from typing import Awaitable, Callable

from .errors import RepoError

log = logging.getLogger("browsechat.repo")

# https://host/path, ssh://[user@]host/path, or scp-style git@host:path
_REPO_URL_RE = re.compile(
    r"^(?:https://[\w.-]+(?::\d+)?/[\w./~-]+"
    r"|ssh://(?:[\w.-]+@)?[\w.-]+(?::\d+)?/[\w./~-]+"
    r"|[\w.-]+@[\w.-]+:[\w./~-]+)$"
)
_LOCAL_PATH_RE = re.compile(r"^[\w./ -]+$")

# (argv, cwd) -> (exit code, stdout, stderr)
Runner = Callable[[list[str], str], Awaitable[tuple[int, str, str]]]


async def _run_process(argv: list[str], cwd: str) -> tuple[int, str, str]:
    proc = await asyncio.create_subprocess_exec(
        *argv,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        stdin=asyncio.subprocess.DEVNULL,
        cwd=cwd,
    )
    try:
        stdout, stderr = await proc.communicate()
    except asyncio.CancelledError:
        proc.kill()
        await proc.wait()
        raise
    return proc.returncode or 0, stdout.decode(errors="replace"), stderr.decode(errors="replace")


def validate_repo_url(repo_url: str) -> str:
    url = repo_url.strip()
    if not url or url.startswith("-") or not _REPO_URL_RE.match(url):
        raise RepoError(f"refusing to clone {repo_url!r}: not a recognised repository URL")
    return url


def resolve_local_path(root: Path, local_path: str) -> Path:
    path = local_path.strip()
    if not path or path.startswith(("-", "/", "~")) or not _LOCAL_PATH_RE.match(path):
        raise RepoError(f"refusing local path {local_path!r}: use a relative path of plain characters")
    if ".." in Path(path).parts:
        raise RepoError(f"refusing local path {local_path!r}: '..' is not allowed")
    target = (root / path).resolve()
    if target != root and root not in target.parents:
        raise RepoError(f"refusing local path {local_path!r}: outside the clone root")
    return target


class RepoTool:
    def __init__(self, clone_root: str = ".", *, runner: Runner | None = None) -> None:
        self.clone_root = Path(clone_root).expanduser().resolve()
        self.runner = runner or _run_process

    async def clone(self, repo_url: str, local_path: str) -> str:
        url = validate_repo_url(repo_url)
        target = resolve_local_path(self.clone_root, local_path)
        if target.exists() and (not target.is_dir() or any(target.iterdir())):
            raise RepoError(f"destination {local_path!r} already exists and is not empty")
        self.clone_root.mkdir(parents=True, exist_ok=True)
        argv = ["git", "clone", "--", url, str(target)]
        log.info("cloning %s into %s", url, target)
        try:
            code, stdout, stderr = await self.runner(argv, str(self.clone_root))
        except FileNotFoundError as exc:
            raise RepoError("git is not installed") from exc
        if code != 0:
            details = (stderr or stdout).strip()
            raise RepoError(f"git clone exited with {code}: {details}")
        # git writes progress to stderr even on success
        output = (stdout or stderr).strip()
        return f"Repository cloned successfully into {target}" + (f": {output}" if output else "")
