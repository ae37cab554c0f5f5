import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from browsechat.tools.errors import RepoError
from browsechat.tools.repo import RepoTool, resolve_local_path, validate_repo_url


class FakeRunner:
    def __init__(self, code: int = 0, stdout: str = "", stderr: str = "") -> None:
        self.result = (code, stdout, stderr)
        self.calls: list[tuple[list[str], str]] = []

    async def __call__(self, argv: list[str], cwd: str) -> tuple[int, str, str]:
        self.calls.append((argv, cwd))
        return self.result


class TestValidation(unittest.TestCase):
    def test_accepts_common_url_forms(self) -> None:
        for url in (
            "https://github.com/psf/requests.git",
            "ssh://git@github.com/psf/requests.git",
            "git@github.com:psf/requests.git",
        ):
            self.assertEqual(validate_repo_url(url), url)

    def test_rejects_non_urls(self) -> None:
        for url in ("not a url", "", "--upload-pack=touch /tmp/x", "file:///etc", "http://example.com/x; rm -rf /"):
            with self.assertRaises(RepoError):
                validate_repo_url(url)

    def test_local_path_rules(self) -> None:
        root = Path(tempfile.mkdtemp()).resolve()
        self.assertEqual(resolve_local_path(root, "requests"), root / "requests")
        for bad in ("../escape", "/etc", "~/x", "-rf", "a;b", ""):
            with self.assertRaises(RepoError):
                resolve_local_path(root, bad)


class TestRepoTool(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name).resolve()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    async def test_clone_runs_git_with_argv(self) -> None:
        runner = FakeRunner(stderr="Cloning into 'requests'...")
        tool = RepoTool(str(self.root), runner=runner)
        message = await tool.clone("https://github.com/psf/requests.git", "requests")
        argv, cwd = runner.calls[0]
        self.assertEqual(argv, ["git", "clone", "--", "https://github.com/psf/requests.git", str(self.root / "requests")])
        self.assertEqual(cwd, str(self.root))
        self.assertTrue(message.startswith("Repository cloned successfully"))

    async def test_nonzero_exit_raises(self) -> None:
        runner = FakeRunner(code=128, stderr="fatal: repository not found")
        tool = RepoTool(str(self.root), runner=runner)
        with self.assertRaises(RepoError) as ctx:
            await tool.clone("https://github.com/nobody/missing.git", "missing")
        self.assertIn("128", str(ctx.exception))
        self.assertIn("repository not found", str(ctx.exception))

    async def test_invalid_url_never_runs_git(self) -> None:
        runner = FakeRunner()
        with self.assertRaises(RepoError):
            await RepoTool(str(self.root), runner=runner).clone("not a url", "x")
        self.assertEqual(runner.calls, [])

    async def test_non_empty_destination_rejected(self) -> None:
        (self.root / "taken").mkdir()
        (self.root / "taken" / "README").write_text("x")
        runner = FakeRunner()
        with self.assertRaises(RepoError):
            await RepoTool(str(self.root), runner=runner).clone("https://github.com/psf/requests.git", "taken")
        self.assertEqual(runner.calls, [])

    async def test_missing_git(self) -> None:
        async def runner(argv: list[str], cwd: str) -> tuple[int, str, str]:
            raise FileNotFoundError("git")

        with self.assertRaises(RepoError) as ctx:
            await RepoTool(str(self.root), runner=runner).clone("https://github.com/psf/requests.git", "r")
        self.assertEqual(str(ctx.exception), "git is not installed")
