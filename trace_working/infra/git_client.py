"""
Git client infrastructure for trace-working.

Provides a clean abstraction over git command execution.
All git operations go through this client, making them:
- Easy to mock for testing
- Consistent in error handling
- Isolated from the traversal logic
"""

import logging
import subprocess
from typing import Iterator, List, Optional

from ..domain.commit import CommitRef
from ..exit_codes import CheckoutError, RepositoryError

logger = logging.getLogger(__name__)


class GitClient:
    """
    Abstraction over git commands.

    Every method takes the repository path explicitly so one client can be
    shared between runs and replaced by a mock in tests.

    Example:
        client = GitClient()
        head = client.resolve_commit("/path/to/repo")
        for commit in client.iter_commits("/path/to/repo", head):
            print(commit.hash)
    """

    def __init__(self, executable: str = "git", timeout: int = 60):
        """
        Initialize GitClient.

        Args:
            executable: git binary to invoke (default: "git")
            timeout: Command timeout in seconds (default: 60)
        """
        self.executable = executable
        self.timeout = timeout

    def _run(self, args: List[str], cwd: str) -> subprocess.CompletedProcess:
        """
        Run a git command.

        Args:
            args: Git arguments (e.g., ['rev-parse', 'HEAD'])
            cwd: Working directory

        Returns:
            The completed process; callers inspect the return code

        Raises:
            RepositoryError: If git cannot be launched or times out
        """
        cmd = [self.executable] + args
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            return subprocess.run(
                cmd,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            raise RepositoryError(f"Git command timed out: {' '.join(cmd)}")
        except OSError as e:
            raise RepositoryError(f"Could not run {self.executable}: {e}")

    def toplevel(self, path: str) -> str:
        """
        Get the root of the working tree containing path.

        Raises:
            RepositoryError: If path is not inside a git working tree
        """
        result = self._run(['rev-parse', '--show-toplevel'], cwd=path)
        if result.returncode != 0 or not result.stdout.strip():
            raise RepositoryError(
                f"Not a git repository: {path} ({result.stderr.strip()})"
            )
        return result.stdout.strip()

    def resolve_commit(self, path: str, rev: str = "HEAD") -> str:
        """
        Resolve a revision to a full commit hash.

        Raises:
            RepositoryError: If the revision is unborn or does not name a commit
        """
        result = self._run(['rev-parse', '--verify', '--quiet', f'{rev}^{{commit}}'], cwd=path)
        if result.returncode != 0 or not result.stdout.strip():
            raise RepositoryError(f"Cannot resolve {rev} to a commit in {path}")
        return result.stdout.strip()

    def current_branch(self, path: str) -> Optional[str]:
        """Get current branch name, or None when HEAD is detached."""
        result = self._run(['symbolic-ref', '--quiet', '--short', 'HEAD'], cwd=path)
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip()
        if result.returncode == 1:
            return None
        raise RepositoryError(f"Cannot read HEAD in {path}: {result.stderr.strip()}")

    def has_uncommitted_changes(self, path: str) -> bool:
        """Check if tracked files differ from HEAD. Untracked files are ignored."""
        result = self._run(['status', '--porcelain', '--untracked-files=no'], cwd=path)
        if result.returncode != 0:
            raise RepositoryError(f"git status failed in {path}: {result.stderr.strip()}")
        return bool(result.stdout.strip())

    def commit_summary(self, path: str, commit: str) -> str:
        """Get the subject line of a commit ("" if unavailable)."""
        result = self._run(['log', '-1', '--format=%s', commit], cwd=path)
        if result.returncode != 0:
            return ""
        return result.stdout.strip()

    def iter_commits(
        self,
        path: str,
        start: str = "HEAD",
        max_count: Optional[int] = None
    ) -> Iterator[CommitRef]:
        """
        Walk history from start, newest first.

        Uses ``rev-list --date-order``: no commit is shown before all of its
        children, otherwise commits come in descending commit-time order.
        The rev-list process streams its output, so the walk is lazy and
        may be abandoned at any point; closing the iterator stops git.

        Args:
            path: Path to git repository
            start: Revision to start from
            max_count: Stop after this many commits (None = whole history)

        Yields:
            CommitRef objects

        Raises:
            RepositoryError: If start cannot be resolved or rev-list fails
        """
        head = self.resolve_commit(path, start)
        cmd = [self.executable, 'rev-list', '--date-order', '--timestamp', '--parents']
        if max_count:
            cmd.append(f'--max-count={max_count}')
        cmd.append(head)

        logger.debug(f"Walking: {' '.join(cmd)}")
        try:
            proc = subprocess.Popen(
                cmd,
                cwd=path,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True
            )
        except OSError as e:
            raise RepositoryError(f"Could not run {self.executable}: {e}")

        try:
            for line in proc.stdout:
                # "<timestamp> <hash> <parent>..."
                parts = line.split()
                if len(parts) < 2:
                    continue
                try:
                    timestamp = int(parts[0])
                except ValueError:
                    raise RepositoryError(f"Unexpected rev-list output: {line.strip()}")
                yield CommitRef(hash=parts[1], parents=tuple(parts[2:]), timestamp=timestamp)

            stderr = proc.stderr.read()
            if proc.wait() != 0:
                raise RepositoryError(f"Reading history failed: {stderr.strip()}")
        finally:
            if proc.poll() is None:
                proc.kill()
                proc.wait()
            proc.stdout.close()
            proc.stderr.close()

    def path_exists(self, path: str, commit: str, file_path: str) -> bool:
        """
        Check whether file_path is present in a commit's tree.

        Reads the tree object only; the working tree is not touched.

        Args:
            path: Path to git repository
            commit: Commit hash
            file_path: Path relative to the repository root

        Raises:
            RepositoryError: If the commit's tree cannot be read
        """
        result = self._run(
            ['ls-tree', '-z', '--full-tree', '--name-only', commit, '--', file_path],
            cwd=path
        )
        if result.returncode != 0:
            raise RepositoryError(
                f"Cannot read tree of {commit[:7]}: {result.stderr.strip()}"
            )
        return file_path in result.stdout.split('\0')

    def checkout_detached(self, path: str, commit: str) -> None:
        """
        Switch the working tree and index to a commit, detaching HEAD.

        Local modifications to tracked files are discarded first. Untracked
        files are never overwritten: if the target commit tracks a path that
        exists untracked in the working tree, git refuses and nothing
        changes. No branch pointer moves.

        Raises:
            CheckoutError: On lock contention, permissions, a bad tree or an
                untracked file in the way
        """
        self._discard_local_changes(path, commit)
        result = self._run(['checkout', '-q', '--detach', commit], cwd=path)
        if result.returncode != 0:
            raise self._checkout_error(commit, result.stderr)

    def checkout_branch(self, path: str, branch: str) -> None:
        """
        Switch to an existing branch without moving it.

        Local modifications to tracked files are discarded; untracked files
        are kept, as in checkout_detached.

        Raises:
            CheckoutError: If the switch fails
        """
        self._discard_local_changes(path, branch)
        result = self._run(['checkout', '-q', branch], cwd=path)
        if result.returncode != 0:
            raise self._checkout_error(branch, result.stderr)

    def _discard_local_changes(self, path: str, target: str) -> None:
        # Only touches tracked paths; untracked files stay put
        result = self._run(['reset', '--hard', '-q'], cwd=path)
        if result.returncode != 0:
            raise self._checkout_error(target, result.stderr)

    @staticmethod
    def _checkout_error(target: str, stderr: str) -> CheckoutError:
        stderr = stderr.strip()
        locked = 'index.lock' in stderr
        if locked:
            message = f"Repository is locked by another git process, cannot check out {target[:12]}"
        elif 'untracked working tree files would be overwritten' in stderr:
            message = f"Untracked files would be overwritten by checking out {target[:12]}: {stderr}"
        else:
            message = f"Failed to check out {target[:12]}: {stderr}"
        return CheckoutError(message, commit=target, locked=locked)

    def stash_push(self, path: str, message: str) -> bool:
        """
        Stash local modifications to tracked files.

        Returns:
            True if a stash entry was created

        Raises:
            RepositoryError: If git refuses to stash
        """
        before = self._stash_count(path)
        result = self._run(['stash', 'push', '--message', message], cwd=path)
        if result.returncode != 0:
            raise RepositoryError(f"git stash failed: {result.stderr.strip()}")
        return self._stash_count(path) > before

    def stash_pop(self, path: str) -> bool:
        """
        Re-apply and drop the most recent stash entry.

        Returns:
            True if successful
        """
        result = self._run(['stash', 'pop'], cwd=path)
        if result.returncode != 0:
            logger.debug(f"git stash pop failed: {result.stderr.strip()}")
        return result.returncode == 0

    def _stash_count(self, path: str) -> int:
        result = self._run(['stash', 'list'], cwd=path)
        if result.returncode != 0 or not result.stdout.strip():
            return 0
        return len(result.stdout.strip().split('\n'))
