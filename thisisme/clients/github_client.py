"""GitHub access for the AI fix pipeline (PyGithub)."""

import logging
from typing import Any, Dict, List, Optional

from github import Auth, Github, GithubException

from thisisme.core.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)


class GitHubClient:
    def __init__(self, token: str, repository: str):
        self.github = Github(auth=Auth.Token(token))
        self.repository = repository
        self._repo = None

    @property
    def repo(self):
        if self._repo is None:
            try:
                self._repo = self.github.get_repo(self.repository)
            except GithubException as e:
                raise ExternalServiceError("github", f"Repository {self.repository} unavailable: {e}")
        return self._repo

    def search_code(self, query: str, limit: int = 3) -> List[str]:
        """Return up to ``limit`` file paths in the repository matching query."""
        try:
            results = self.github.search_code(f"{query} repo:{self.repository}")
            paths = []
            for item in results:
                paths.append(item.path)
                if len(paths) >= limit:
                    break
            return paths
        except GithubException as e:
            raise ExternalServiceError("github", f"Code search failed: {e}")

    def get_file_content(self, path: str, ref: Optional[str] = None) -> Optional[Dict[str, str]]:
        """Return {"path", "content", "sha"} or None when the file does not exist."""
        try:
            kwargs = {"ref": ref} if ref else {}
            contents = self.repo.get_contents(path, **kwargs)
            if isinstance(contents, list):
                return None
            return {
                "path": contents.path,
                "content": contents.decoded_content.decode("utf-8"),
                "sha": contents.sha,
            }
        except GithubException as e:
            logger.warning(f"Error fetching file {path}: {e}")
            return None

    def create_branch(self, branch_name: str, base_branch: str = "main") -> str:
        try:
            base = self.repo.get_branch(base_branch)
            self.repo.create_git_ref(ref=f"refs/heads/{branch_name}", sha=base.commit.sha)
        except GithubException as e:
            raise ExternalServiceError("github", f"Branch creation failed: {e}")
        return branch_name

    def update_file(self, path: str, content: str, message: str, branch: str, sha: str) -> None:
        try:
            self.repo.update_file(path, message, content, sha, branch=branch)
        except GithubException as e:
            raise ExternalServiceError("github", f"Updating {path} failed: {e}")

    def create_pull_request(self, title: str, body: str, head: str, base: str = "main") -> Dict[str, Any]:
        try:
            pr = self.repo.create_pull(title=title, body=body, head=head, base=base)
        except GithubException as e:
            raise ExternalServiceError("github", f"Pull request creation failed: {e}")
        return {"number": pr.number, "url": pr.html_url}
