from __future__ import annotations

import logging
from typing import Any

from ..client import LLMClient
from ..config import AppConfig
from ..tool_scheduler import ToolCall
from .browser import BrowserTool
from .catalog import (
    ConfirmationParams,
    NoParams,
    PageParams,
    PullRepoParams,
    SearchParams,
    ToolCatalog,
    ToolDefinition,
)
from .errors import ToolError, ToolValidationError
from .extract import ContentExtractor
from .fetch import FetchTool
from .repo import RepoTool
from .search import GoogleResultsParser, ResultsParser, format_results
from .sessions import SessionManager
from .summarize import Summarizer

log = logging.getLogger("browsechat.tools")


class ToolManager:
    """Owns the tool collaborators and the catalog presented to the model.

    :meth:`run` is the uniform execution contract: look the tool up, validate
    its arguments, then run the executor. Every failure is raised as a
    :class:`ToolError` carrying a readable message; the scheduler turns it into
    a failed result.
    """

    def __init__(
        self,
        config: AppConfig,
        client: LLMClient,
        *,
        sessions: SessionManager | None = None,
        browser: BrowserTool | None = None,
        extractor: ContentExtractor | None = None,
        summarizer: Summarizer | None = None,
        repo: RepoTool | None = None,
        fetcher: FetchTool | None = None,
        parser: ResultsParser | None = None,
    ) -> None:
        self.config = config
        self.sessions = sessions or SessionManager(
            config.browserbase_api_key,
            config.browserbase_project_id,
            api_url=config.browserbase_api_url,
            connect_url=config.browserbase_connect_url,
            session_timeout=config.session_timeout,
        )
        self.browser = browser or BrowserTool(self.sessions, page_timeout=config.page_timeout)
        self.extractor = extractor or ContentExtractor()
        self.summarizer = summarizer or Summarizer(
            client,
            config.effective_summary_model,
            max_chars=config.summary_max_chars,
        )
        self.repo = repo or RepoTool(config.clone_root)
        self.fetcher = fetcher or FetchTool(timeout=config.page_timeout * 2)
        self.parser = parser or GoogleResultsParser()
        self.catalog = self._build_catalog()

    def _build_catalog(self) -> ToolCatalog:
        catalog = ToolCatalog()
        catalog.register(ToolDefinition(
            name="createSession",
            label="Creating a new session",
            description="Create a new remote browser session.",
            params=NoParams,
            executor=self.create_session,
            error_prefix="Error creating session",
        ))
        catalog.register(ToolDefinition(
            name="askForConfirmation",
            label="Asking for confirmation",
            description="Ask the user for confirmation.",
            params=ConfirmationParams,
        ))
        catalog.register(ToolDefinition(
            name="googleSearch",
            label="Searching Google",
            description="Search Google for a query in the remote browser session.",
            params=SearchParams,
            executor=self.google_search,
            error_prefix="Error performing Google search",
        ))
        catalog.register(ToolDefinition(
            name="getPageContent",
            label="Getting page content",
            description="Open a URL in the remote browser session and evaluate its main content.",
            params=PageParams,
            executor=self.get_page_content,
            error_prefix="Error fetching page content",
        ))
        catalog.register(ToolDefinition(
            name="pullRepo",
            label="Cloning repository",
            description="Clone a git repository (for example from GitHub) into a local path.",
            params=PullRepoParams,
            executor=self.pull_repo,
            error_prefix="Error cloning repository",
        ))
        catalog.register(ToolDefinition(
            name="improveSecurity",
            label="Searching for best security practices",
            description="Search for best cyber security practices.",
            params=NoParams,
            executor=self.improve_security,
            error_prefix="Error searching for best security practices",
        ))
        return catalog

    def tool_definitions(self) -> list[dict[str, object]]:
        return self.catalog.function_schemas()

    def label_for(self, name: str) -> str:
        return self.catalog.get(name).label if name in self.catalog else name

    async def run(self, call: ToolCall) -> dict[str, Any]:
        definition = self.catalog.get(call.name)
        executor = definition.executor
        if executor is None:
            raise ToolError(f"{call.name} is answered by the user, not executed by the server")
        params = definition.validate(call.args)
        try:
            return await executor(params)
        except ToolValidationError:
            raise
        except Exception as exc:  # noqa: BLE001
            log.warning("%s failed: %s", call.name, exc)
            raise ToolError(f"{definition.error_prefix}: {exc}") from exc

    # ------------------------------------------------------------------
    # Executors
    # ------------------------------------------------------------------

    async def create_session(self, params: NoParams) -> dict[str, Any]:
        session = await self.sessions.create_session()
        debug_url = await self.sessions.get_debug_url(session.id) or session.debug_url
        return {"sessionId": session.id, "debugUrl": debug_url, "toolName": "Creating a new session"}

    async def google_search(self, params: SearchParams) -> dict[str, Any]:
        results = await self.browser.search(params.session_id, params.query, self.parser)
        summary = await self.summarizer.summarize(format_results(results))
        return {"toolName": "Searching Google", "content": summary, "dataCollected": True}

    async def get_page_content(self, params: PageParams) -> dict[str, Any]:
        status, html = await self.browser.page_html(params.session_id, params.url)
        article = self.extractor.extract(html)
        summary = await self.summarizer.summarize(article.as_text())
        return {"toolName": "Getting page content", "content": summary, "url": params.url, "status": status}

    async def pull_repo(self, params: PullRepoParams) -> dict[str, Any]:
        message = await self.repo.clone(params.repo_url, params.local_path)
        return {"toolName": "Cloning repository", "content": message}

    async def improve_security(self, params: NoParams) -> dict[str, Any]:
        html = await self.fetcher.fetch_html(self.config.security_search_url)
        article = self.extractor.extract(html)
        return {"toolName": "Searching for best security practices", "content": article.text or "No content found"}
