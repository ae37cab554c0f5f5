from .catalog import ToolCatalog, ToolDefinition
from .errors import ToolError, ToolValidationError, UnknownToolError
from .extract import Article, ContentExtractor
from .manager import ToolManager
from .sessions import BrowserSession, SessionManager

__all__ = [
    "Article",
    "BrowserSession",
    "ContentExtractor",
    "SessionManager",
    "ToolCatalog",
    "ToolDefinition",
    "ToolError",
    "ToolManager",
    "ToolValidationError",
    "UnknownToolError",
]
