"""
Web search and URL fetch tools for the server copilot.
"""

import asyncio
import logging
from typing import Optional
from urllib.parse import parse_qs, urlparse

import requests
from bs4 import BeautifulSoup

from ..models import ParameterSchema, ParametersSchema, ToolDeclaration, ToolResult
from ..registry import ToolRegistry

logger = logging.getLogger(__name__)

TAVILY_SEARCH_URL = "https://api.tavily.com/search"
DUCKDUCKGO_URL = "https://html.duckduckgo.com/html/"
FETCH_TIMEOUT = 10
MAX_CONTENT_CHARS = 2000
DEFAULT_MAX_RESULTS = 5

HIDDEN_TAGS = ["script", "style", "noscript"]

SEARCH_WEB = ToolDeclaration(
    name="search_web",
    description="Search the internet for information, tools, or solutions.",
    parameters=ParametersSchema(
        properties={
            "query": ParameterSchema(type="STRING", description="Search query"),
            "maxResults": ParameterSchema(type="INTEGER", description="Max results (default 5)"),
        },
        required=["query"],
    ),
)

FETCH_URL_CONTENT = ToolDeclaration(
    name="fetch_url_content",
    description="Fetch and parse content from a webpage URL.",
    parameters=ParametersSchema(
        properties={
            "url": ParameterSchema(type="STRING", description="URL to fetch"),
        },
        required=["url"],
    ),
)


def search_tavily(query: str, max_results: int, api_key: str) -> str:
    """
    Perform a web search using the Tavily API and return formatted results.
    """
    payload = {
        "query": query,
        "search_depth": "advanced",
        "include_answer": True,
        "max_results": max_results,
    }
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }

    logger.info("Making API call to Tavily...")
    response = requests.post(TAVILY_SEARCH_URL, json=payload, headers=headers)
    response.raise_for_status()
    search_results = response.json()

    results = search_results.get("results", [])
    logger.info(f"Search successful: {len(results)} results, summary: {'Yes' if search_results.get('answer') else 'No'}")

    if not results and not search_results.get("answer"):
        return f"No results found for: {query}"

    formatted_results = f"Search results for '{query}':\n\n"
    if search_results.get("answer"):
        formatted_results += f"Summary: {search_results['answer']}\n\n"

    for idx, result in enumerate(results, start=1):
        formatted_results += f"{idx}. {result.get('title', '')}\n   {result.get('url', '')}\n"
    return formatted_results


def search_duckduckgo(query: str, max_results: int) -> str:
    """
    Search DuckDuckGo's HTML endpoint and return numbered titles and URLs.
    """
    logger.info("Making request to DuckDuckGo...")
    response = requests.get(DUCKDUCKGO_URL, params={"q": query}, headers={"User-Agent": "Mozilla/5.0"})
    soup = BeautifulSoup(response.text, "html.parser")

    results = []
    for link in soup.select("a.result__a")[:max_results]:
        title = link.get_text(" ", strip=True)
        results.append(f"{len(results) + 1}. {title}\n   {result_url(link.get('href', ''))}\n")

    if not results:
        return f"No results found for: {query}"
    return f"Search results for '{query}':\n\n" + "".join(results)


def perform_web_search(query: str, max_results: int = DEFAULT_MAX_RESULTS, tavily_api_key: Optional[str] = None) -> str:
    """
    Search the web, through Tavily when a key is configured and DuckDuckGo otherwise.

    Failures are returned as text rather than raised.
    """
    logger.info("\n=== WEB SEARCH TOOL EXECUTION ===")
    logger.info(f"Search query: {query}")
    try:
        if tavily_api_key:
            output = search_tavily(query, max_results, tavily_api_key)
        else:
            output = search_duckduckgo(query, max_results)
        logger.info("\n=== WEB SEARCH COMPLETED ===")
        return output
    except Exception as e:
        logger.error(f"Error performing web search: {str(e)}", exc_info=True)
        return f"Search failed: {str(e)}"


def result_url(href: str) -> str:
    # DuckDuckGo wraps result links in a redirect carrying the target as uddg=
    target = parse_qs(urlparse(href).query).get("uddg")
    return target[0] if target else href


def strip_html(html: str) -> str:
    """Return the visible text of a page with whitespace collapsed."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(HIDDEN_TAGS):
        tag.decompose()
    return " ".join(soup.get_text(" ", strip=True).split())


def fetch_url_content(url: str) -> ToolResult:
    """
    Fetch a page and return its visible text, capped at 2000 characters.

    Returns:
        ToolResult whose display names the URL and whose raw data is the text
    """
    logger.info("\n=== URL CONTENT FETCH TOOL EXECUTION ===")
    logger.info(f"URL: {url}")
    try:
        response = requests.get(url, timeout=FETCH_TIMEOUT)
        logger.info(f"Response status code: {response.status_code}")
        content = strip_html(response.text)
        if len(content) > MAX_CONTENT_CHARS:
            content = content[:MAX_CONTENT_CHARS] + "..."

        logger.info(f"Total fetched content length: {len(content)} characters")
        return ToolResult(display=f"Content from {url}:\n{content}", raw_data=content)
    except Exception as e:
        error_msg = f"Failed to fetch URL: {str(e)}"
        logger.error(error_msg)
        return ToolResult(display=error_msg, raw_data=error_msg)


def register_web_tools(registry: ToolRegistry, tavily_api_key: Optional[str] = None) -> ToolRegistry:
    """Add search_web and fetch_url_content to ``registry``."""

    async def search_web(args, ctx):
        max_results = args.get("maxResults") or DEFAULT_MAX_RESULTS
        output = await asyncio.to_thread(perform_web_search, args["query"], max_results, tavily_api_key)
        return ToolResult(display=output, raw_data=output)

    async def fetch_url(args, ctx):
        return await asyncio.to_thread(fetch_url_content, args["url"])

    registry.register(SEARCH_WEB.name, search_web, SEARCH_WEB)
    registry.register(FETCH_URL_CONTENT.name, fetch_url, FETCH_URL_CONTENT)
    return registry
