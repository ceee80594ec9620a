"""
Memory and database tools for the server copilot.

Every memory tool is scoped to the requesting user through ``ctx.user_id``.
Failures are reported back to the model as text, never raised.
"""

import asyncio
import json
import logging
from typing import Optional

from ..models import ParameterSchema, ParametersSchema, ToolDeclaration, ToolResult
from ..registry import ToolRegistry
from ..storage import MemoryStore
from .web import register_web_tools

logger = logging.getLogger(__name__)

MEMORY_STORE = ToolDeclaration(
    name="memory_store",
    description="Store information in persistent memory for later retrieval.",
    parameters=ParametersSchema(
        properties={
            "key": ParameterSchema(type="STRING", description="Memory key/identifier"),
            "value": ParameterSchema(type="STRING", description="Information to store"),
        },
        required=["key", "value"],
    ),
)

MEMORY_RETRIEVE = ToolDeclaration(
    name="memory_retrieve",
    description="Retrieve previously stored information from memory.",
    parameters=ParametersSchema(
        properties={"key": ParameterSchema(type="STRING", description="Memory key to retrieve")},
        required=["key"],
    ),
)

MEMORY_LIST = ToolDeclaration(
    name="memory_list",
    description="List all stored memory keys.",
)

MEMORY_DELETE = ToolDeclaration(
    name="memory_delete",
    description="Delete a memory entry.",
    parameters=ParametersSchema(
        properties={"key": ParameterSchema(type="STRING", description="Memory key to delete")},
        required=["key"],
    ),
)

EXECUTE_SQL = ToolDeclaration(
    name="execute_sql",
    description="Execute SQL queries on the copilot database.",
    parameters=ParametersSchema(
        properties={"query": ParameterSchema(type="STRING", description="SQL query to execute")},
        required=["query"],
    ),
)

LIST_TABLES = ToolDeclaration(
    name="list_tables",
    description="List available database tables and their schemas.",
)


def _failure(message: str) -> ToolResult:
    logger.error(message)
    return ToolResult(display=message, raw_data=message)


def memory_store(store: MemoryStore, user_id: str, key: str, value: str) -> ToolResult:
    logger.info("\n=== MEMORY STORE TOOL EXECUTION ===")
    try:
        store.upsert(user_id, key, value)
        output = f"Stored in memory: {key}"
        return ToolResult(display=output, raw_data=output)
    except Exception as e:
        return _failure(f"Failed to store memory: {str(e)}")


def memory_retrieve(store: MemoryStore, user_id: str, key: str) -> ToolResult:
    logger.info("\n=== MEMORY RETRIEVE TOOL EXECUTION ===")
    try:
        entry = store.get(user_id, key)
        if entry is None:
            return ToolResult(display=f"No memory found for key: {key}", raw_data="Not found")
        return ToolResult(
            display=f"Memory [{key}] (stored {entry.timestamp}):\n{entry.value}",
            raw_data=entry.value,
        )
    except Exception as e:
        return _failure(f"Failed to retrieve memory: {str(e)}")


def memory_list(store: MemoryStore, user_id: str) -> ToolResult:
    logger.info("\n=== MEMORY LIST TOOL EXECUTION ===")
    try:
        entries = store.list(user_id)
        if not entries:
            return ToolResult(display="Memory is empty.", raw_data="Empty")
        listing = "\n".join(f"• {entry.key} (stored {entry.timestamp})" for entry in entries)
        output = f"Stored memories:\n{listing}"
        return ToolResult(display=output, raw_data=output)
    except Exception as e:
        return _failure(f"Failed to list memory: {str(e)}")


def memory_delete(store: MemoryStore, user_id: str, key: str) -> ToolResult:
    logger.info("\n=== MEMORY DELETE TOOL EXECUTION ===")
    try:
        store.delete(user_id, key)
        output = f"Deleted from memory: {key}"
        return ToolResult(display=output, raw_data=output)
    except Exception as e:
        return _failure(f"Failed to delete memory: {str(e)}")


def execute_sql(store: MemoryStore, query: str) -> ToolResult:
    logger.info("\n=== SQL TOOL EXECUTION ===")
    logger.info(f"Query: {query}")
    try:
        output = json.dumps(store.execute_sql(query), indent=2, default=str)
        return ToolResult(display=f"SQL Result:\n{output}", raw_data=output)
    except Exception as e:
        return _failure(f"SQL execution failed: {str(e)}")


def list_tables(store: MemoryStore) -> ToolResult:
    logger.info("\n=== LIST TABLES TOOL EXECUTION ===")
    try:
        output = json.dumps(store.list_tables(), indent=2)
        return ToolResult(display=f"Available Tables:\n{output}", raw_data=output)
    except Exception as e:
        return _failure(f"Failed to list tables: {str(e)}")


def register_memory_tools(registry: ToolRegistry, store: MemoryStore) -> ToolRegistry:
    """Add the memory and SQL tools, bound to ``store``, to ``registry``."""

    async def store_memory(args, ctx):
        return await asyncio.to_thread(memory_store, store, ctx.user_id, args["key"], args["value"])

    async def retrieve_memory(args, ctx):
        return await asyncio.to_thread(memory_retrieve, store, ctx.user_id, args["key"])

    async def list_memory(args, ctx):
        return await asyncio.to_thread(memory_list, store, ctx.user_id)

    async def delete_memory(args, ctx):
        return await asyncio.to_thread(memory_delete, store, ctx.user_id, args["key"])

    async def run_sql(args, ctx):
        return await asyncio.to_thread(execute_sql, store, args["query"])

    async def show_tables(args, ctx):
        return await asyncio.to_thread(list_tables, store)

    registry.register(MEMORY_STORE.name, store_memory, MEMORY_STORE)
    registry.register(MEMORY_RETRIEVE.name, retrieve_memory, MEMORY_RETRIEVE)
    registry.register(MEMORY_LIST.name, list_memory, MEMORY_LIST)
    registry.register(MEMORY_DELETE.name, delete_memory, MEMORY_DELETE)
    registry.register(EXECUTE_SQL.name, run_sql, EXECUTE_SQL)
    registry.register(LIST_TABLES.name, show_tables, LIST_TABLES)
    return registry


def build_server_registry(store: MemoryStore, tavily_api_key: Optional[str] = None) -> ToolRegistry:
    """Build the registry of web, memory and database tools offered by the server."""
    registry = ToolRegistry()
    register_web_tools(registry, tavily_api_key)
    register_memory_tools(registry, store)
    return registry
