#!/usr/bin/env python3
"""ClipShare MCP Server."""

import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent
from mcp.server.models import InitializationOptions
from mcp.server.lowlevel import NotificationOptions

from clipshare.config import Settings
from clipshare.core.kv import KVStore, create_kv
from clipshare.core.store import ClipStore, EXPIRATION_TTLS

logger = logging.getLogger(__name__)

CLIP_ID_SCHEMA = {
    "type": "object",
    "properties": {
        "clip_id": {
            "type": "string",
            "description": "Phrase id (e.g. happy-fox-17) or public feed id",
        }
    },
    "required": ["clip_id"],
}


class ClipShareMCPServer:
    """MCP Server exposing the clip lifecycle as tools."""

    def __init__(self, settings: Optional[Settings] = None, kv: Optional[KVStore] = None):
        self.settings = settings or Settings.from_env()
        self.kv = kv or create_kv(self.settings)
        self.store = ClipStore(
            self.kv,
            feed_capacity=self.settings.feed_capacity,
            max_id_attempts=self.settings.max_id_attempts,
        )

        self.app = Server("clipshare")
        self._register_handlers()

    def _register_handlers(self):
        """Register MCP protocol handlers."""

        @self.app.list_tools()
        async def list_tools() -> List[Tool]:
            return [
                Tool(
                    name="clip_create",
                    description="Share text as a private phrase-linked clip or a public feed entry",
                    inputSchema={
                        "type": "object",
                        "properties": {
                            "text": {
                                "type": "string",
                                "description": "Text to share",
                            },
                            "is_public": {
                                "type": "boolean",
                                "description": "Post to the public feed (one-time pickup)",
                                "default": False,
                            },
                            "expiration": {
                                "type": "string",
                                "enum": list(EXPIRATION_TTLS),
                                "description": "Private clip lifetime; 'first' deletes on first view",
                                "default": "1h",
                            },
                        },
                        "required": ["text"],
                    },
                ),
                Tool(
                    name="clip_feed",
                    description="List public feed entries, newest first",
                    inputSchema={"type": "object", "properties": {}},
                ),
                Tool(
                    name="clip_copy",
                    description="Take a public clip from the feed",
                    inputSchema=CLIP_ID_SCHEMA,
                ),
                Tool(
                    name="clip_view",
                    description="Read a clip by id",
                    inputSchema=CLIP_ID_SCHEMA,
                ),
                Tool(
                    name="clip_delete",
                    description="Admin: remove a clip by id",
                    inputSchema=CLIP_ID_SCHEMA,
                ),
                Tool(
                    name="clip_list_all",
                    description="Admin: list every stored clip, newest first",
                    inputSchema={"type": "object", "properties": {}},
                ),
                Tool(
                    name="clip_stats",
                    description="Admin: clip usage statistics",
                    inputSchema={"type": "object", "properties": {}},
                ),
            ]

        @self.app.call_tool()
        async def call_tool(name: str, arguments: Dict[str, Any]) -> List[TextContent]:
            """Handle MCP tool calls with structured output."""
            try:
                result = await self._dispatch_tool_call(name, arguments or {})
                return [
                    TextContent(
                        type="text",
                        text=json.dumps(result, indent=2, ensure_ascii=False),
                    )
                ]
            except Exception as e:
                logger.exception("Tool %s failed", name)
                error_result = {"error": str(e), "tool": name, "arguments": arguments}
                return [
                    TextContent(type="text", text=json.dumps(error_result, indent=2))
                ]

    async def _dispatch_tool_call(
        self, name: str, arguments: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Dispatch tool calls to appropriate handlers."""
        handlers = {
            "clip_create": self._handle_clip_create,
            "clip_feed": self._handle_clip_feed,
            "clip_copy": self._handle_clip_copy,
            "clip_view": self._handle_clip_view,
            "clip_delete": self._handle_clip_delete,
            "clip_list_all": self._handle_clip_list_all,
            "clip_stats": self._handle_clip_stats,
        }

        handler = handlers.get(name)
        if not handler:
            raise ValueError(f"Unknown tool: {name}")

        return await handler(arguments)

    def _validate_text(self, text: Any) -> str:
        """Reject missing or oversize text."""
        if not isinstance(text, str) or not text:
            raise ValueError("Text is required")
        if len(text) > self.settings.max_text_length:
            raise ValueError(
                f"Text exceeds {self.settings.max_text_length} characters"
            )
        return text

    def _validate_flag(self, value: Any, name: str) -> bool:
        """Accept only JSON booleans; strings like 'false' are rejected."""
        if not isinstance(value, bool):
            raise ValueError(f"{name} must be a boolean")
        return value

    async def _handle_clip_create(self, args: Dict[str, Any]) -> Dict[str, Any]:
        """Handle clip_create tool call."""
        text = self._validate_text(args.get("text"))
        result = await self.store.create(
            text,
            is_public=self._validate_flag(args.get("is_public", False), "is_public"),
            expiration=args.get("expiration"),
        )
        return result.to_response()

    async def _handle_clip_feed(self, args: Dict[str, Any]) -> Dict[str, Any]:
        """Handle clip_feed tool call."""
        items = await self.store.list_feed()
        return {"clips": [item.model_dump() for item in items]}

    async def _handle_clip_copy(self, args: Dict[str, Any]) -> Dict[str, Any]:
        """Handle clip_copy tool call."""
        result = await self.store.copy(args["clip_id"])
        return result.to_response()

    async def _handle_clip_view(self, args: Dict[str, Any]) -> Dict[str, Any]:
        """Handle clip_view tool call."""
        result = await self.store.view(args["clip_id"])
        return result.to_response()

    async def _handle_clip_delete(self, args: Dict[str, Any]) -> Dict[str, Any]:
        """Handle clip_delete tool call."""
        result = await self.store.delete(args["clip_id"])
        return result.to_response()

    async def _handle_clip_list_all(self, args: Dict[str, Any]) -> Dict[str, Any]:
        """Handle clip_list_all tool call."""
        clips = await self.store.list_all()
        return {"clips": [clip.model_dump(by_alias=True) for clip in clips]}

    async def _handle_clip_stats(self, args: Dict[str, Any]) -> Dict[str, Any]:
        """Handle clip_stats tool call."""
        return await self.store.get_stats()

    async def run(self):
        """Run MCP server over stdio."""
        try:
            async with stdio_server() as (read_stream, write_stream):
                await self.app.run(
                    read_stream,
                    write_stream,
                    InitializationOptions(
                        server_name="clipshare",
                        server_version="1.0.0",
                        capabilities=self.app.get_capabilities(
                            notification_options=NotificationOptions(),
                            experimental_capabilities={},
                        ),
                    ),
                )
        finally:
            await self.kv.close()


async def async_main(settings: Optional[Settings] = None):
    """Main async entry point."""
    server = ClipShareMCPServer(settings)
    await server.run()


def main():
    """Synchronous entry point for console script."""
    settings = Settings.from_env()
    # stdout carries the MCP stream
    logging.basicConfig(
        stream=sys.stderr,
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        asyncio.run(async_main(settings))
    except KeyboardInterrupt:
        logger.info("ClipShare MCP Server stopped")
    except Exception:
        logger.exception("Server error")
        raise


if __name__ == "__main__":
    main()
