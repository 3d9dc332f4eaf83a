"""MCP server exposing the note and tag operations as tools."""

import atexit
import json
import logging
import uuid
from typing import Any, Optional

from mcp.server.fastmcp import FastMCP

from lychee_notes.config import config
from lychee_notes.exceptions import LycheeError
from lychee_notes.observability import metrics
from lychee_notes.services.note_service import NoteService
from lychee_notes.utils import parse_tag_list

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 1_000_000  # 1 MB


def _validate_content_length(content: Optional[str]) -> None:
    """Validate input string lengths at the MCP boundary."""
    if content and len(content) > MAX_CONTENT_LENGTH:
        raise ValueError(
            f"Content exceeds maximum length of {MAX_CONTENT_LENGTH} characters"
        )


def _to_json(value: Any) -> str:
    """Serialize pydantic models (or lists of them) for a tool response."""
    if isinstance(value, list):
        value = [
            item.model_dump(mode="json") if hasattr(item, "model_dump") else item
            for item in value
        ]
    elif hasattr(value, "model_dump"):
        value = value.model_dump(mode="json")
    return json.dumps(value, indent=2, ensure_ascii=False)


class LycheeMcpServer:
    """MCP server for Lychee Notes."""

    def __init__(self, engine):
        """Initialize the MCP server.

        Args:
            engine: The process-wide SQLAlchemy engine from ``init_db``.
        """
        self.mcp = FastMCP(config.server_name)
        self.note_service = NoteService(engine)
        # Register shutdown hook for resource cleanup
        atexit.register(self._shutdown)
        self._register_tools()
        logger.info("Lychee Notes MCP server initialized")

    def _shutdown(self) -> None:
        """Clean up resources on server exit."""
        self.note_service.shutdown()

    def format_error_response(self, error: Exception) -> str:
        """Format an error response in a consistent way.

        Args:
            error: The exception that occurred

        Returns:
            Formatted error message with appropriate level of detail
        """
        # Generate a unique error ID for traceability in logs
        error_id = str(uuid.uuid4())[:8]

        if isinstance(error, LycheeError):
            logger.error(
                f"[{error.code.name}] [{error_id}]: {error.message}",
                extra={"error_details": error.details},
            )
            return f"Error: {error.message}"
        elif isinstance(error, ValueError):
            logger.error(f"Validation error [{error_id}]: {str(error)}")
            return f"Error: Invalid input ({error})"
        else:
            # Unexpected errors - log with full stack trace but return generic message
            logger.error(f"Unexpected error [{error_id}]: {str(error)}", exc_info=True)
            return f"Error: An unexpected error occurred (ref: {error_id})"

    def _register_tools(self) -> None:
        """Register MCP tools."""

        # ========== Notes ==========

        @self.mcp.tool(name="create_note")
        def create_note(content: str, tags: Optional[str] = None) -> str:
            """Create a new note.
            Args:
                content: The text of the note
                tags: Comma-separated list of tags (optional)
            """
            try:
                _validate_content_length(content)
                note_id = self.note_service.create_note(content, parse_tag_list(tags))
                return f"Note created successfully with ID: {note_id}"
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="get_all_notes")
        def get_all_notes() -> str:
            """List every note with its tags, newest first."""
            try:
                return _to_json(self.note_service.get_all_notes())
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="get_note_by_id")
        def get_note_by_id(id: int) -> str:
            """Retrieve a note and its tags.
            Args:
                id: The ID of the note
            """
            try:
                note = self.note_service.get_note_by_id(id)
                if note is None:
                    return f"Note not found: {id}"
                return _to_json(note)
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="update_note")
        def update_note(id: int, content: str, tags: str) -> str:
            """Replace a note's content and its full set of tags.

            Tags the note had before but which are not listed are removed.
            Args:
                id: The ID of the note to update
                content: The new text of the note
                tags: Comma-separated list of all tags the note should carry;
                    an empty string removes every tag
            """
            try:
                _validate_content_length(content)
                self.note_service.update_note(id, content, parse_tag_list(tags))
                return f"Note updated successfully: {id}"
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="delete_note")
        def delete_note(id: int) -> str:
            """Delete a note. Deleting a missing note does nothing.
            Args:
                id: The ID of the note to delete
            """
            try:
                if self.note_service.delete_note(id):
                    return f"Note deleted successfully: {id}"
                return f"Note {id} does not exist; nothing to delete"
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="get_tags_for_note")
        def get_tags_for_note(id: int) -> str:
            """List the tags of a note, alphabetically.
            Args:
                id: The ID of the note
            """
            try:
                return _to_json(self.note_service.get_tags_for_note(id))
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="search_notes_by_tags")
        def search_notes_by_tags(tags: Optional[str] = None) -> str:
            """Find notes that carry ALL of the given tags.
            Args:
                tags: Comma-separated list of tags; empty lists every note
            """
            try:
                return _to_json(self.note_service.search_notes_by_tags(parse_tag_list(tags)))
            except Exception as e:
                return self.format_error_response(e)

        # ========== Tags ==========

        @self.mcp.tool(name="get_all_tags")
        def get_all_tags() -> str:
            """List every tag with its ID, alphabetically."""
            try:
                return _to_json(self.note_service.get_all_tags())
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="rename_tag")
        def rename_tag(tag_id: int, new_name: str, merge: bool = False) -> str:
            """Rename a tag on every note that carries it.
            Args:
                tag_id: The ID of the tag to rename
                new_name: The new tag name
                merge: If another tag already has new_name, fold this tag into it
                    instead of failing
            """
            try:
                stored = self.note_service.rename_tag(tag_id, new_name, merge=merge)
                return f"Tag {tag_id} renamed to '{stored}'"
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="delete_tag")
        def delete_tag(tag_id: int) -> str:
            """Delete a tag and remove it from every note.
            Args:
                tag_id: The ID of the tag to delete
            """
            try:
                self.note_service.delete_tag(tag_id)
                return f"Tag {tag_id} deleted"
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="cleanup_tags")
        def cleanup_tags() -> str:
            """Delete tags that are not associated with any notes.

            Tags are normally removed as soon as their last note lets go of
            them; this is a maintenance operation.
            """
            try:
                count = self.note_service.cleanup_tags()
                if count == 0:
                    return "No unused tags found. Tag database is clean."
                return f"Cleaned up {count} unused tag(s)."
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="status")
        def status() -> str:
            """Show note and tag counts plus per-operation metrics."""
            try:
                return _to_json({
                    "notes": self.note_service.count_notes(),
                    "tags": self.note_service.count_tags(),
                    "metrics": metrics.snapshot(),
                })
            except Exception as e:
                return self.format_error_response(e)

    def run(self) -> None:
        """Run the MCP server."""
        self.mcp.run()
