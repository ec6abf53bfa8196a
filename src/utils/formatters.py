"""
Outbound text formatting utilities.

This module turns raw language-model output into Messenger-ready text:
markdown artifacts are stripped and long replies are split into
platform-sized chunks at paragraph and sentence boundaries.
"""

import re
from typing import Iterable, List, Optional

from src.config.constants import MESSENGER_MAX_MESSAGE_LENGTH

_PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n")
_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?…])\s+")

# Markdown patterns, applied in order
_CODE_FENCE = re.compile(r"```[^\n`]*\n?(.*?)```", re.DOTALL)
_IMAGE = re.compile(r"!\[([^\]]*)\]\([^)]*\)")
_LINK = re.compile(r"\[([^\]]+)\]\(([^)\s]+)\)")
_INLINE_CODE = re.compile(r"`([^`\n]+)`")
_HEADING = re.compile(r"^[ \t]{0,3}#{1,6}[ \t]+", re.MULTILINE)
_BLOCKQUOTE = re.compile(r"^[ \t]{0,3}(?:>[ \t]?)+", re.MULTILINE)
_HORIZONTAL_RULE = re.compile(r"^[ \t]*([-*_])(?:[ \t]*\1){2,}[ \t]*$", re.MULTILINE)
_BULLET = re.compile(r"^([ \t]*)[*+][ \t]+", re.MULTILINE)
_BOLD_STARS = re.compile(r"\*\*(.+?)\*\*")
_BOLD_UNDERSCORES = re.compile(r"__(.+?)__")
_STRIKETHROUGH = re.compile(r"~~(.+?)~~")
_ITALIC_STAR = re.compile(r"(?<![\w*])\*(?!\s)([^*\n]+?)(?<!\s)\*(?![\w*])")
_ITALIC_UNDERSCORE = re.compile(r"(?<![\w_])_(?!\s)([^_\n]+?)(?<!\s)_(?![\w_])")
_TRAILING_SPACE = re.compile(r"[ \t]+$", re.MULTILINE)
_BLANK_RUNS = re.compile(r"\n{3,}")


class MessageFormatter:
    """
    Message content formatting for Messenger.

    Messenger renders plain text only, so markdown produced by the model
    has to be removed before sending, and replies longer than the Send API
    limit have to be delivered as several messages.
    """

    @staticmethod
    def clean(text: Optional[str]) -> str:
        """
        Strip markdown formatting from model output.

        Args:
            text: Raw model reply

        Returns:
            Plain text with at most one blank line between paragraphs
        """
        if not text:
            return ""

        text = text.replace("\r\n", "\n").replace("\r", "\n")
        text = _CODE_FENCE.sub(r"\1", text)
        text = _IMAGE.sub(r"\1", text)
        text = _LINK.sub(r"\1 (\2)", text)
        text = _INLINE_CODE.sub(r"\1", text)
        text = _HEADING.sub("", text)
        text = _BLOCKQUOTE.sub("", text)
        text = _HORIZONTAL_RULE.sub("", text)
        text = _BULLET.sub(r"\1- ", text)
        text = _BOLD_STARS.sub(r"\1", text)
        text = _BOLD_UNDERSCORES.sub(r"\1", text)
        text = _STRIKETHROUGH.sub(r"\1", text)
        text = _ITALIC_STAR.sub(r"\1", text)
        text = _ITALIC_UNDERSCORE.sub(r"\1", text)
        text = _TRAILING_SPACE.sub("", text)
        text = _BLANK_RUNS.sub("\n\n", text)
        return text.strip()

    @staticmethod
    def chunk(text: Optional[str], max_length: int = MESSENGER_MAX_MESSAGE_LENGTH) -> List[str]:
        """
        Split text into chunks of at most ``max_length`` characters.

        Paragraphs are packed together while they fit. A paragraph that is
        too long on its own is packed sentence by sentence instead. A single
        sentence longer than ``max_length`` is emitted as its own oversized
        chunk.

        Args:
            text: Text to split
            max_length: Maximum chunk length, at least 1

        Returns:
            Ordered list of stripped, non-empty chunks

        Raises:
            ValueError: If max_length is smaller than 1
        """
        if max_length < 1:
            raise ValueError(f"max_length must be at least 1, got {max_length}")

        if not text or not text.strip():
            return []

        paragraphs = [p.strip() for p in _PARAGRAPH_BREAK.split(text.strip()) if p.strip()]

        chunks: List[str] = []
        current = ""
        for paragraph in paragraphs:
            if len(paragraph) > max_length:
                if current:
                    chunks.append(current)
                    current = ""
                sentences = _SENTENCE_BOUNDARY.split(paragraph)
                chunks.extend(MessageFormatter._pack(sentences, " ", max_length))
                continue

            candidate = f"{current}\n\n{paragraph}" if current else paragraph
            if len(candidate) <= max_length:
                current = candidate
            else:
                chunks.append(current)
                current = paragraph

        if current:
            chunks.append(current)

        return chunks

    @staticmethod
    def _pack(pieces: Iterable[str], separator: str, max_length: int) -> List[str]:
        """Greedily join pieces while the joined length fits."""
        packed: List[str] = []
        current = ""
        for piece in pieces:
            piece = piece.strip()
            if not piece:
                continue
            if not current:
                current = piece
                continue
            candidate = f"{current}{separator}{piece}"
            if len(candidate) <= max_length:
                current = candidate
            else:
                packed.append(current)
                current = piece
        if current:
            packed.append(current)
        return packed


def clean_response(text: Optional[str]) -> str:
    """Strip markdown artifacts from a model reply."""
    return MessageFormatter.clean(text)


def chunk_message(text: Optional[str], max_length: int = MESSENGER_MAX_MESSAGE_LENGTH) -> List[str]:
    """Split an outbound message into Messenger-sized chunks."""
    return MessageFormatter.chunk(text, max_length)

