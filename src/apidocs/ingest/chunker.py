"""Markdown chunker: heading-aware splits that never break a code fence.

Strategy:
- Parse the document line by line into headings, fenced code blocks and
  paragraphs (blank-line separated).
- A heading closes the current chunk and opens a new section; the heading
  line itself becomes the first line of the section's first chunk.
- Paragraphs accumulate until the next one would exceed the character budget
  (``max_tokens * CHARS_PER_TOKEN``). Oversized paragraphs are split on line
  breaks, then on word boundaries.
- A code fence is kept whole. It joins the text gathered before it when the
  result still fits the budget; failing that, it takes only the paragraph
  immediately preceding it; failing that, it stands alone (even above budget).
"""

from __future__ import annotations

import hashlib
import re
import textwrap
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import PurePosixPath

from apidocs.models import CHARS_PER_TOKEN, Chunk, ChunkType, DocFile

_HEADING_RE = re.compile(r"^ {0,3}(#{1,6})[ \t]+(.*?)(?:[ \t]+#+)?[ \t]*$")
_FENCE_OPEN_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})[ \t]*([\w+#.-]*)")
_SLUG_RE = re.compile(r"[^a-z0-9]+")


@dataclass
class _Block:
    kind: str  # "heading" | "code" | "text"
    text: str
    level: int = 0
    title: str = ""
    language: str | None = None


@dataclass
class _Piece:
    content: str
    type: ChunkType
    hierarchy: list[str]
    language: str | None = None


class MarkdownChunker:
    """Split Markdown documents into bounded, addressable chunks."""

    def __init__(self, max_tokens: int = 500) -> None:
        if max_tokens < 1:
            raise ValueError("max_tokens must be >= 1")
        self.max_tokens = max_tokens
        self.max_chars = max_tokens * CHARS_PER_TOKEN

    def chunk(self, doc_files: Iterable[DocFile]) -> list[Chunk]:
        """Chunk every document, preserving input order."""
        chunks: list[Chunk] = []
        for doc in doc_files:
            chunks.extend(self.chunk_document(doc.content, doc.path))
        return chunks

    def chunk_document(self, content: str, file_path: str) -> list[Chunk]:
        if not content.strip():
            return []

        stack: list[tuple[int, str]] = []
        pieces: list[_Piece] = []
        buffer: list[str] = []

        def hierarchy() -> list[str]:
            return [title for _, title in stack]

        def flush() -> None:
            if buffer:
                pieces.append(_Piece("\n\n".join(buffer), "text", hierarchy()))
                buffer.clear()

        def add_text(text: str) -> None:
            for part in self._fit(text):
                if buffer and _joined_len(buffer) + 2 + len(part) > self.max_chars:
                    flush()
                buffer.append(part)

        for block in _parse_blocks(content):
            if block.kind == "heading":
                flush()
                while stack and stack[-1][0] >= block.level:
                    stack.pop()
                stack.append((block.level, block.title))
                add_text(block.text)
            elif block.kind == "text":
                add_text(block.text)
            else:
                self._place_code(block, buffer, pieces, flush, hierarchy())
        flush()

        return self._to_chunks(pieces, file_path, stack_default=_file_stem(file_path))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _place_code(
        self,
        block: _Block,
        buffer: list[str],
        pieces: list[_Piece],
        flush,
        hierarchy: list[str],
    ) -> None:
        code = block.text
        if buffer and _joined_len(buffer) + 2 + len(code) <= self.max_chars:
            content = "\n\n".join([*buffer, code])
            buffer.clear()
        elif buffer and len(buffer[-1]) + 2 + len(code) <= self.max_chars:
            lead = buffer.pop()
            flush()
            content = f"{lead}\n\n{code}"
        else:
            flush()
            content = code
        pieces.append(_Piece(content, "code", hierarchy, block.language))

    def _fit(self, text: str) -> list[str]:
        """Split *text* into parts no longer than ``max_chars``."""
        if len(text) <= self.max_chars:
            return [text]

        parts: list[str] = []
        current: list[str] = []
        for line in text.split("\n"):
            if len(line) > self.max_chars:
                if current:
                    parts.append("\n".join(current))
                    current = []
                parts.extend(
                    textwrap.wrap(
                        line,
                        self.max_chars,
                        break_long_words=True,
                        break_on_hyphens=False,
                    )
                )
                continue
            if current and _joined_len(current, sep=1) + 1 + len(line) > self.max_chars:
                parts.append("\n".join(current))
                current = []
            current.append(line)
        if current:
            parts.append("\n".join(current))
        return [p for p in parts if p.strip()]

    def _to_chunks(self, pieces: list[_Piece], file_path: str, stack_default: str) -> list[Chunk]:
        slug = _SLUG_RE.sub("-", file_path.lower()).strip("-") or "doc"
        seen: dict[str, int] = {}
        chunks: list[Chunk] = []
        for piece in pieces:
            if not piece.content.strip():
                continue
            digest = hashlib.sha1(
                "\x00".join([file_path, "\x1f".join(piece.hierarchy), piece.content]).encode(
                    "utf-8"
                )
            ).hexdigest()[:12]
            occurrence = seen.get(digest, 0)
            seen[digest] = occurrence + 1
            chunk_id = f"{slug}-{digest}" if occurrence == 0 else f"{slug}-{digest}-{occurrence}"
            chunks.append(
                Chunk(
                    id=chunk_id,
                    content=piece.content,
                    title=piece.hierarchy[-1] if piece.hierarchy else stack_default,
                    type=piece.type,
                    file_path=file_path,
                    heading_hierarchy=list(piece.hierarchy),
                    code_language=piece.language if piece.type == "code" else None,
                )
            )
        return chunks


def _parse_blocks(content: str) -> list[_Block]:
    lines = content.splitlines()
    blocks: list[_Block] = []
    paragraph: list[str] = []

    def end_paragraph() -> None:
        if paragraph:
            blocks.append(_Block("text", "\n".join(paragraph)))
            paragraph.clear()

    i = 0
    while i < len(lines):
        line = lines[i]
        fence = _FENCE_OPEN_RE.match(line)
        if fence:
            end_paragraph()
            marker = fence.group(1)
            closing = re.compile(rf"^ {{0,3}}{re.escape(marker[0])}{{{len(marker)},}}[ \t]*$")
            body = [line]
            i += 1
            while i < len(lines):
                body.append(lines[i])
                i += 1
                if closing.match(body[-1]):
                    break
            blocks.append(_Block("code", "\n".join(body), language=fence.group(2) or None))
            continue

        heading = _HEADING_RE.match(line)
        if heading:
            end_paragraph()
            blocks.append(
                _Block(
                    "heading",
                    line.strip(),
                    level=len(heading.group(1)),
                    title=heading.group(2).strip(),
                )
            )
        elif not line.strip():
            end_paragraph()
        else:
            paragraph.append(line.rstrip())
        i += 1

    end_paragraph()
    return blocks


def _joined_len(parts: list[str], sep: int = 2) -> int:
    return sum(len(p) for p in parts) + sep * (len(parts) - 1)


def _file_stem(file_path: str) -> str:
    stem = PurePosixPath(file_path.rstrip("/")).stem
    return stem or file_path or "index"
