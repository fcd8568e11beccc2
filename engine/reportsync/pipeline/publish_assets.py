"""
reportsync — Asset publishing step.

Rewrites local file references in a markdown report into hosted URLs:

  parse (mistune AST) → collect image / link / definition nodes
  → resolve local paths against the document directory
  → upload all of them concurrently through the injected uploader
  → splice the returned URIs into the original text at each link
    destination / reference definition

Rules:
  - URLs with a scheme (https:, mailto:, data:) and in-page anchors are left alone
  - the watermark image is never published
  - a referenced file that does not exist is skipped, the reference stays as written
  - any other upload failure fails the whole step; no partial output is returned
  - the document is never re-serialized: only destination URLs change, and
    destinations inside code blocks and code spans are not touched
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable
from urllib.parse import unquote, urlparse

import mistune

from reportsync.errors import AssetNotFoundError
from reportsync.models import AssetReference
from reportsync.pipeline.watermark import is_watermark_title
from reportsync.utils.logging import logger, step_timer

Uploader = Callable[[Path], Awaitable[str]]

# Some markdown serializers emit `?a=1\&b=2` for URLs with several query
# parameters. The backslash breaks the link on every platform.
_ESCAPED_QUERY_AMPERSAND = re.compile(r"\\&([^=\s]+)=")

# `](dest` of an inline link or image; group 2 is the destination.
_INLINE_DESTINATION = re.compile(r"(\]\([ \t]*\n?[ \t]*)(<[^<>\n]*>|[^\s()<>]+(?:\([^\s()<>]*\)[^\s()<>]*)*)")
# `[label]: dest` of a reference definition; group 2 is the destination.
_DEFINITION_DESTINATION = re.compile(r"^( {0,3}\[[^\]\n]+\]:[ \t]*\n?[ \t]*)(<[^<>\n]*>|\S+)", re.MULTILINE)
_FENCED_CODE = re.compile(r"^ {0,3}(`{3,}|~{3,})[^\n]*\n.*?(?:^ {0,3}\1[`~]*[ \t]*$|\Z)", re.MULTILINE | re.DOTALL)
_CODE_SPAN = re.compile(r"(`+)(?!`)(?:(?!\n[ \t]*\n).)+?(?<!`)\1(?!`)", re.DOTALL)

_NODE_TYPES = ("image", "link")


@dataclass
class PublishResult:
    markdown: str
    rewritten: dict[str, str] = field(default_factory=dict)
    missing: list[str] = field(default_factory=list)


def unescape_query_ampersands(text: str) -> str:
    return _ESCAPED_QUERY_AMPERSAND.sub(r"&\1=", text)


def parse_markdown(text: str) -> tuple[list[dict[str, Any]], Any]:
    """Return the mistune AST and the parser state holding reference definitions."""
    md = mistune.create_markdown(renderer="ast")
    return md.parse(text)


def _walk(tokens: list[dict[str, Any]]):
    for token in tokens:
        yield token
        children = token.get("children")
        if isinstance(children, list):
            yield from _walk(children)


def collect_references(tokens: list[dict[str, Any]], ref_links: dict[str, dict]) -> list[AssetReference]:
    """All image, link and definition nodes, in document order (definitions last)."""
    refs: list[AssetReference] = []
    for token in _walk(tokens):
        if token.get("type") in _NODE_TYPES and "ref" not in token:
            attrs = token.get("attrs") or {}
            refs.append(AssetReference(
                url=attrs.get("url", ""),
                kind=token["type"],
                title=attrs.get("title"),
            ))
    for definition in ref_links.values():
        refs.append(AssetReference(
            url=definition.get("url", ""),
            kind="definition",
            title=definition.get("title"),
        ))
    return refs


def local_path(url: str, base_dir: Path) -> Path | None:
    """Filesystem path a reference points at, or None for remote URLs and anchors."""
    if not url or url.startswith("#") or url.startswith("//"):
        return None
    parsed = urlparse(url)
    # single-letter schemes are Windows drive letters
    if parsed.scheme and len(parsed.scheme) > 1:
        return None
    rel = unquote(parsed.path) if not parsed.scheme else url
    if not rel:
        return None
    return (base_dir / rel).resolve()


def select_candidates(
    tokens: list[dict[str, Any]], ref_links: dict[str, dict], base_dir: Path
) -> dict[str, Path]:
    """Map of reference URL → local path for every reference eligible for upload."""
    found: dict[str, Path] = {}
    for ref in collect_references(tokens, ref_links):
        if is_watermark_title(ref.title) or ref.url in found:
            continue
        path = local_path(ref.url, base_dir)
        if path is not None:
            found[ref.url] = path
    return found


def _code_ranges(text: str) -> list[tuple[int, int]]:
    ranges = [m.span() for m in _FENCED_CODE.finditer(text)]
    for m in _CODE_SPAN.finditer(text):
        if not any(start <= m.start() < end for start, end in ranges):
            ranges.append(m.span())
    return ranges


def splice_destinations(text: str, replace: Callable[[str], str | None]) -> str:
    """
    Replace link destinations and definition URLs in place.

    `replace` gets each raw destination (angle brackets removed) and returns
    the new URL, or None to keep it. Everything else in `text` is kept byte for byte.
    """
    code = _code_ranges(text)
    edits: dict[int, tuple[int, str]] = {}
    for pattern in (_INLINE_DESTINATION, _DEFINITION_DESTINATION):
        for m in pattern.finditer(text):
            start, end = m.span(2)
            if start in edits or any(lo <= start < hi for lo, hi in code):
                continue
            raw = m.group(2)
            bracketed = raw.startswith("<") and raw.endswith(">")
            new = replace(raw[1:-1] if bracketed else raw)
            if new is not None:
                edits[start] = (end, f"<{new}>" if bracketed else new)

    out: list[str] = []
    cursor = 0
    for start in sorted(edits):
        end, new = edits[start]
        out.append(text[cursor:start])
        out.append(new)
        cursor = end
    out.append(text[cursor:])
    return "".join(out)


class AssetPublisher:
    """Publishes the local files a markdown document references and rewrites their URLs."""

    def __init__(self, uploader: Uploader):
        self.uploader = uploader

    def local_references(self, markdown: str, base_dir: Path) -> list[Path]:
        tokens, state = parse_markdown(markdown)
        return sorted(set(select_candidates(tokens, state.env.get("ref_links", {}), base_dir).values()))

    async def _publish_one(self, url: str, path: Path) -> tuple[str, str | None]:
        try:
            return url, await self.uploader(path)
        except (AssetNotFoundError, FileNotFoundError):
            logger.warning("  Skipping %s: file not found (%s)", url, path)
            return url, None

    async def publish(self, markdown: str, base_dir: Path) -> PublishResult:
        with step_timer("Publish assets"):
            tokens, state = parse_markdown(markdown)
            candidates = select_candidates(tokens, state.env.get("ref_links", {}), base_dir)

            if not candidates:
                logger.info("  No local references")
                return PublishResult(markdown=markdown)

            outcomes = await asyncio.gather(
                *(self._publish_one(url, path) for url, path in candidates.items()),
                return_exceptions=True,
            )
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    raise outcome

            mapping = {url: unescape_query_ampersands(uri) for url, uri in outcomes if uri is not None}
            missing = [url for url, uri in outcomes if uri is None]
            if not mapping:
                return PublishResult(markdown=markdown, missing=missing)

            by_path = {candidates[url]: uri for url, uri in mapping.items()}
            rewritten = splice_destinations(markdown, lambda raw: by_path.get(local_path(raw, base_dir)))
            logger.info("  Published %d of %d local references", len(mapping), len(candidates))
            return PublishResult(markdown=rewritten, rewritten=mapping, missing=missing)
