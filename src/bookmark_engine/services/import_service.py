"""
Import of bookmarks from a Netscape/Chrome HTML export.

Import is best-effort: each accepted entry becomes exactly one outcome
(imported, skipped as a duplicate, or errored) and a bad entry never aborts
the batch. Only a document that cannot be parsed at all fails the whole
operation.
"""
import logging
import re
from dataclasses import dataclass
from functools import reduce

from bs4 import BeautifulSoup, Tag
from sqlalchemy.ext.asyncio import AsyncSession

from bookmark_engine.schemas.bookmark import BookmarkCreate
from bookmark_engine.schemas.import_stats import ImportOutcome, ImportStats
from bookmark_engine.services.bookmark_service import bookmark_exists, create_bookmark
from bookmark_engine.services.exceptions import BookmarkImportError

logger = logging.getLogger(__name__)

# Anything else (javascript:, data:, chrome:, place: ...) is dropped at parse time
ALLOWED_SCHEME_PATTERN = re.compile(r"^(https?|ftp|file):", re.IGNORECASE)


@dataclass(frozen=True)
class ParsedBookmark:
    url: str
    title: str


@dataclass(frozen=True)
class ImportEntryResult:
    """Outcome of importing one parsed entry; reason is set for errors."""

    entry: ParsedBookmark
    outcome: ImportOutcome
    reason: str | None = None


def _decode_document(document: str | bytes) -> str:
    if isinstance(document, str):
        return document
    if isinstance(document, bytes | bytearray):
        try:
            return bytes(document).decode("utf-8")
        except UnicodeDecodeError as e:
            raise BookmarkImportError("Failed to parse bookmark file: not valid UTF-8") from e
    raise BookmarkImportError(
        f"Failed to parse bookmark file: expected str or bytes, got {type(document).__name__}",
    )


def parse_bookmark_html(document: str | bytes) -> list[ParsedBookmark]:
    """
    Extract bookmark entries from an export document.

    Every anchor with an href is a candidate. Candidates with a blank href,
    a blank title, or a scheme other than http, https, ftp or file are
    discarded.

    Args:
        document: The export as text or UTF-8 bytes.

    Returns:
        Accepted entries in document order.

    Raises:
        BookmarkImportError: If the document cannot be decoded or parsed.
    """
    html = _decode_document(document)
    try:
        soup = BeautifulSoup(html, "lxml")
    except Exception as e:
        raise BookmarkImportError(f"Failed to parse bookmark file: {e}") from e

    entries: list[ParsedBookmark] = []
    for anchor in soup.find_all("a"):
        if not isinstance(anchor, Tag):
            continue
        href_value = anchor.get("href")
        href = href_value.strip() if isinstance(href_value, str) else ""
        title = anchor.get_text(strip=True)
        if not href or not title:
            continue
        if not ALLOWED_SCHEME_PATTERN.match(href):
            continue
        entries.append(ParsedBookmark(url=href, title=title))
    return entries


async def _import_entry(
    db: AsyncSession,
    entry: ParsedBookmark,
    profile_id: str,
    space_id: str,
) -> ImportEntryResult:
    try:
        # A failed entry rolls back only its own savepoint
        async with db.begin_nested():
            if await bookmark_exists(db, entry.url, profile_id, space_id):
                return ImportEntryResult(entry=entry, outcome=ImportOutcome.SKIPPED)
            await create_bookmark(
                db,
                BookmarkCreate(
                    url=entry.url,
                    title=entry.title,
                    profile_id=profile_id,
                    space_id=space_id,
                ),
            )
    except Exception as e:
        logger.warning("Failed to import bookmark %s: %s", entry.url, e)
        return ImportEntryResult(entry=entry, outcome=ImportOutcome.ERRORED, reason=str(e))

    return ImportEntryResult(entry=entry, outcome=ImportOutcome.IMPORTED)


def _tally(stats: ImportStats, result: ImportEntryResult) -> ImportStats:
    if result.outcome == ImportOutcome.IMPORTED:
        return stats.model_copy(update={"imported": stats.imported + 1})
    if result.outcome == ImportOutcome.SKIPPED:
        return stats.model_copy(update={"skipped": stats.skipped + 1})
    return stats.model_copy(update={"errors": stats.errors + 1})


async def import_entries(
    db: AsyncSession,
    entries: list[ParsedBookmark],
    profile_id: str,
    space_id: str,
) -> list[ImportEntryResult]:
    """
    Import parsed entries one by one.

    Entries are processed in order, so a url repeated within the same
    document is imported once and then skipped.
    """
    results = []
    for entry in entries:
        results.append(await _import_entry(db, entry, profile_id, space_id))
    return results


async def import_bookmarks(
    db: AsyncSession,
    document: str | bytes,
    profile_id: str,
    space_id: str,
) -> ImportStats:
    """
    Import an HTML export into a profile/space, skipping urls already present.

    Args:
        db: Database session.
        document: The export as text or UTF-8 bytes.
        profile_id: Profile to import into.
        space_id: Space to import into.

    Returns:
        ImportStats where total counts accepted entries.

    Raises:
        BookmarkImportError: If the document cannot be parsed.
    """
    entries = parse_bookmark_html(document)
    results = await import_entries(db, entries, profile_id, space_id)
    stats = reduce(_tally, results, ImportStats(total=len(entries)))
    logger.info(
        "Imported bookmarks into profile=%s space=%s: %s",
        profile_id,
        space_id,
        stats.model_dump(),
    )
    return stats
