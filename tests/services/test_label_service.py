"""Tests for label service layer functionality."""
import pytest
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bookmark_engine.models.label import BookmarkLabel, LabelCategory, LabelSource
from bookmark_engine.schemas.bookmark import AILabelInput, BookmarkCreate, LabelInput
from bookmark_engine.services.bookmark_service import create_bookmark, delete_bookmark
from bookmark_engine.services.label_service import (
    add_labels,
    get_label_counts,
    normalize_label_texts,
    replace_user_labels,
    set_ai_labels,
)


async def _labels(db: AsyncSession, bookmark_id: str) -> dict[str, BookmarkLabel]:
    result = await db.execute(
        select(BookmarkLabel).where(BookmarkLabel.bookmark_id == bookmark_id),
    )
    return {row.label: row for row in result.scalars()}


@pytest.fixture
async def bookmark_id(db_session: AsyncSession) -> str:
    """A bookmark with one user label."""
    bookmark = await create_bookmark(
        db_session,
        BookmarkCreate(
            url="https://example.com",
            title="Example",
            profile_id="profile-1",
            space_id="space-1",
            labels=["user-label"],
        ),
    )
    return bookmark.id


# =============================================================================
# normalize_label_texts
# =============================================================================


def test__normalize_label_texts__strips_and_dedupes_preserving_order() -> None:
    assert normalize_label_texts([" b ", "a", "", "  ", "b", "A"]) == ["b", "a", "A"]


def test__normalize_label_texts__rejects_overlong_label() -> None:
    with pytest.raises(ValueError, match="maximum length"):
        normalize_label_texts(["x" * 101])


# =============================================================================
# replace_user_labels
# =============================================================================


async def test__replace_user_labels__never_touches_ai_or_auto(
    db_session: AsyncSession,
    bookmark_id: str,
) -> None:
    await add_labels(
        db_session,
        bookmark_id,
        [
            LabelInput(label="from-ai", source=LabelSource.AI, confidence=0.9),
            LabelInput(label="from-auto", source=LabelSource.AUTO),
        ],
    )

    inserted = await replace_user_labels(db_session, bookmark_id, ["fresh", "from-ai"])

    labels = await _labels(db_session, bookmark_id)
    assert inserted == 1
    assert set(labels) == {"fresh", "from-ai", "from-auto"}
    assert labels["fresh"].source == LabelSource.USER
    # Held by ai, so the user copy was skipped rather than duplicated
    assert labels["from-ai"].source == LabelSource.AI
    assert labels["from-ai"].confidence == 0.9


async def test__replace_user_labels__empty_list_clears_user_labels(
    db_session: AsyncSession,
    bookmark_id: str,
) -> None:
    await replace_user_labels(db_session, bookmark_id, [])
    assert await _labels(db_session, bookmark_id) == {}


# =============================================================================
# add_labels
# =============================================================================


async def test__add_labels__skips_existing_text_from_any_source(
    db_session: AsyncSession,
    bookmark_id: str,
) -> None:
    inserted = await add_labels(
        db_session,
        bookmark_id,
        [
            LabelInput(label="user-label", source=LabelSource.AI),
            LabelInput(label="new", source=LabelSource.AUTO, category=LabelCategory.TOPIC),
            LabelInput(label="new"),
        ],
    )

    labels = await _labels(db_session, bookmark_id)
    assert inserted == 1
    assert labels["user-label"].source == LabelSource.USER
    assert labels["new"].source == LabelSource.AUTO
    assert labels["new"].category == LabelCategory.TOPIC


async def test__add_labels__twice_produces_one_row(
    db_session: AsyncSession,
    bookmark_id: str,
) -> None:
    batch = [LabelInput(label="python")]
    assert await add_labels(db_session, bookmark_id, batch) == 1
    assert await add_labels(db_session, bookmark_id, batch) == 0

    result = await db_session.execute(
        select(BookmarkLabel).where(
            BookmarkLabel.bookmark_id == bookmark_id,
            BookmarkLabel.label == "python",
        ),
    )
    assert len(result.scalars().all()) == 1


def test__label_input__drops_confidence_for_non_ai() -> None:
    assert LabelInput(label="x", confidence=0.5).confidence is None
    assert LabelInput(label="x", source=LabelSource.AI, confidence=0.5).confidence == 0.5


def test__label_input__rejects_confidence_out_of_range() -> None:
    with pytest.raises(ValidationError):
        LabelInput(label="x", source=LabelSource.AI, confidence=1.5)


def test__label_input__rejects_blank_label() -> None:
    with pytest.raises(ValidationError):
        LabelInput(label="   ")


# =============================================================================
# set_ai_labels
# =============================================================================


async def test__set_ai_labels__replaces_previous_ai_batch(
    db_session: AsyncSession,
    bookmark_id: str,
) -> None:
    await set_ai_labels(
        db_session,
        bookmark_id,
        [AILabelInput(label="old-ai", confidence=0.4), AILabelInput(label="kept-ai")],
    )

    inserted = await set_ai_labels(
        db_session,
        bookmark_id,
        [
            AILabelInput(label="kept-ai", confidence=0.8, category=LabelCategory.TYPE),
            AILabelInput(label="user-label", confidence=0.7),
        ],
    )

    labels = await _labels(db_session, bookmark_id)
    assert inserted == 1
    assert set(labels) == {"user-label", "kept-ai"}
    assert labels["user-label"].source == LabelSource.USER
    assert labels["kept-ai"].source == LabelSource.AI
    assert labels["kept-ai"].confidence == 0.8
    assert labels["kept-ai"].category == LabelCategory.TYPE


async def test__set_ai_labels__empty_batch_clears_ai_labels(
    db_session: AsyncSession,
    bookmark_id: str,
) -> None:
    await set_ai_labels(db_session, bookmark_id, [AILabelInput(label="ai")])
    await set_ai_labels(db_session, bookmark_id, [])

    assert set(await _labels(db_session, bookmark_id)) == {"user-label"}


# =============================================================================
# get_label_counts
# =============================================================================


async def test__get_label_counts__counts_live_bookmarks_sorted(
    db_session: AsyncSession,
) -> None:
    async def make(url: str, labels: list[str], profile_id: str = "profile-1") -> str:
        bookmark = await create_bookmark(
            db_session,
            BookmarkCreate(
                url=url, title=url, profile_id=profile_id, space_id="s", labels=labels,
            ),
        )
        return bookmark.id

    await make("https://1.com", ["python", "web"])
    await make("https://2.com", ["python"])
    trashed = await make("https://3.com", ["python", "web", "gone"])
    await make("https://4.com", ["web"], profile_id="profile-2")
    await delete_bookmark(db_session, trashed)

    counts = await get_label_counts(db_session)
    assert [(c.label, c.count) for c in counts] == [("python", 2), ("web", 2)]

    scoped = await get_label_counts(db_session, profile_id="profile-1")
    assert [(c.label, c.count) for c in scoped] == [("python", 2), ("web", 1)]
