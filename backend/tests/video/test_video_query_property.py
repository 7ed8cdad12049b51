"""Property-based tests for video listings and playable URLs.

**Feature: video-transcoding, Property 4: Owner-Scoped Reads**
"""

import pytest
from hypothesis import given, settings, strategies as st

from app.core.errors import NotFoundError
from app.modules.video.models import VideoStatus
from app.modules.video.service import VideoQueryService

from fakes import FakeVideoRepository, InMemoryBlobStore


owner_strategy = st.from_regex(r"[a-z]{1,12}@[a-z]{1,8}\.com", fullmatch=True)


async def seed(videos: FakeVideoRepository, owner: str, name: str, transcoded: bool = False):
    original = await videos.create(owner, f"1700000000000-0000aaaa-{name}.mp4", name)
    if not transcoded:
        return original
    return await videos.create(
        owner,
        original.file_path,
        f"{name} - Transcoded",
        status=VideoStatus.TRANSCODED,
        transcoded_path=f"1700000000001-0000bbbb-transcoded-low-{original.file_path}",
        quality="low",
    )


class TestListVideos:
    """Property tests for list_videos."""

    @given(
        owner=owner_strategy,
        other=owner_strategy,
        mine=st.integers(min_value=0, max_value=5),
        theirs=st.integers(min_value=0, max_value=5),
    )
    @settings(max_examples=50)
    @pytest.mark.asyncio
    async def test_listing_only_contains_owner_rows(
        self, owner: str, other: str, mine: int, theirs: int
    ) -> None:
        """**Feature: video-transcoding, Property 4: Owner-Scoped Reads**

        For any mix of rows, list_videos SHALL return exactly the caller's rows.
        """
        if owner == other:
            other = "z" + other
        videos = FakeVideoRepository()
        for i in range(mine):
            await seed(videos, owner, f"mine{i}")
        for i in range(theirs):
            await seed(videos, other, f"theirs{i}")

        listing = await VideoQueryService(videos, InMemoryBlobStore()).list_videos(owner)

        assert len(listing) == mine
        assert all("mine" in v.description for v in listing)

    @pytest.mark.asyncio
    async def test_transcoded_row_has_both_urls(self) -> None:
        videos = FakeVideoRepository()
        row = await seed(videos, "a@example.com", "clip", transcoded=True)

        listing = await VideoQueryService(videos, InMemoryBlobStore(), url_ttl=60).list_videos("a@example.com")

        by_id = {v.id: v for v in listing}
        original = by_id[1]
        transcoded = by_id[row.id]
        assert original.transcoded_url is None
        assert original.status == VideoStatus.UPLOADING
        assert row.file_path in transcoded.original_url
        assert row.transcoded_path in transcoded.transcoded_url
        assert "ttl=60" in transcoded.transcoded_url
        assert transcoded.quality == "low"

    @pytest.mark.asyncio
    async def test_empty_listing(self) -> None:
        listing = await VideoQueryService(FakeVideoRepository(), InMemoryBlobStore()).list_videos("a@example.com")
        assert listing == []


class TestPlayableUrl:
    """Property tests for get_playable_url."""

    @pytest.mark.asyncio
    async def test_transcoded_row_plays_the_transcode(self) -> None:
        videos = FakeVideoRepository()
        row = await seed(videos, "a@example.com", "clip", transcoded=True)
        service = VideoQueryService(videos, InMemoryBlobStore())

        url = await service.get_playable_url("a@example.com", row.id)

        assert row.transcoded_path in url
        assert "download" not in url

    @pytest.mark.asyncio
    async def test_original_row_plays_the_original(self) -> None:
        videos = FakeVideoRepository()
        row = await seed(videos, "a@example.com", "clip")
        service = VideoQueryService(videos, InMemoryBlobStore())

        url = await service.get_playable_url("a@example.com", row.id, as_attachment=True)

        assert row.file_path in url
        assert url.endswith("&download=1")

    @given(owner=owner_strategy, other=owner_strategy)
    @settings(max_examples=30)
    @pytest.mark.asyncio
    async def test_other_owners_video_is_not_found(self, owner: str, other: str) -> None:
        """**Feature: video-transcoding, Property 4: Owner-Scoped Reads**

        A video owned by someone else SHALL be indistinguishable from a
        missing one.
        """
        if owner == other:
            other = "z" + other
        videos = FakeVideoRepository()
        row = await seed(videos, owner, "clip")
        service = VideoQueryService(videos, InMemoryBlobStore())

        with pytest.raises(NotFoundError) as theirs:
            await service.get_playable_url(other, row.id)
        with pytest.raises(NotFoundError) as missing:
            await service.get_playable_url(other, row.id + 100)

        assert theirs.value.kind == missing.value.kind
