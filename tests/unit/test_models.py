"""Tests for podcast and episode domain models."""

import hashlib
from datetime import datetime, timedelta, timezone

import pydantic
import pytest

from podshelf.feeds.models import (
    ALLOWED_TRANSITIONS,
    UNSET_PUBLISHED_AT,
    DownloadStatus,
    Episode,
    Podcast,
    can_transition,
    create_episode_id,
    create_podcast_id,
)
from podshelf.utils.errors import InvalidStateTransitionError, ValidationError


class TestIdentity:
    """Tests for id derivation."""

    def test_podcast_id_is_sha256_of_normalized_uri(self):
        """Podcast id hashes the trimmed, lower-cased URI."""
        expected = hashlib.sha256(b"https://example.com/feed.xml").hexdigest()
        assert create_podcast_id("  HTTPS://Example.com/Feed.xml ") == expected

    def test_podcast_id_is_case_insensitive(self):
        """URIs differing only in case share an id."""
        assert create_podcast_id("https://a.com/F") == create_podcast_id("https://A.com/f")

    def test_episode_id_is_sha256_of_key(self):
        """Episode id hashes the key verbatim."""
        expected = hashlib.sha256(b"guid-123").hexdigest()
        assert create_episode_id("guid-123") == expected
        assert len(expected) == 64

    @pytest.mark.parametrize("value", ["", "   "])
    def test_blank_keys_rejected(self, value):
        """Blank input cannot produce an id."""
        with pytest.raises(ValidationError):
            create_podcast_id(value)
        with pytest.raises(ValidationError):
            create_episode_id(value)


class TestDownloadStatus:
    """Tests for the download state machine."""

    def test_every_status_has_transitions(self):
        """The transition table covers every status."""
        assert set(ALLOWED_TRANSITIONS) == set(DownloadStatus)

    @pytest.mark.parametrize(
        "current,target,allowed",
        [
            (DownloadStatus.NOT_STARTED, DownloadStatus.IN_PROGRESS, True),
            (DownloadStatus.NOT_STARTED, DownloadStatus.COMPLETED, False),
            (DownloadStatus.NOT_STARTED, DownloadStatus.FAILED, False),
            (DownloadStatus.IN_PROGRESS, DownloadStatus.COMPLETED, True),
            (DownloadStatus.IN_PROGRESS, DownloadStatus.FAILED, True),
            (DownloadStatus.IN_PROGRESS, DownloadStatus.IN_PROGRESS, False),
            (DownloadStatus.COMPLETED, DownloadStatus.IN_PROGRESS, True),
            (DownloadStatus.COMPLETED, DownloadStatus.FAILED, False),
            (DownloadStatus.FAILED, DownloadStatus.IN_PROGRESS, True),
            (DownloadStatus.FAILED, DownloadStatus.COMPLETED, False),
        ],
    )
    def test_can_transition(self, current, target, allowed):
        """Only the documented transitions are allowed."""
        assert can_transition(current, target) is allowed

    def test_values_are_persisted_names(self):
        """Enum values are the names written to disk."""
        assert [s.value for s in DownloadStatus] == [
            "NotStarted",
            "InProgress",
            "Completed",
            "Failed",
        ]


class TestEpisode:
    """Tests for Episode."""

    def test_defaults(self, episode_factory):
        """New episodes have not been downloaded."""
        episode = episode_factory(1)

        assert episode.download_status == DownloadStatus.NOT_STARTED
        assert episode.local_file_path is None
        assert episode.artwork_file_path is None
        assert episode.is_downloaded is False

    def test_published_at_defaults_to_unset(self):
        """Missing publish date uses the sentinel."""
        episode = Episode(id="abc", media_uri="https://a.com/1.mp3")
        assert episode.published_at == UNSET_PUBLISHED_AT

    def test_naive_published_at_becomes_utc(self):
        """Naive datetimes are treated as UTC."""
        episode = Episode(
            id="abc", media_uri="https://a.com/1.mp3", published_at=datetime(2024, 1, 1)
        )
        assert episode.published_at.tzinfo == timezone.utc

    @pytest.mark.parametrize("field", ["id", "media_uri"])
    def test_blank_identity_rejected(self, field):
        """Id and media URI must not be blank."""
        fields = {"id": "abc", "media_uri": "https://a.com/1.mp3", field: "  "}
        with pytest.raises(pydantic.ValidationError):
            Episode(**fields)

    def test_identity_is_frozen(self, episode_factory):
        """Id cannot be reassigned."""
        episode = episode_factory(1)
        with pytest.raises(pydantic.ValidationError):
            episode.id = "other"

    def test_successful_download_cycle(self, episode_factory):
        """NotStarted -> InProgress -> Completed records the paths."""
        episode = episode_factory(1)

        episode.mark_in_progress()
        assert episode.download_status == DownloadStatus.IN_PROGRESS

        episode.mark_completed("/media/ep1.mp3", "/media/Art/ep1.jpg")
        assert episode.download_status == DownloadStatus.COMPLETED
        assert episode.local_file_path == "/media/ep1.mp3"
        assert episode.artwork_file_path == "/media/Art/ep1.jpg"
        assert episode.is_downloaded is True

    def test_complete_without_start_rejected(self, episode_factory):
        """Completing requires an in-progress download."""
        episode = episode_factory(1)

        with pytest.raises(InvalidStateTransitionError):
            episode.mark_completed("/media/ep1.mp3")

        assert episode.download_status == DownloadStatus.NOT_STARTED
        assert episode.local_file_path is None

    def test_fail_without_start_rejected(self, episode_factory):
        """Failing requires an in-progress download."""
        with pytest.raises(InvalidStateTransitionError):
            episode_factory(1).mark_failed()

    def test_double_start_rejected(self, episode_factory):
        """An in-progress download cannot be started again."""
        episode = episode_factory(1)
        episode.mark_in_progress()

        with pytest.raises(InvalidStateTransitionError):
            episode.mark_in_progress()

    def test_blank_local_path_rejected_without_changing_state(self, episode_factory):
        """A blank path is rejected before the transition."""
        episode = episode_factory(1)
        episode.mark_in_progress()

        with pytest.raises(ValidationError):
            episode.mark_completed("  ")

        assert episode.download_status == DownloadStatus.IN_PROGRESS

    def test_retry_after_failure(self, episode_factory):
        """Failed downloads can be retried."""
        episode = episode_factory(1)
        episode.mark_in_progress()
        episode.mark_failed()
        episode.mark_in_progress()

        assert episode.download_status == DownloadStatus.IN_PROGRESS

    def test_redownload_keeps_previous_path_until_completed(self, episode_factory):
        """Starting a re-download does not clear the previous file."""
        episode = episode_factory(1)
        episode.mark_in_progress()
        episode.mark_completed("/media/ep1.mp3")

        episode.mark_in_progress()

        assert episode.local_file_path == "/media/ep1.mp3"
        assert episode.is_downloaded is False

    def test_blank_artwork_path_ignored(self, episode_factory):
        """Blank artwork paths never overwrite a known one."""
        episode = episode_factory(1)
        episode.set_artwork_file_path("/art.jpg")
        episode.set_artwork_file_path("")
        episode.set_artwork_file_path(None)

        assert episode.artwork_file_path == "/art.jpg"

    def test_completed_without_path_is_not_downloaded(self, episode_factory):
        """is_downloaded needs both the status and a path."""
        episode = episode_factory(1)
        episode.restore_download_state(DownloadStatus.COMPLETED, None)

        assert episode.is_downloaded is False

    def test_update_metadata_keeps_artwork_and_number_when_none(self, episode_factory):
        """None artwork URI and episode number keep current values."""
        episode = episode_factory(1, artwork_uri="https://a.com/art.jpg")
        new_date = datetime(2025, 1, 1, tzinfo=timezone.utc)

        episode.update_metadata("new summary", timedelta(seconds=5), new_date)

        assert episode.summary == "new summary"
        assert episode.duration == timedelta(seconds=5)
        assert episode.published_at == new_date
        assert episode.artwork_uri == "https://a.com/art.jpg"
        assert episode.episode_number == 1

    def test_rename_rejects_blank(self, episode_factory):
        """Titles set through rename must not be blank."""
        episode = episode_factory(1)
        with pytest.raises(ValidationError):
            episode.rename(" ")
        episode.rename("Renamed")
        assert episode.title == "Renamed"

    def test_merge_from_takes_metadata_keeps_download(self, episode_factory):
        """Merging fresh metadata keeps the local download."""
        stored = episode_factory(1)
        stored.mark_in_progress()
        stored.mark_completed("/media/ep1.mp3")

        fresh = episode_factory(1, title="Better title", summary="Fresh")
        stored.merge_from(fresh)

        assert stored.title == "Better title"
        assert stored.summary == "Fresh"
        assert stored.download_status == DownloadStatus.COMPLETED
        assert stored.local_file_path == "/media/ep1.mp3"

    def test_merge_from_takes_download_state_when_incoming_has_path(self, episode_factory):
        """Incoming download state wins when it carries a file path."""
        stored = episode_factory(1)
        incoming = episode_factory(1)
        incoming.mark_in_progress()
        incoming.mark_completed("/other/ep1.mp3")

        stored.merge_from(incoming)

        assert stored.is_downloaded
        assert stored.local_file_path == "/other/ep1.mp3"

    def test_merge_from_rejects_other_id(self, episode_factory):
        """Episodes with different ids cannot merge."""
        with pytest.raises(ValidationError):
            episode_factory(1).merge_from(episode_factory(2))

    def test_clone_is_independent(self, episode_factory):
        """Clones carry download state but don't share it."""
        episode = episode_factory(1)
        episode.mark_in_progress()

        copy = episode.clone()
        copy.mark_failed()

        assert copy.download_status == DownloadStatus.FAILED
        assert episode.download_status == DownloadStatus.IN_PROGRESS


class TestPodcast:
    """Tests for Podcast."""

    def test_create_derives_id(self):
        """create() hashes the feed URI."""
        podcast = Podcast.create(feed_uri=" https://example.com/feed.xml ", title="Show")

        assert podcast.id == create_podcast_id("https://example.com/feed.xml")
        assert podcast.feed_uri == "https://example.com/feed.xml"
        assert podcast.episodes == ()

    def test_blank_title_rejected(self):
        """Podcasts need a title."""
        with pytest.raises(pydantic.ValidationError):
            Podcast.create(feed_uri="https://example.com/feed.xml", title=" ")

    def test_blank_feed_uri_rejected(self):
        """Podcasts need a feed URI."""
        with pytest.raises(ValidationError):
            Podcast.create(feed_uri="", title="Show")

    def test_last_updated_is_utc(self):
        """last_updated is normalized to UTC."""
        podcast = Podcast.create(
            feed_uri="https://example.com/feed.xml",
            title="Show",
            last_updated=datetime(2024, 1, 1, 12, tzinfo=timezone(timedelta(hours=2))),
        )
        assert podcast.last_updated == datetime(2024, 1, 1, 10, tzinfo=timezone.utc)

    def test_episodes_sorted_newest_first(self, podcast):
        """Episodes are ordered by publish date, descending."""
        assert [e.episode_number for e in podcast.episodes] == [3, 2, 1]

    def test_episodes_is_snapshot(self, podcast):
        """The episodes property cannot be used to mutate the list."""
        episodes = podcast.episodes
        assert isinstance(episodes, tuple)
        assert len(podcast.episodes) == 3

    def test_merge_adds_new_and_updates_existing(self, podcast, episode_factory):
        """New ids are added; known ids take fresh metadata."""
        stored = podcast.get_episode(episode_factory(1).id)
        stored.mark_in_progress()
        stored.mark_completed("/media/ep1.mp3")

        podcast.merge_episodes([episode_factory(1, title="Retitled"), episode_factory(4)])

        assert len(podcast.episodes) == 4
        assert podcast.episodes[0].episode_number == 4
        merged = podcast.get_episode(episode_factory(1).id)
        assert merged.title == "Retitled"
        assert merged.is_downloaded

    def test_merge_is_idempotent(self, podcast, episode_factory):
        """Merging the same batch twice changes nothing further."""
        batch = [episode_factory(4), episode_factory(2, title="Two")]

        podcast.merge_episodes(batch)
        first = [(e.id, e.title) for e in podcast.episodes]
        podcast.merge_episodes(batch)

        assert [(e.id, e.title) for e in podcast.episodes] == first

    def test_merge_stores_copies(self, podcast, episode_factory):
        """Merged episodes are not shared with the caller."""
        incoming = episode_factory(4)
        podcast.merge_episodes([incoming])

        incoming.mark_in_progress()

        assert podcast.get_episode(incoming.id).download_status == DownloadStatus.NOT_STARTED

    def test_unset_publish_date_sorts_last(self, podcast):
        """Episodes without a publish date go to the end."""
        undated = Episode(id="undated", media_uri="https://a.com/x.mp3")
        podcast.merge_episodes([undated])

        assert podcast.episodes[-1].id == "undated"

    def test_replace_episodes_last_duplicate_wins(self, podcast, episode_factory):
        """Duplicate ids collapse to the last occurrence."""
        podcast.replace_episodes(
            [episode_factory(1, title="first"), episode_factory(1, title="second")]
        )

        assert len(podcast.episodes) == 1
        assert podcast.episodes[0].title == "second"

    def test_update_metadata_blank_title_kept(self, podcast):
        """A blank incoming title keeps the current one."""
        when = datetime(2025, 1, 1, tzinfo=timezone.utc)
        podcast.update_metadata("", "new description", None, when)

        assert podcast.title == "Test Podcast"
        assert podcast.description == "new description"
        assert podcast.artwork_uri is None
        assert podcast.last_updated == when

    def test_get_episode_unknown(self, podcast):
        """Unknown episode ids give None."""
        assert podcast.get_episode("missing") is None

    def test_clone_is_deep(self, podcast):
        """Cloned podcasts own their episodes."""
        copy = podcast.clone()
        copy.episodes[0].mark_in_progress()
        copy.title = "Other"

        assert podcast.episodes[0].download_status == DownloadStatus.NOT_STARTED
        assert podcast.title == "Test Podcast"
