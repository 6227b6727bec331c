"""
Publishing seam.

Picks one stored track that has not been posted yet and hands its URL to
a publishing collaborator (for example a client posting a status update to
a social network). The collaborator is any callable `publish(text) -> bool`;
only a True result marks the track as posted.
"""

import random
from typing import Callable, Sequence

from spot_curator.core.database import Database
from spot_curator.core.exceptions import PublishError
from spot_curator.core.logger import get_logger
from spot_curator.spotify.models import StoredTrack

logger = get_logger(__name__)


def publish_random_track(
    database: Database,
    publish: Callable[[str], bool],
    choose: Callable[[Sequence[StoredTrack]], StoredTrack] = random.choice
) -> StoredTrack | None:
    """
    Publish one randomly chosen unposted track.

    Args:
        database: Local storage.
        publish: Collaborator receiving the track URL.
        choose: Selection strategy over the eligible tracks.

    Returns:
        The published track, or None when no track is eligible.

    Raises:
        PublishError: The collaborator returned False; the track stays
                      eligible for a later attempt.
    """
    eligible = database.get_tracks_eligible_for_publishing()
    if not eligible:
        logger.info("No unposted tracks available")
        return None

    track = choose(eligible)
    if not publish(track.url):
        raise PublishError(
            f"Failed to publish track: {track.name}",
            details={"spotify_id": track.spotify_id, "url": track.url}
        )

    database.mark_posted(track)
    logger.info(f"Published track: {track.name}")
    return track
