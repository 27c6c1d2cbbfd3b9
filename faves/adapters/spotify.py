"""
Spotify saved-tracks adapter.

Converts the body of ``GET /v1/me/tracks`` into picker items. Fetching the
payload (and the OAuth flow behind it) is the caller's job.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional


def items_from_saved_tracks(payload: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """
    Build one picker item per saved track.

    Entries without a track id (local files, removed tracks) are skipped,
    as are repeats of an id already seen.
    """
    items: List[Dict[str, Any]] = []
    seen = set()
    for entry in payload.get("items") or []:
        track = entry.get("track") or {}
        track_id = track.get("id")
        if not track_id or track_id in seen:
            continue
        seen.add(track_id)
        album = track.get("album") or {}
        images = album.get("images") or []
        items.append(
            {
                "id": track_id,
                "name": track.get("name", ""),
                "artists": [artist.get("name", "") for artist in track.get("artists") or []],
                "album": album.get("name", ""),
                "image_url": images[0].get("url") if images else None,
                "added_at": entry.get("added_at"),
            }
        )
    return items


class SavedTracksProvider:
    """CatalogProvider over one or more already-fetched saved-tracks pages."""

    def __init__(self, pages: Iterable[Mapping[str, Any]], user_id: Optional[str] = None) -> None:
        self._pages = list(pages)
        self._user_id = user_id

    def id(self) -> str:
        return f"spotify://{self._user_id or 'me'}/tracks"

    def items(self) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        seen = set()
        for page in self._pages:
            for item in items_from_saved_tracks(page):
                if item["id"] in seen:
                    continue
                seen.add(item["id"])
                items.append(item)
        return items
