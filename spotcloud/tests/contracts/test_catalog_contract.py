from typing import List

from spotcloud.application.pipeline import PlaylistConverter
from spotcloud.domain.entities import CandidateTrack, CreatedPlaylist, SourcePlaylist, SourceTrack
from spotcloud.domain.ports import SourceCatalog, TargetCatalog


class FakeSourceCatalog(SourceCatalog):
    def __init__(self) -> None:
        self._playlists = [
            SourcePlaylist(id="p1", name="My Fav", owner="u1", track_count=2, is_public=True),
            SourcePlaylist(id="p2", name="Empty", owner="u1", track_count=0),
        ]
        self._tracks = {
            "p1": [
                SourceTrack(id="t1", title="Song A", artists=["Band A"], duration_ms=200000),
                SourceTrack(id="t2", title="Song B", artists=["Band B"], duration_ms=220000),
            ]
        }

    def get_playlist_tracks(self, playlist_id: str) -> List[SourceTrack]:
        return list(self._tracks.get(playlist_id, []))

    def get_playlist(self, playlist_id: str) -> SourcePlaylist:
        return next(p for p in self._playlists if p.id == playlist_id)

    def list_playlists(self) -> List[SourcePlaylist]:
        return list(self._playlists)


class FakeTargetCatalog(TargetCatalog):
    def __init__(self) -> None:
        self._tracks = [
            CandidateTrack(id="100", title="Song A", username="Band A", duration_ms=200500),
            CandidateTrack(id="200", title="Song B", username="Band B", duration_ms=219000),
        ]
        self.created = []  # type: List[CreatedPlaylist]

    def search_tracks(self, query: str) -> List[CandidateTrack]:
        words = set(query.lower().split())
        return [t for t in self._tracks
                if words <= set(f"{t.username} {t.title}".lower().split())]

    def create_playlist(self, title: str, description: str,
                        tracks: List[CandidateTrack]) -> CreatedPlaylist:
        created = CreatedPlaylist(id=str(len(self.created) + 1),
                                  url=f"https://soundcloud.com/me/sets/{len(self.created) + 1}",
                                  title=title)
        self.created.append(created)
        return created


def test_source_contract_semantics():
    catalog = FakeSourceCatalog()

    playlists = catalog.list_playlists()
    assert playlists and all(isinstance(p, SourcePlaylist) for p in playlists)

    tracks = catalog.get_playlist_tracks(playlists[0].id)
    assert isinstance(tracks, list)
    assert all(isinstance(t, SourceTrack) for t in tracks)
    assert catalog.get_playlist_tracks("p2") == []


def test_target_contract_semantics():
    catalog = FakeTargetCatalog()

    found = catalog.search_tracks("Band A Song A")
    assert [t.id for t in found] == ["100"]
    assert catalog.search_tracks("nothing like this") == []

    created = catalog.create_playlist("Title", "Desc", found)
    assert isinstance(created, CreatedPlaylist)
    assert created.title == "Title"


def test_converter_runs_against_any_catalog_pair():
    source = FakeSourceCatalog()
    target = FakeTargetCatalog()

    result = PlaylistConverter(source, target).convert_playlist("p1")

    assert result.success_count == 2
    assert result.original_playlist.name == "My Fav"
    assert [c.id for c in result.matched_candidates()] == ["100", "200"]
    assert target.created[0].title == "My Fav (Converted from Spotify)"
