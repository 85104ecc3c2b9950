from db.song_metadata import SongMetadataStore

__all__ = ["SongMetadataStore"]
