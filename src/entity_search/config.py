"""Search service configuration loaded from environment variables."""
from pathlib import Path

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Search service configuration loaded from environment variables.

    Attributes:
        data_dir: Root data directory; indexes live under ``<data_dir>/search``.
        index_suffix: Suffix appended to entity names for index directories.
        reindex_workers: Concurrent background reindex tasks.
        default_limit: Results per page when the caller gives no limit.
        max_limit: Upper bound on results per page.
        debug: Enable debug logging and API documentation.
        json_logs: Render logs as JSON instead of console output.
    """

    model_config = SettingsConfigDict(
        env_prefix="SEARCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    data_dir: Path = Path("./data")
    index_suffix: str = ".index"
    reindex_workers: int = 2
    default_limit: int = 20
    max_limit: int = 100
    debug: bool = False
    json_logs: bool = True

    @computed_field
    @property
    def search_path(self) -> Path:
        """Directory holding one subdirectory per entity index.

        Returns:
            Path of the search index root.
        """
        return self.data_dir / "search"
