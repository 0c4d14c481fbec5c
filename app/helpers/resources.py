from pathlib import Path

from app.helpers.cache import lru_cache


@lru_cache()  # Cache results in memory as resources are not expected to change
def resources_dir(folder: str) -> str:
    """
    Get the absolute path to a folder shipped in the resources of the application.

    Resolved from the package location, not the working directory, so it works from an installed package as well.
    """
    return str((Path(__file__).parent.parent / "resources" / folder).resolve())
