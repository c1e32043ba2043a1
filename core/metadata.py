import re
from importlib import metadata
from pathlib import Path

SERVICE_NAME = "meta-campaign-service"
APP_TITLE = "Meta Campaign Builder"
APP_DESCRIPTION = "Audits a Meta ad account and assembles launch-ready campaign payloads from a product URL."

CHANGELOG = Path(__file__).resolve().parent.parent / "CHANGELOG.md"
RELEASE_HEADING = re.compile(r"^##\s*\[(?P<version>[^\]]+)\]", re.MULTILINE)


def _read_version() -> str:
    try:
        return metadata.version(SERVICE_NAME)
    except metadata.PackageNotFoundError:
        pass
    # Running from a plain checkout: newest release heading wins
    if CHANGELOG.exists():
        match = RELEASE_HEADING.search(CHANGELOG.read_text(encoding="utf-8"))
        if match:
            return match.group("version")
    return "unknown"


VERSION = _read_version()
