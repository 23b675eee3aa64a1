"""MSBuild project file and Directory.Packages.props parsing."""

import xml.etree.ElementTree as ET
from pathlib import Path

from .errors import InputError, ParseError
from .logging import get_logger
from .models import ManifestLocation, PackageReference
from .versioning import PackageVersion

log = get_logger("manifest")

CENTRAL_VERSION_FILE_NAME = "Directory.Packages.props"
CENTRAL_MANAGEMENT_PROPERTY = "ManagePackageVersionsCentrally"

# Share of versionless references above which central management is assumed.
CENTRAL_MANAGEMENT_THRESHOLD = 0.8

# Directories searched for the central file, starting directory included.
CENTRAL_SEARCH_DEPTH = 5

REFERENCE_ELEMENT = "PackageReference"
CENTRAL_VERSION_ELEMENT = "PackageVersion"

PROJECT_EXTENSIONS = (".csproj", ".fsproj", ".vbproj")


def _local_name(tag: str) -> str:
    """Strip an XML namespace, e.g. the legacy MSBuild 2003 namespace."""
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag


def _iter_elements(root: ET.Element, name: str):
    for element in root.iter():
        if isinstance(element.tag, str) and _local_name(element.tag) == name:
            yield element


def load_document(path: Path | str) -> ET.Element:
    """Read and parse an XML document.

    Raises:
        ParseError: If the file cannot be read or is not well-formed.
    """
    path = Path(path)
    try:
        return ET.parse(path).getroot()
    except (OSError, ET.ParseError) as e:
        raise ParseError(path, e) from e


class ProjectFileParser:
    """Parser for package references in MSBuild XML documents."""

    def __init__(self, threshold: float = CENTRAL_MANAGEMENT_THRESHOLD):
        self.threshold = threshold

    def _read_entries(self, root: ET.Element, element_name: str) -> list[PackageReference]:
        references: list[PackageReference] = []
        for element in _iter_elements(root, element_name):
            package_id = (element.get("Include") or "").strip()
            version = PackageVersion.try_parse(element.get("Version"))
            # Entries without an id or a usable version are skipped.
            if package_id and version is not None:
                references.append(PackageReference(package_id, version))
        return references

    def parse(self, path: Path | str) -> list[PackageReference]:
        """Extract package references with inline versions, in document order."""
        return self._read_entries(load_document(path), REFERENCE_ELEMENT)

    def parse_central_versions(self, path: Path | str) -> list[PackageReference]:
        """Extract the versions pinned by a central version file."""
        return self._read_entries(load_document(path), CENTRAL_VERSION_ELEMENT)

    def referenced_ids(self, path: Path | str) -> list[str]:
        """All package ids referenced by a manifest, with or without a version."""
        root = load_document(path)
        ids = []
        for element in _iter_elements(root, REFERENCE_ELEMENT):
            package_id = (element.get("Include") or "").strip()
            if package_id:
                ids.append(package_id)
        return ids

    def detect_centralized_management(self, path: Path | str) -> bool:
        """Decide whether a manifest relies on central version management.

        The explicit property wins. Otherwise central management is assumed
        when strictly more than ``threshold`` of the references omit a
        ``Version`` attribute.
        """
        root = load_document(path)

        for element in _iter_elements(root, CENTRAL_MANAGEMENT_PROPERTY):
            if (element.text or "").strip().lower() == "true":
                return True

        entries = [
            element
            for element in _iter_elements(root, REFERENCE_ELEMENT)
            if (element.get("Include") or "").strip()
        ]
        if not entries:
            return False

        without_version = sum(1 for element in entries if element.get("Version") is None)
        return without_version / len(entries) > self.threshold


def locate_central_version_file(
    manifest_path: Path | str, max_depth: int = CENTRAL_SEARCH_DEPTH
) -> Path | None:
    """Find the nearest central version file above a manifest.

    Searches the manifest's directory and its ancestors, at most
    ``max_depth`` directories in total, nearest first.
    """
    directory = Path(manifest_path).resolve().parent
    for _ in range(max_depth):
        candidate = directory / CENTRAL_VERSION_FILE_NAME
        if candidate.is_file():
            return candidate
        if directory.parent == directory:
            break
        directory = directory.parent
    return None


def resolve_location(
    manifest_path: Path | str, parser: ProjectFileParser | None = None
) -> ManifestLocation:
    """Resolve which file a run reads versions from and mutates."""
    parser = parser or ProjectFileParser()
    manifest_path = Path(manifest_path).resolve()

    if parser.detect_centralized_management(manifest_path):
        central = locate_central_version_file(manifest_path)
        if central is not None:
            log.debug("central_version_file_found", manifest=str(manifest_path), path=str(central))
            return ManifestLocation(manifest_path, central, centrally_managed=True)
        log.warning(
            "central_version_file_missing",
            manifest=str(manifest_path),
            file_name=CENTRAL_VERSION_FILE_NAME,
        )

    return ManifestLocation(manifest_path, manifest_path, centrally_managed=False)


def load_references(
    location: ManifestLocation, parser: ProjectFileParser | None = None
) -> list[PackageReference]:
    """References to scan for a resolved location.

    With central management each manifest entry uses the version pinned in
    the central file, falling back to an inline version.
    """
    parser = parser or ProjectFileParser()
    if not location.centrally_managed:
        return parser.parse(location.manifest_path)

    inline = {ref.package_id.lower(): ref for ref in parser.parse(location.manifest_path)}
    pinned = {
        ref.package_id.lower(): ref
        for ref in parser.parse_central_versions(location.target_path)
    }

    references = []
    seen = set()
    for package_id in parser.referenced_ids(location.manifest_path):
        key = package_id.lower()
        if key in seen:
            continue
        seen.add(key)
        ref = pinned.get(key) or inline.get(key)
        if ref is not None:
            references.append(PackageReference(package_id, ref.version))
    return references


def parse(path: Path | str) -> list[PackageReference]:
    """Parse a manifest into package references.

    Args:
        path: Path to the project file

    Returns:
        References with a valid inline version, in document order
    """
    return ProjectFileParser().parse(path)


def detect_centralized_management(
    path: Path | str, threshold: float = CENTRAL_MANAGEMENT_THRESHOLD
) -> bool:
    """Check whether a manifest uses central package version management."""
    return ProjectFileParser(threshold=threshold).detect_centralized_management(path)


def resolve_project_path(path: Path | str | None = None) -> Path:
    """Resolve a project file from a file or directory path.

    Raises:
        FileNotFoundError: If the path does not exist.
        InputError: If the file is not a project file, or a directory holds
            zero or several project files.
    """
    path = Path(path) if path else Path.cwd()

    if path.is_file():
        if path.suffix.lower() not in PROJECT_EXTENSIONS:
            raise InputError(
                f"Invalid project file type: {path.suffix}. Expected .csproj, .fsproj, or .vbproj"
            )
        return path.resolve()

    if path.is_dir():
        projects = sorted(p for p in path.iterdir() if p.is_file() and p.suffix.lower() in PROJECT_EXTENSIONS)
        if not projects:
            raise InputError(f"No project files found in directory: {path}")
        if len(projects) > 1:
            raise InputError(
                f"Multiple project files found in directory: {path}. Please specify which one to use."
            )
        return projects[0].resolve()

    raise FileNotFoundError(f"Path not found: {path}")
