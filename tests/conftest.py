"""Pytest configuration and fixtures."""

import pytest

from nugetbot.classifier import build_candidate
from nugetbot.models import ManifestLocation, PackageReference, UpdateCandidate
from nugetbot.versioning import PackageVersion

SAMPLE_PROJECT = """<Project Sdk="Microsoft.NET.Sdk">
  <PropertyGroup>
    <TargetFramework>net8.0</TargetFramework>
  </PropertyGroup>
  <ItemGroup>
    <PackageReference Include="Newtonsoft.Json" Version="12.0.3" />
    <PackageReference Include="Serilog" Version="3.0.1" />
    <PackageReference Include="xunit" Version="2.5.0" />
  </ItemGroup>
</Project>
"""

CPM_PROJECT = """<Project Sdk="Microsoft.NET.Sdk">
  <PropertyGroup>
    <TargetFramework>net8.0</TargetFramework>
  </PropertyGroup>
  <ItemGroup>
    <PackageReference Include="Newtonsoft.Json" />
    <PackageReference Include="xunit" />
  </ItemGroup>
</Project>
"""

CPM_PACKAGES_PROPS = """<Project>
  <PropertyGroup>
    <ManagePackageVersionsCentrally>true</ManagePackageVersionsCentrally>
  </PropertyGroup>
  <ItemGroup>
    <PackageVersion Include="Newtonsoft.Json" Version="13.0.1" />
    <PackageVersion Include="xunit" Version="2.5.0" />
  </ItemGroup>
</Project>
"""


def _v(text: str) -> PackageVersion:
    return PackageVersion.parse(text)


def _make_candidate(package_id: str, current: str, *versions: str, include_prerelease: bool = False) -> UpdateCandidate:
    """Build a classified candidate from a current version and index versions."""
    reference = PackageReference(package_id, _v(current))
    return build_candidate(reference, [_v(x) for x in versions], include_prerelease)


@pytest.fixture
def sample_project(tmp_path):
    """A project file with inline versions."""
    project = tmp_path / "TestProject.csproj"
    project.write_text(SAMPLE_PROJECT)
    return project


@pytest.fixture
def cpm_project(tmp_path):
    """A centrally managed project with Directory.Packages.props beside it."""
    project = tmp_path / "TestProject.csproj"
    project.write_text(CPM_PROJECT)
    (tmp_path / "Directory.Packages.props").write_text(CPM_PACKAGES_PROPS)
    return project


@pytest.fixture
def sample_location(sample_project):
    path = sample_project.resolve()
    return ManifestLocation(path, path, centrally_managed=False)


@pytest.fixture
def cpm_location(cpm_project):
    path = cpm_project.resolve()
    return ManifestLocation(path, path.parent / "Directory.Packages.props", centrally_managed=True)


@pytest.fixture
def make_candidate():
    """Factory for classified update candidates."""
    return _make_candidate
