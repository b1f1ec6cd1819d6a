"""
Unit tests for release version parsing and ordering.
"""

import pytest

from azure_admission.releases import SemanticVersion


class TestParse:
    """Tests for SemanticVersion.parse."""

    def test_full_version(self):
        version = SemanticVersion.parse("13.1.2")
        assert (version.major, version.minor, version.patch) == (13, 1, 2)
        assert version.prerelease is None

    def test_release_name_prefix_is_stripped(self):
        assert SemanticVersion.parse("v13.1.2") == SemanticVersion(13, 1, 2)

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("v13", SemanticVersion(13, 0, 0)),
            ("13.1", SemanticVersion(13, 1, 0)),
            ("v20.0.0-alpha1", SemanticVersion(20, 0, 0, "alpha1")),
        ],
    )
    def test_tolerant_forms(self, text, expected):
        """Missing minor and patch components default to zero."""
        assert SemanticVersion.parse(text) == expected

    @pytest.mark.parametrize(
        "text", ["", "latest", "13.x", "1.2.3.4", "01.2.3", "v", "-1.0.0"]
    )
    def test_invalid_versions_raise(self, text):
        with pytest.raises(ValueError):
            SemanticVersion.parse(text)

    @pytest.mark.parametrize("text", ["1.0.0-alpha.01", "1.0.0-01", "1.0.0-rc.1.002"])
    def test_numeric_prerelease_with_leading_zero_raises(self, text):
        with pytest.raises(ValueError):
            SemanticVersion.parse(text)

    @pytest.mark.parametrize(
        "text,prerelease",
        [
            ("1.0.0-0", "0"),
            ("1.0.0-alpha.10", "alpha.10"),
            ("1.0.0-0alpha", "0alpha"),
            ("1.0.0-x-01", "x-01"),
            ("1.0.0+build.007", None),
        ],
    )
    def test_leading_zero_allowed_outside_numeric_identifiers(self, text, prerelease):
        assert SemanticVersion.parse(text).prerelease == prerelease

    def test_str_is_normalised(self):
        assert str(SemanticVersion.parse("v13.1")) == "13.1.0"
        assert str(SemanticVersion.parse("1.0.0-alpha.1+build5")) == "1.0.0-alpha.1+build5"


class TestAlpha:
    """A version is alpha when its prerelease tag contains "alpha"."""

    @pytest.mark.parametrize(
        "text,alpha",
        [
            ("20.0.0-alpha1", True),
            ("20.0.0-alpha.2", True),
            ("20.0.0-prealpha", True),
            ("20.0.0-beta.1", False),
            ("20.0.0", False),
        ],
    )
    def test_is_alpha(self, text, alpha):
        assert SemanticVersion.parse(text).is_alpha is alpha


class TestOrdering:
    """Versions order by SemVer precedence."""

    def test_core_ordering(self):
        versions = [SemanticVersion.parse(v) for v in ["13.0.1", "12.1.0", "13.0.0", "2.0.0"]]
        assert [str(v) for v in sorted(versions)] == [
            "2.0.0",
            "12.1.0",
            "13.0.0",
            "13.0.1",
        ]

    def test_numeric_components_compare_as_numbers(self):
        assert SemanticVersion.parse("1.10.0") > SemanticVersion.parse("1.9.0")

    def test_prerelease_precedence(self):
        ordered = [
            "1.0.0-1",
            "1.0.0-alpha",
            "1.0.0-alpha.1",
            "1.0.0-alpha.beta",
            "1.0.0-beta",
            "1.0.0-beta.2",
            "1.0.0-beta.11",
            "1.0.0",
        ]
        versions = [SemanticVersion.parse(v) for v in ordered]
        for lower, higher in zip(versions, versions[1:]):
            assert lower < higher, f"{lower} should sort before {higher}"

    def test_build_metadata_is_ignored(self):
        first = SemanticVersion.parse("1.0.0+build1")
        second = SemanticVersion.parse("1.0.0+build2")
        assert first == second
        assert hash(first) == hash(second)
        assert not first < second

    def test_comparison_with_other_types(self):
        assert SemanticVersion(1, 0, 0) != "1.0.0"
        with pytest.raises(TypeError):
            _ = SemanticVersion(1, 0, 0) < "2.0.0"
