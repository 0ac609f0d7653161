"""
Unit tests for the file-tree builder and the ignore rules it shares with the
listing tools.
"""

import os

import pytest

from coding_agent.context import TRUNCATION_MARKER, IgnoreRules, build_tree

from conftest import write_files

FULL_TREE = [
    "docs",
    "docs/guide.md",
    "src",
    "src/utils",
    "src/utils/helpers.py",
    "src/app.py",
    ".gitignore",
    "README.md",
]


class TestBuildTree:
    """Ordering, bounds and edge cases of build_tree."""

    def test_full_tree_dirs_first_and_ignores_applied(self, project_tree):
        assert build_tree(str(project_tree)).splitlines() == FULL_TREE

    def test_missing_root_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="Path does not exist"):
            build_tree(str(tmp_path / "missing"))

    def test_file_root_returns_basename(self, project_tree):
        assert build_tree(str(project_tree / "README.md")) == "README.md"

    def test_empty_directory(self, tmp_path):
        (tmp_path / "empty").mkdir()
        assert build_tree(str(tmp_path / "empty")) == ""

    def test_max_depth_limits_entries(self, project_tree):
        assert build_tree(str(project_tree), max_depth=1).splitlines() == [
            "docs",
            "src",
            ".gitignore",
            "README.md",
        ]

    def test_truncation_marker_when_more_entries_exist(self, project_tree):
        lines = build_tree(str(project_tree), max_lines=3).splitlines()
        assert lines == ["docs", "docs/guide.md", "src", TRUNCATION_MARKER]

    def test_no_marker_when_limit_exactly_reached(self, project_tree):
        lines = build_tree(str(project_tree), max_lines=len(FULL_TREE)).splitlines()
        assert lines == FULL_TREE

    def test_case_insensitive_ordering(self, tmp_path):
        write_files(tmp_path, {"b.txt": "", "A.txt": "", "a.txt": "", "C.txt": ""})
        assert build_tree(str(tmp_path)).splitlines() == ["A.txt", "a.txt", "b.txt", "C.txt"]

    def test_negation_in_gitignore_wins(self, tmp_path):
        write_files(tmp_path, {"keep.log": "", "drop.log": "", ".gitignore": "!keep.log\n"})
        assert build_tree(str(tmp_path)).splitlines() == [".gitignore", "keep.log"]

    def test_ancestor_gitignore_applies_to_subproject(self, tmp_path):
        write_files(
            tmp_path,
            {
                ".gitignore": "*.secret\ngenerated/\n",
                "project/app.py": "",
                "project/keys.secret": "",
                "project/generated/out.py": "",
                "project/lib/token.secret": "",
                "project/lib/util.py": "",
            },
        )
        assert build_tree(str(tmp_path / "project")).splitlines() == ["lib", "lib/util.py", "app.py"]

    def test_ancestor_gitignore_negated_by_project_gitignore(self, tmp_path):
        write_files(
            tmp_path,
            {
                ".gitignore": "*.secret\n",
                "project/.gitignore": "!public.secret\n",
                "project/public.secret": "",
                "project/private.secret": "",
            },
        )
        assert build_tree(str(tmp_path / "project")).splitlines() == [".gitignore", "public.secret"]

    def test_symlinked_directory_listed_not_descended(self, project_tree):
        os.symlink(project_tree / "src", project_tree / "linked")
        lines = build_tree(str(project_tree)).splitlines()
        assert "linked" in lines
        assert not any(line.startswith("linked/") for line in lines)

    def test_same_snapshot_same_output(self, project_tree):
        assert build_tree(str(project_tree), 2, 50) == build_tree(str(project_tree), 2, 50)


class TestIgnoreRules:
    """Default exclusions and .gitignore layering."""

    def test_defaults(self):
        rules = IgnoreRules.for_directory("/", include_defaults=True)
        assert rules.ignores("node_modules", is_dir=True)
        assert rules.ignores("pkg/.git", is_dir=True)
        assert rules.ignores("trace.log")
        assert not rules.ignores("src/app.py")

    def test_directory_pattern_only_matches_directories(self):
        rules = IgnoreRules(["build/"])
        assert rules.ignores("build", is_dir=True)
        assert not rules.ignores("build", is_dir=False)

    def test_child_gitignore_overrides_parent(self, tmp_path):
        write_files(tmp_path, {".gitignore": "*.txt\n", "sub/.gitignore": "!notes.txt\n"})
        rules = IgnoreRules.for_directory(str(tmp_path / "sub"), include_defaults=False)
        assert rules.ignores("other.txt")
        assert not rules.ignores("notes.txt")

    def test_empty_rules_ignore_nothing(self):
        assert not IgnoreRules.empty().ignores("node_modules", is_dir=True)
