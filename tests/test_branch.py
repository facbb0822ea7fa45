"""Unit tests for branch values and name encoding."""

import pytest

from freestyle_multibranch.scm.branch import Branch, NullSCM, SCMHead, encode_name


class TestEncodeName:
    """Tests for deriving job names from branch names."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("master", "master"),
            ("feature/x", "feature-x"),
            ("release/1.2/hotfix", "release-1.2-hotfix"),
            ("fix #12", "fix%20%2312"),
            ("50%", "50%25"),
            ("café", "caf%C3%A9"),
            ("a~b_c.d", "a~b_c.d"),
            ("my-branch", "my%2Dbranch"),
            ("a-b/c", "a%2Db-c"),
        ],
    )
    def test_encodes(self, name, expected):
        assert encode_name(name) == expected

    def test_reserved_names_are_percent_encoded(self):
        assert encode_name(".") == "%2E"
        assert encode_name("..") == "%2E%2E"

    def test_empty_name_raises(self):
        with pytest.raises(ValueError):
            encode_name("")

    def test_is_deterministic(self):
        assert encode_name("feature/x") == encode_name("feature/x")

    def test_slash_and_dash_get_distinct_names(self):
        assert encode_name("feature/x") == "feature-x"
        assert encode_name("feature-x") == "feature%2Dx"


class TestBranch:
    """Tests for the Branch value type."""

    def test_structural_equality(self):
        assert Branch.of("master") == Branch.of("master")
        assert Branch.of("master") != Branch.of("main")

    def test_scm_participates_in_equality(self):
        assert Branch.of("master", "git@a") != Branch.of("master", "git@b")

    def test_default_scm_is_null(self):
        assert Branch.of("master").scm == NullSCM()

    def test_encoded_name(self):
        assert Branch.of("feature/x").encoded_name == "feature-x"

    def test_head_is_a_branch(self):
        assert Branch.of("master").head == SCMHead(name="master", kind="branch")

    def test_branches_are_buildable(self):
        assert Branch.of("master").is_buildable() is True

    def test_dead_branch_is_not_buildable(self):
        branch = Branch.of("master")
        dead = branch.dead()

        assert dead.is_buildable() is False
        assert dead.name == "master"
        assert branch.is_buildable() is True

    def test_dummy_branch(self):
        dummy = Branch.dummy()
        assert dummy.name == "DUMMY"
        assert dummy.scm == NullSCM()

    def test_empty_name_is_rejected(self):
        with pytest.raises(ValueError):
            Branch.of("")
