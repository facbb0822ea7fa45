"""Unit tests for build step types and the step registry."""

from typing import ClassVar

import pytest

from freestyle_multibranch.errors import ConfigurationError
from freestyle_multibranch.job import BranchJob
from freestyle_multibranch.steps import (
    BUILDER,
    PUBLISHER,
    WRAPPER,
    ArtifactArchiver,
    Builder,
    BuildTimeoutWrapper,
    ShellBuilder,
    StepRegistry,
    step_registry,
)


class TestStepRegistry:
    """Tests for listing and instantiating registered step types."""

    def test_lists_by_capability(self):
        assert [d.id for d in step_registry.for_capability(WRAPPER)] == ["build-timeout"]
        assert [d.id for d in step_registry.for_capability(BUILDER)] == ["shell"]
        assert [d.id for d in step_registry.for_capability(PUBLISHER)] == ["archive-artifacts"]

    def test_descriptor_of_step(self):
        descriptor = ShellBuilder(command="make").descriptor
        assert descriptor.id == "shell"
        assert descriptor.capability == BUILDER
        assert descriptor.display_name == "Execute shell"

    def test_instantiates_from_record(self):
        step = step_registry.instantiate({"id": "shell", "command": "make"})
        assert step == ShellBuilder(command="make")

    def test_record_of_step_instantiates_back(self):
        step = ArtifactArchiver(artifacts="dist/*", allow_empty=True)
        assert step.to_record() == {
            "id": "archive-artifacts",
            "artifacts": "dist/*",
            "allow_empty": True,
        }
        assert step_registry.instantiate(step.to_record()) == step

    def test_unknown_step_raises(self):
        with pytest.raises(ConfigurationError):
            step_registry.instantiate({"id": "gradle"})

    def test_missing_id_raises(self):
        with pytest.raises(ConfigurationError):
            step_registry.instantiate({"command": "make"})

    def test_capability_mismatch_raises(self):
        with pytest.raises(ConfigurationError):
            step_registry.instantiate({"id": "shell", "command": "make"}, PUBLISHER)

    def test_invalid_fields_raise(self):
        with pytest.raises(ConfigurationError):
            step_registry.instantiate({"id": "build-timeout", "timeout_minutes": 0})

    def test_defaults_apply(self):
        assert BuildTimeoutWrapper().timeout_minutes == 60


class TestRegistration:
    """Tests for registering step types on a private registry."""

    def test_register_rejects_duplicate_id(self):
        registry = StepRegistry()
        registry.register(ShellBuilder)

        class OtherShell(Builder):
            step_id: ClassVar[str] = "shell"

        with pytest.raises(ValueError):
            registry.register(OtherShell)

    def test_register_requires_id(self):
        class Anonymous(Builder):
            pass

        with pytest.raises(ValueError):
            StepRegistry().register(Anonymous)

    def test_applicability_filters_listing(self):
        registry = StepRegistry()

        class MatrixOnly(Builder):
            step_id: ClassVar[str] = "matrix-only"

            @classmethod
            def is_applicable(cls, job_type):
                return job_type is not BranchJob

        registry.register(ShellBuilder)
        registry.register(MatrixOnly)

        assert [d.id for d in registry.for_capability(BUILDER)] == ["shell", "matrix-only"]
        assert [d.id for d in registry.for_capability(BUILDER, BranchJob)] == ["shell"]
