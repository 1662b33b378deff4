"""
Tests for the exception hierarchy's group context.
"""
from proposalpilot.exceptions import (
    ConfigurationError,
    GroupProcessingFailure,
    HashCollisionError,
    ValidationFailure,
)


class TestGroupContext:
    """Errors name the employer groups they concern."""

    def test_no_group(self):
        error = ConfigurationError(message="pha_cluster_size_threshold missing")
        assert error.groups == []
        assert str(error) == "[PP_CONFIGURATION_ERROR] pha_cluster_size_threshold missing"
        assert error.to_dict() == {
            "code": "PP_CONFIGURATION_ERROR",
            "message": "pha_cluster_size_threshold missing",
        }

    def test_single_group(self):
        error = HashCollisionError(message="digest reused", group_id="G100", details={"digest": "ab12"})
        assert str(error) == "[PP_HASH_COLLISION] digest reused (group G100)"
        assert error.to_dict()["groups"] == ["G100"]
        assert error.to_dict()["details"] == {"digest": "ab12"}

    def test_batch_of_groups(self):
        error = GroupProcessingFailure(message="batch 3 failed", group_ids=["G100", "G200"])
        assert str(error).endswith("(groups G100, G200)")
        assert error.to_dict()["groups"] == ["G100", "G200"]

    def test_failed_validation_groups(self):
        error = ValidationFailure(message="2 groups failed", failed_groups=["G300", "G400"])
        assert error.groups == ["G300", "G400"]
        assert "group_id" not in error.to_dict()
