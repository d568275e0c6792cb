"""
LocalSpots Backend - Request Schema Tests
===========================================

What:  Partial updates: an omitted field is left alone, an explicit null on
       a NOT NULL column is a validation error instead of a failed UPDATE.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from app.schemas.category import CategoryUpdate
from app.schemas.review import ReviewCreate, ReviewUpdate
from app.schemas.spot import SpotUpdate


class TestSpotUpdate:

    def test_omitted_fields_are_not_set(self):
        update = SpotUpdate(name="Louvre Museum")
        assert update.model_dump(exclude_unset=True) == {"name": "Louvre Museum"}

    @pytest.mark.parametrize("field", [
        "name", "address", "latitude", "longitude", "category_id", "is_active",
    ])
    def test_null_for_required_column_is_rejected(self, field):
        with pytest.raises(PydanticValidationError) as exc_info:
            SpotUpdate(**{field: None})
        assert f"{field} cannot be null" in str(exc_info.value)

    @pytest.mark.parametrize("field", ["description", "tags"])
    def test_null_clears_optional_column(self, field):
        update = SpotUpdate(**{field: None})
        assert update.model_dump(exclude_unset=True) == {field: None}


class TestCategoryUpdate:

    @pytest.mark.parametrize("field", ["name", "is_active"])
    def test_null_for_required_column_is_rejected(self, field):
        with pytest.raises(PydanticValidationError):
            CategoryUpdate(**{field: None})

    def test_null_description_is_allowed(self):
        assert CategoryUpdate(description=None).model_dump(exclude_unset=True) == {
            "description": None
        }


class TestReviewSchemas:

    @pytest.mark.parametrize("rating", [0, 6])
    def test_rating_out_of_range(self, rating):
        with pytest.raises(PydanticValidationError):
            ReviewCreate(user_id=1, rating=rating)

    def test_short_comment_is_rejected(self):
        with pytest.raises(PydanticValidationError):
            ReviewCreate(user_id=1, rating=4, comment="  ok  ")

    def test_null_rating_on_update_is_rejected(self):
        with pytest.raises(PydanticValidationError):
            ReviewUpdate(user_id=1, rating=None)

    def test_update_can_clear_comment(self):
        update = ReviewUpdate(user_id=1, comment=None)
        assert update.model_dump(exclude_unset=True, exclude={"user_id"}) == {"comment": None}
