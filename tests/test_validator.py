"""Tests for expo.utils.validator.validate_requirements."""

import pytest

from expo.errors import ValidationError
from expo.utils.validator import validate_requirements


class TestValidateRequirements:
    def test_normalizes(self, requirements):
        result = validate_requirements(requirements)
        assert result["venue_space"] == {"area": 1200.0, "height": 6.0, "layout": "Single floor, open plan"}
        assert result["budget"] == {"total": 1500000.0, "currency": "CNY"}
        assert result["special_requirements"] == ["Bilingual labels"]

    def test_input_not_modified(self, requirements):
        validate_requirements(requirements)
        assert requirements["venue_space"]["area"] == 1200

    def test_bare_budget_number(self, requirements):
        requirements["budget"] = 800000
        assert validate_requirements(requirements)["budget"] == {"total": 800000.0, "currency": "CNY"}

    def test_optional_fields_default(self, requirements):
        del requirements["duration"]
        del requirements["special_requirements"]
        result = validate_requirements(requirements)
        assert result["duration"] == {"start_date": "", "end_date": ""}
        assert result["special_requirements"] == []

    @pytest.mark.parametrize("field", ["title", "theme", "target_audience"])
    def test_blank_text_field(self, requirements, field):
        requirements[field] = "   "
        with pytest.raises(ValidationError, match=field):
            validate_requirements(requirements)

    @pytest.mark.parametrize("area", [0, -5, True, "big", None])
    def test_bad_area(self, requirements, area):
        requirements["venue_space"]["area"] = area
        with pytest.raises(ValidationError, match="venue_space.area"):
            validate_requirements(requirements)

    def test_missing_venue(self, requirements):
        del requirements["venue_space"]
        with pytest.raises(ValidationError, match="venue_space"):
            validate_requirements(requirements)

    def test_bad_special_requirements(self, requirements):
        requirements["special_requirements"] = "Bilingual labels"
        with pytest.raises(ValidationError):
            validate_requirements(requirements)

    def test_empty_input(self):
        with pytest.raises(ValidationError):
            validate_requirements({})

    def test_validation_error_is_value_error(self):
        with pytest.raises(ValueError):
            validate_requirements(None)
