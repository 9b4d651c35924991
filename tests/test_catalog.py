"""
Unit tests for the product and action catalog.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from bidi_qa.wizard.catalog import (
    ACTION_INFO,
    action_menu,
    derive_form_prompts,
    expand_action,
    form_name_for_action,
    is_peoplesoft,
    product_category,
    resolve_product_slug,
)
from bidi_qa.wizard.models import Action, Product, PromptKind


class TestPeopleSoftDetection:
    """Test cases for is_peoplesoft."""

    @pytest.mark.parametrize(
        "school_id,expected",
        [
            ("state_u_peoplesoft", True),
            ("a_peoplesoft_test", True),
            ("iwu_colleague_ethos", False),
            ("peoplesoft", False),
            ("", False),
            (None, False),
        ],
    )
    def test_marker(self, school_id, expected):
        """Test the _peoplesoft marker."""
        assert is_peoplesoft(school_id) is expected


class TestActionMenu:
    """Test cases for action_menu."""

    def test_academic_scheduling_menu(self):
        """Test the seven Academic Scheduling entries."""
        menu = action_menu(Product.ACADEMIC_SCHEDULING)

        assert len(menu) == 7
        assert menu[0] is Action.UPDATE
        assert menu[-1] is Action.ALL

    def test_curriculum_management_menu(self):
        """Test the five Curriculum Management entries."""
        menu = action_menu(Product.CURRICULUM_MANAGEMENT)

        assert menu == [
            Action.UPDATE_COURSE,
            Action.INACTIVATE_COURSE,
            Action.NEW_COURSE_REVISION,
            Action.CREATE_COURSE,
            Action.COURSE_ALL,
        ]

    def test_peoplesoft_menu_adds_programs(self):
        """Test program actions sit before "All of the Above"."""
        menu = action_menu(Product.CURRICULUM_MANAGEMENT, peoplesoft=True)

        assert len(menu) == 7
        assert menu[4:] == [Action.UPDATE_PROGRAM, Action.CREATE_PROGRAM, Action.COURSE_ALL]

    def test_both_has_no_menu(self):
        """Test both-products has no action menu."""
        with pytest.raises(ValueError):
            action_menu(Product.BOTH)


class TestFormPrompts:
    """Test cases for derive_form_prompts."""

    @pytest.mark.parametrize(
        "action,peoplesoft,expected",
        [
            (Action.CREATE_COURSE, False, [PromptKind.COURSE]),
            (Action.CREATE_COURSE, True, [PromptKind.COURSE]),
            (Action.COURSE_ALL, True, [PromptKind.COURSE, PromptKind.PROGRAM]),
            (Action.COURSE_ALL, False, [PromptKind.COURSE]),
            (Action.BOTH, True, [PromptKind.COURSE, PromptKind.PROGRAM]),
            (Action.BOTH, False, [PromptKind.COURSE]),
            (Action.CREATE_PROGRAM, True, [PromptKind.PROGRAM]),
            (Action.UPDATE_COURSE, True, []),
            (Action.UPDATE, False, []),
        ],
    )
    def test_prompt_queue(self, action, peoplesoft, expected):
        """Test the queued prompt kinds per action."""
        assert list(derive_form_prompts(action, peoplesoft)) == expected


class TestExpandAction:
    """Test cases for expand_action."""

    def test_all_expands_to_academic_scheduling(self):
        """Test "all" covers the six scheduling actions in order."""
        assert expand_action(Action.ALL) == [
            Action.UPDATE,
            Action.CREATE,
            Action.CREATE_NO_MEET_NO_PROF,
            Action.EDIT_RELATIONSHIPS,
            Action.CREATE_RELATIONSHIPS,
            Action.INACTIVATE_SECTION,
        ]

    def test_course_all_excludes_programs(self):
        """Test "courseAll" covers the four course actions only."""
        expanded = expand_action(Action.COURSE_ALL)

        assert len(expanded) == 4
        assert Action.UPDATE_PROGRAM not in expanded
        assert Action.CREATE_PROGRAM not in expanded

    def test_both_concatenates(self):
        """Test "both" is scheduling then curriculum."""
        assert expand_action(Action.BOTH) == (
            expand_action(Action.ALL) + expand_action(Action.COURSE_ALL)
        )

    def test_concrete_action_expands_to_itself(self):
        """Test concrete actions are returned alone."""
        assert expand_action(Action.CREATE_PROGRAM) == [Action.CREATE_PROGRAM]

    def test_expansion_is_concrete(self):
        """Test no expansion contains an aggregate."""
        for action in Action:
            assert not any(a.is_aggregate for a in expand_action(action))


class TestProductSlugs:
    """Test cases for resolve_product_slug and product_category."""

    @pytest.mark.parametrize(
        "action,plan_slug,expected",
        [
            (Action.UPDATE, "cm/courses", "sm/section-dashboard"),
            (Action.INACTIVATE_SECTION, "cm/courses", "sm/section-dashboard"),
            (Action.CREATE, "sm/section-dashboard", "sm/section-dashboard"),
            (Action.UPDATE_COURSE, "sm/section-dashboard", "cm/courses"),
            (Action.CREATE_COURSE, "sm/section-dashboard", "cm/courses"),
            (Action.UPDATE_PROGRAM, "cm/courses", "cm/programs"),
            (Action.CREATE_PROGRAM, "cm/courses", "cm/programs"),
        ],
    )
    def test_resolve_product_slug(self, action, plan_slug, expected):
        """Test the slug each action signs in to."""
        assert resolve_product_slug(action, plan_slug) == expected

    def test_product_category(self):
        """Test category folders."""
        assert product_category(Action.EDIT_RELATIONSHIPS) is Product.ACADEMIC_SCHEDULING
        assert product_category(Action.UPDATE_PROGRAM) is Product.CURRICULUM_MANAGEMENT
        assert product_category(Action.BOTH) is Product.ACADEMIC_SCHEDULING

    def test_every_concrete_action_has_failure_labels(self):
        """Test failure reasons exist for every concrete action."""
        for action in Action:
            if not action.is_aggregate:
                assert ACTION_INFO[action].save_failure_reason
                assert ACTION_INFO[action].error_label


class TestFormNameForAction:
    """Test cases for form_name_for_action."""

    def test_form_names(self):
        """Test only create actions carry a form name."""
        assert form_name_for_action(Action.CREATE_COURSE, "C", "P") == "C"
        assert form_name_for_action(Action.CREATE_PROGRAM, "C", "P") == "P"
        assert form_name_for_action(Action.UPDATE_COURSE, "C", "P") is None


class TestRunPlan:
    """Test cases for RunPlan validation."""

    def test_defaults_applied(self, make_plan):
        """Test form names default when omitted."""
        plan = make_plan()

        assert plan.course_form_name == "Propose New Course"
        assert plan.program_form_name == "Propose New Program"

    def test_blank_field_rejected(self, make_plan):
        """Test an empty required field is rejected."""
        with pytest.raises(PydanticValidationError):
            make_plan(school_id="  ")

    def test_plan_is_immutable(self, make_plan):
        """Test plans cannot be changed after creation."""
        plan = make_plan()

        with pytest.raises(PydanticValidationError):
            plan.school_id = "other"

    def test_describe_omits_password(self, make_plan):
        """Test the log summary carries no credentials."""
        described = make_plan().describe()

        assert "password" not in described
        assert "email" not in described
        assert described["action"] == "update"
