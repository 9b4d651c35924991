"""
Merge settings checks run before any browser work.

A run only makes sense when the school syncs in real time and its merge
settings send updates back to the SIS for every entity type the run touches.
"""

from typing import Any, List, Tuple

from ..core.exceptions import ApiRequestError, PreflightError
from ..core.logging_config import get_logger
from ..wizard.catalog import PROGRAM_ACTIONS, is_peoplesoft
from ..wizard.models import Action, COURSES_SLUG, PROGRAMS_SLUG, SECTION_DASHBOARD_SLUG
from .client import CoursedogApiClient, base_url_for


# entity type -> display name
COURSES = ("coursesCm", "Courses")
PROGRAMS = ("programs", "Programs")
SECTIONS = ("sections", "Sections")
RELATIONSHIPS = ("relationships", "Relationships")

RELATIONSHIP_ACTIONS = (
    Action.EDIT_RELATIONSHIPS,
    Action.CREATE_RELATIONSHIPS,
    Action.ALL,
)


def entity_types_for(product_slug: str, action: Action) -> List[Tuple[str, str]]:
    """Entity types whose merge settings a run must validate."""
    if action is Action.BOTH:
        return [COURSES, SECTIONS, RELATIONSHIPS]
    if product_slug == PROGRAMS_SLUG or action in PROGRAM_ACTIONS:
        return [PROGRAMS]
    if product_slug == COURSES_SLUG:
        return [COURSES]
    if product_slug == SECTION_DASHBOARD_SLUG:
        if action in RELATIONSHIP_ACTIONS:
            return [SECTIONS, RELATIONSHIPS]
        return [SECTIONS]
    return []


def _dig(data: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


class PreflightValidator:
    """Validates a school's integration and merge settings through the API."""

    def __init__(self, client: CoursedogApiClient):
        self.client = client
        self.logger = get_logger(__name__)

    async def validate(
        self,
        environment: str,
        school_id: str,
        token: str,
        product_slug: str,
        action: Action,
    ) -> None:
        """
        Run every check for the plan.

        Raises:
            PreflightError: On the first failing check
        """
        self.logger.info("🔍 Running merge settings checks")
        if action in PROGRAM_ACTIONS and not is_peoplesoft(school_id):
            raise PreflightError(
                'Program actions are only supported for PeopleSoft schools '
                '(school id must include "_peoplesoft").',
                school_id=school_id,
                check="peoplesoft",
            )

        base = base_url_for(environment)
        save_state_id = await self._integration_save_state_id(base, school_id, token)
        await self._check_schedule(base, school_id, token)
        for entity_type, display_name in entity_types_for(product_slug, action):
            await self._check_merge_settings(
                base, school_id, token, save_state_id, entity_type, display_name
            )

        self.logger.info("✅ All merge settings checks passed")

    async def _integration_save_state_id(self, base: str, school_id: str, token: str) -> str:
        url = f"{base}/api/v1/{school_id}/general/enabledIntegrationSaveState"
        try:
            data = await self.client.request_json("GET", url, token=token)
        except ApiRequestError as e:
            if e.status == 404:
                message = (
                    "Integration Save State not found. "
                    "This school may not have integration enabled."
                )
            else:
                message = f"Failed to fetch Integration Save State: {e.message}"
            raise PreflightError(message, school_id=school_id, check="integrationSaveState")

        save_state_id = _dig(data, "enabledIntegrationSaveState", "integrationSaveStateId")
        if not save_state_id:
            raise PreflightError(
                "Integration Save State ID not found. "
                "Please ensure integration is configured for this school.",
                school_id=school_id,
                check="integrationSaveState",
            )
        self.logger.debug(f"Integration Save State ID: {save_state_id}")
        return save_state_id

    async def _check_schedule(self, base: str, school_id: str, token: str) -> None:
        url = f"{base}/api/v1/{school_id}/general/integrationSchedule"
        try:
            data = await self.client.request_json("GET", url, token=token)
        except ApiRequestError as e:
            raise PreflightError(
                f"Failed to validate integration schedule: {e.message}",
                school_id=school_id,
                check="integrationSchedule",
            )

        sync_type = _dig(data, "integrationSchedule", "syncType")
        if not sync_type:
            raise PreflightError(
                "Integration schedule not configured for this school.",
                school_id=school_id,
                check="integrationSchedule",
            )
        if sync_type != "realtime":
            raise PreflightError(
                f"Real-time merges are not currently enabled for {school_id}, "
                f"only {sync_type} merges are enabled. "
                "Enable real-time merges in the school settings.",
                school_id=school_id,
                check="integrationSchedule",
            )
        self.logger.debug("Real-time merges are enabled")

    async def _check_merge_settings(
        self,
        base: str,
        school_id: str,
        token: str,
        save_state_id: str,
        entity_type: str,
        display_name: str,
    ) -> None:
        url = (
            f"{base}/api/v1/int/{school_id}/merge-settings"
            f"?entityType={entity_type}&integrationSaveStateId={save_state_id}"
        )
        try:
            data = await self.client.request_json("GET", url, token=token)
        except ApiRequestError as e:
            if e.status == 404:
                message = (
                    f"Merge settings not found for {display_name}. "
                    "Ensure merge settings are configured for this entity type."
                )
            else:
                message = f"Failed to validate {display_name} merge settings: {e.message}"
            raise PreflightError(message, school_id=school_id, check=entity_type)

        if _dig(data, "stepsToExecute", "syncSisData") is not True:
            raise PreflightError(
                f'Merge setting "Should Coursedog send updates to the SIS?" is disabled '
                f"for {display_name}. Enable this setting in merge settings for "
                f"{display_name}.",
                school_id=school_id,
                check=entity_type,
            )
        self.logger.info(f"✓ {display_name} merge settings validated")
