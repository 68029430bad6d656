"""Experiment variant generation through the user's AI provider."""
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy.orm import Session

from emailflow.core.config import settings
from emailflow.core.context import AuthContext
from emailflow.core.exceptions import InvalidEmailError, VariantsExistError
from emailflow.db.models.email import VARIANT_LETTERS, Email, EmailType, ExperimentVariant
from emailflow.db.models.integration import IntegrationProvider
from emailflow.db.models.settings import UserSettings
from emailflow.services.adapters.ai.openai_adapter import OpenAIAdapter
from emailflow.services.adapters.base import AIAdapter
from emailflow.services.error_log import record_error
from emailflow.services.integrations import require_connection

logger = structlog.get_logger()

PROFILE_FIELDS = (
    "avatar_name",
    "avatar_role",
    "avatar_company_name",
    "avatar_bio",
    "icp_description",
    "icp_pain_points",
    "icp_fears",
    "icp_insecurities",
    "icp_transformations",
    "icp_key_objectives",
)


def clamp_variant_count(count: Optional[int]) -> int:
    if count is None:
        count = settings.DEFAULT_VARIANT_COUNT
    upper = min(settings.MAX_VARIANTS, len(VARIANT_LETTERS))
    return max(1, min(count, upper))


def load_profile(db: Session, user_id: int) -> Dict[str, Any]:
    """Sender and ICP fields from the user's settings, omitting blanks."""
    user_settings = db.query(UserSettings).filter(UserSettings.user_id == user_id).first()
    if not user_settings:
        return {}
    return {f: getattr(user_settings, f) for f in PROFILE_FIELDS if getattr(user_settings, f)}


def generate_variants(
    db: Session,
    auth: AuthContext,
    email: Email,
    count: Optional[int] = None,
    params: Optional[Dict[str, Any]] = None,
    adapter: Optional[AIAdapter] = None
) -> List[ExperimentVariant]:
    """Generate and store up to `count` lettered variants of an experiment email.

    Output the model gets wrong is skipped, not retried, so fewer variants
    than requested may be stored. Letters are assigned in order to the
    variants that were kept.
    """
    if email.type != EmailType.EXPERIMENT:
        raise InvalidEmailError(f"Email {email.email_id} is not an experiment")
    if not email.has_content():
        raise InvalidEmailError(f"Email {email.email_id} is missing subject or body")

    existing = db.query(ExperimentVariant).filter(ExperimentVariant.email_id == email.email_id).count()
    if existing:
        raise VariantsExistError(f"Email {email.email_id} already has {existing} variants")

    if adapter is None:
        connection = require_connection(db, auth, IntegrationProvider.OPENAI)
        adapter = OpenAIAdapter.from_connection(connection)

    count = clamp_variant_count(count)
    params = params or {}
    profile = load_profile(db, auth.user_id)
    ai_parameters = {**adapter.parameters, **params}

    logger.info("Generating experiment variants", email_id=email.email_id, count=count)

    variants = []
    for attempt in range(count):
        try:
            generated = adapter.generate_variant(
                base_subject=email.subject,
                base_body=email.body_html,
                key_angle=email.key_angle,
                profile=profile,
                params=params
            )
        except Exception as e:
            logger.error("Variant generation call failed", email_id=email.email_id, attempt=attempt + 1, error=str(e))
            record_error(db, "variant_generator", e, {"email_id": email.email_id, "attempt": attempt + 1})
            continue

        if generated is None:
            logger.warning("Skipping malformed variant output", email_id=email.email_id, attempt=attempt + 1)
            continue

        variants.append(ExperimentVariant(
            email_id=email.email_id,
            variant_letter=VARIANT_LETTERS[len(variants)],
            subject=generated["subject"],
            body_html=generated["body_html"],
            body_text=generated.get("body_text"),
            key_angle=generated.get("key_angle"),
            ai_parameters=ai_parameters
        ))

    db.add_all(variants)
    db.commit()
    for variant in variants:
        db.refresh(variant)

    logger.info("Experiment variants stored", email_id=email.email_id, requested=count, stored=len(variants))
    return variants
