"""Localized read projections.

Stored records keep both the Arabic and the English text; responses that
are shown to end users pick one side through these projections. Nothing in
here writes to the database.
"""
from typing import Optional
from .models import LanguageCode
from . import models, schemas


def resolve_language(value: Optional[str]) -> LanguageCode:
    # Anything we don't recognize falls back to English
    return LanguageCode.ar if value == LanguageCode.ar.value else LanguageCode.en


def localize_plan(plan: models.Plan, language: LanguageCode) -> schemas.LocalizedPlan:
    if language == LanguageCode.ar:
        name, description, text_key = plan.name_ar, plan.description_ar, "text_ar"
    else:
        name, description, text_key = plan.name_en, plan.description_en, "text_en"
    return schemas.LocalizedPlan(
        id=plan.id,
        language=language,
        name=name,
        description=description,
        price=plan.price,
        number_of_sessions=plan.number_of_sessions,
        duration=plan.duration,
        features=[feature[text_key] for feature in (plan.features or [])],
        category=plan.category,
        image=plan.image,
        is_active=plan.is_active,
    )
