"""LLM configuration endpoints (API keys are stored encrypted, never returned)."""

import json

import structlog
from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from schoolops.config.database import get_db
from schoolops.integrations.ai_providers import AIProviderError
from schoolops.middleware.error_handler import NotFoundError, require_id
from schoolops.models import ApiKey, LLMConfiguration
from schoolops.models.base import utcnow
from schoolops.schemas.llm_configurations import (
    LLMConfigurationCreate,
    LLMConfigurationResponse,
    LLMConfigurationTestResponse,
    LLMConfigurationUpdate,
)
from schoolops.services.ai_factory import Available, provider_from_configuration
from schoolops.services.encryption import encrypt_value, mask_api_key

logger = structlog.get_logger()
router = APIRouter()


def _to_response(config: LLMConfiguration) -> LLMConfigurationResponse:
    return LLMConfigurationResponse(
        id=config.id,
        provider=config.provider,
        name=config.name,
        model=config.model,
        base_url=config.base_url,
        is_active=config.is_active,
        is_default=config.is_default,
        configuration=json.loads(config.configuration) if config.configuration else {},
        api_key_id=config.api_key_id,
        has_api_key=config.api_key is not None and bool(config.api_key.encrypted_key),
        created_at=config.created_at,
        updated_at=config.updated_at,
    )


def get_configuration_or_404(db: Session, config_id: str) -> LLMConfiguration:
    require_id(config_id, "id")
    config = db.query(LLMConfiguration).filter(LLMConfiguration.id == config_id).first()
    if not config:
        raise NotFoundError("LLM configuration", config_id)
    return config


def _clear_other_defaults(db: Session, keep_id: str | None = None) -> None:
    query = db.query(LLMConfiguration).filter(LLMConfiguration.is_default == True)  # noqa: E712
    if keep_id:
        query = query.filter(LLMConfiguration.id != keep_id)
    query.update({"is_default": False}, synchronize_session=False)


def _store_key(db: Session, provider: str, api_key: str, name: str) -> ApiKey:
    key = ApiKey(
        provider=provider,
        encrypted_key=encrypt_value(api_key),
        description=f"API key for {name}",
    )
    db.add(key)
    db.flush()
    logger.info("API key stored", provider=provider, key=mask_api_key(api_key))
    return key


@router.get("", response_model=list[LLMConfigurationResponse])
async def list_configurations(db: Session = Depends(get_db)):
    """List configurations, default first."""
    configs = (
        db.query(LLMConfiguration)
        .order_by(LLMConfiguration.is_default.desc(), LLMConfiguration.name)
        .all()
    )
    return [_to_response(c) for c in configs]


@router.get("/{config_id}", response_model=LLMConfigurationResponse)
async def get_configuration(config_id: str, db: Session = Depends(get_db)):
    """Get a configuration by ID."""
    return _to_response(get_configuration_or_404(db, config_id))


@router.post("", response_model=LLMConfigurationResponse, status_code=201)
async def create_configuration(data: LLMConfigurationCreate, db: Session = Depends(get_db)):
    """Create a configuration; its API key is encrypted before storage."""
    if data.is_default:
        _clear_other_defaults(db)

    key = _store_key(db, data.provider, data.api_key, data.name)
    config = LLMConfiguration(
        provider=data.provider,
        name=data.name,
        model=data.model,
        base_url=data.base_url,
        is_active=data.is_active,
        is_default=data.is_default,
        configuration=json.dumps(data.configuration),
        api_key_id=key.key_id,
    )
    db.add(config)
    db.commit()
    db.refresh(config)

    logger.info("LLM configuration created", id=config.id, provider=config.provider, is_default=config.is_default)
    return _to_response(config)


@router.put("/{config_id}", response_model=LLMConfigurationResponse)
async def update_configuration(
    config_id: str,
    data: LLMConfigurationUpdate,
    db: Session = Depends(get_db),
):
    """Update a configuration; a new API key replaces the stored one."""
    config = get_configuration_or_404(db, config_id)
    update_data = data.model_dump(exclude_unset=True, exclude_none=True)

    if update_data.get("is_default"):
        _clear_other_defaults(db, keep_id=config_id)

    api_key = update_data.pop("api_key", None)
    if api_key:
        previous = config.api_key
        key = _store_key(db, update_data.get("provider", config.provider), api_key, config.name)
        config.api_key = key
        if previous is not None:
            db.delete(previous)

    if "configuration" in update_data:
        update_data["configuration"] = json.dumps(update_data["configuration"])

    for field, value in update_data.items():
        setattr(config, field, value)

    db.commit()
    db.refresh(config)

    logger.info("LLM configuration updated", id=config_id, fields=list(update_data))
    return _to_response(config)


@router.delete("/{config_id}", status_code=204)
async def delete_configuration(config_id: str, db: Session = Depends(get_db)):
    """Delete a configuration and its stored key."""
    config = get_configuration_or_404(db, config_id)
    key = config.api_key
    db.delete(config)
    if key is not None:
        db.delete(key)
    db.commit()

    logger.info("LLM configuration deleted", id=config_id)
    return Response(status_code=204)


@router.post("/{config_id}/test", response_model=LLMConfigurationTestResponse)
async def test_configuration(config_id: str, db: Session = Depends(get_db)):
    """Send a tiny prompt through the configuration."""
    config = get_configuration_or_404(db, config_id)

    result = provider_from_configuration(config)
    if not isinstance(result, Available):
        return LLMConfigurationTestResponse(
            success=False,
            message=result.reason,
            provider=config.provider,
        )

    try:
        response = await result.provider.generate_content(
            "Reply with the single word: OK",
            max_tokens=10,
            temperature=0,
        )
    except AIProviderError as e:
        logger.warning("LLM configuration test failed", id=config_id, error=str(e))
        return LLMConfigurationTestResponse(
            success=False,
            message=f"Provider call failed: {e}",
            provider=config.provider,
        )

    if config.api_key is not None:
        config.api_key.last_used_at = utcnow()
        db.commit()

    logger.info("LLM configuration test succeeded", id=config_id)
    return LLMConfigurationTestResponse(
        success=True,
        message="Connection successful",
        provider=config.provider,
        response_preview=response.text[:100],
    )
