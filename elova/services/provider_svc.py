"""Provider (n8n instance) service."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..errors import ProviderConfigError
from ..models.provider import Provider
from .crypto import decrypt_api_key, encrypt_api_key, is_encrypted

logger = logging.getLogger(__name__)


async def create_provider(
    db: AsyncSession,
    name: str,
    base_url: str,
    api_key: str,
    user_id: str | None = None,
) -> Provider:
    provider = Provider(
        name=name,
        base_url=base_url.rstrip("/"),
        api_key_encrypted=encrypt_api_key(api_key),
        user_id=user_id,
        is_connected=True,
        status="healthy",
        metadata_json={},
    )
    db.add(provider)
    await db.commit()
    await db.refresh(provider)
    return provider


async def get_provider(db: AsyncSession, provider_id: uuid.UUID) -> Provider | None:
    result = await db.execute(select(Provider).where(Provider.id == provider_id))
    return result.scalar_one_or_none()


async def list_providers(db: AsyncSession) -> list[Provider]:
    result = await db.execute(select(Provider).order_by(Provider.created_at.asc()))
    return list(result.scalars().all())


async def list_active_providers(db: AsyncSession) -> list[Provider]:
    """Providers eligible for scheduled sync: connected and healthy."""
    stmt = (
        select(Provider)
        .where(Provider.is_connected.is_(True), Provider.status == "healthy")
        .order_by(Provider.created_at.asc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


def get_provider_api_key(provider: Provider) -> str:
    """Plaintext API key for a provider.

    Rows written before encryption was introduced hold the key in clear.
    """
    stored = provider.api_key_encrypted or ""
    if not stored:
        raise ProviderConfigError(f"Provider {provider.name!r} has no API key configured")
    if not is_encrypted(stored):
        logger.warning("Provider %s stores its API key unencrypted", provider.id)
        return stored
    return decrypt_api_key(stored)


async def update_provider_health(
    db: AsyncSession,
    provider: Provider,
    *,
    status: str,
    is_connected: bool | None = None,
    error: str | None = None,
) -> Provider:
    provider.status = status
    provider.last_checked_at = datetime.now(timezone.utc)
    if is_connected is not None:
        provider.is_connected = is_connected
    metadata = dict(provider.metadata_json or {})
    if error:
        metadata["last_error"] = error
    else:
        metadata.pop("last_error", None)
    provider.metadata_json = metadata
    await db.commit()
    await db.refresh(provider)
    return provider


async def test_provider_connection(
    db: AsyncSession,
    provider: Provider,
    client_factory=None,
) -> tuple[bool, str | None]:
    """Probe the provider and record the outcome on its row."""
    if client_factory is None:
        from ..n8n.client import create_n8n_client

        client_factory = create_n8n_client

    try:
        api_key = get_provider_api_key(provider)
    except ProviderConfigError as exc:
        await update_provider_health(db, provider, status="error", is_connected=False, error=str(exc))
        return False, str(exc)

    client = client_factory(provider.base_url, api_key, settings.connection_test_timeout_seconds)
    try:
        ok, error = await client.test_connection()
    finally:
        await client.close()

    await update_provider_health(
        db,
        provider,
        status="healthy" if ok else "error",
        is_connected=ok,
        error=error,
    )
    return ok, error


async def ensure_default_provider(db: AsyncSession) -> Provider | None:
    """Create the configured default provider when none exists yet.

    Returns the first provider, or ``None`` when there is nothing configured
    and no default API key to create one from.
    """
    count = (await db.execute(select(func.count()).select_from(Provider))).scalar_one()
    if count:
        providers = await list_providers(db)
        return providers[0]
    if not settings.default_n8n_api_key:
        return None

    logger.info("Creating default provider %r for %s", settings.default_provider_name, settings.default_n8n_url)
    return await create_provider(
        db,
        name=settings.default_provider_name,
        base_url=settings.default_n8n_url,
        api_key=settings.default_n8n_api_key,
    )
