"""
Serviço de favoritos: cópias permanentes de entradas para registrar de novo
com um toque.

Registrar um favorito é um POST /water-today com createdFromFavorite=true;
aqui só se cria, lista e remove a cópia.
"""
import logging
from typing import Any, Dict, List
from uuid import UUID
from sqlalchemy import func
from sqlalchemy.orm import Session
from app.models.user_favorite import UserFavorite
from app.models.water_entry import WaterEntry
from app.services.water_entry_service import EntryNotFound
from app.utils.timezone_utils import as_utc

logger = logging.getLogger(__name__)


class FavoriteNotFound(Exception):
    pass


class NotAFavoriteCopy(Exception):
    """Entrada não foi registrada a partir de um favorito"""
    pass


def serialize_favorite(favorite: UserFavorite) -> Dict[str, Any]:
    created_at = as_utc(favorite.created_at)
    return {
        "id": str(favorite.id),
        "ounces": float(favorite.ounces),
        "classification": favorite.classification,
        "liquidType": favorite.liquid_type,
        "imageUrl": favorite.image_url,
        "description": favorite.description,
        "servings": favorite.servings,
        "favoriteOrder": favorite.favorite_order,
        "sourceEntryId": str(favorite.source_entry_id) if favorite.source_entry_id else None,
        "createdAt": created_at.isoformat() if created_at else None,
    }


def list_favorites(db: Session, user_id: UUID) -> List[UserFavorite]:
    return db.query(UserFavorite).filter(
        UserFavorite.user_id == user_id
    ).order_by(
        UserFavorite.favorite_order.asc().nulls_last(),
        UserFavorite.created_at.desc(),
    ).all()


def add_favorite(db: Session, user_id: UUID, entry_id: UUID) -> UserFavorite:
    """
    Copia uma entrada ativa para user_favorites, no fim da ordem.

    Raises:
        EntryNotFound: entrada inexistente, de outro usuário ou excluída
    """
    entry = db.query(WaterEntry).filter(
        WaterEntry.id == entry_id,
        WaterEntry.user_id == user_id,
        WaterEntry.is_deleted.is_(False),
    ).first()
    if not entry:
        raise EntryNotFound("Entry not found")

    max_order = db.query(func.max(UserFavorite.favorite_order)).filter(
        UserFavorite.user_id == user_id
    ).scalar()

    favorite = UserFavorite(
        user_id=user_id,
        ounces=entry.ounces,
        classification=entry.classification,
        liquid_type=entry.liquid_type,
        image_url=entry.image_url,
        description=entry.description,
        servings=entry.servings,
        favorite_order=(max_order or 0) + 1,
        source_entry_id=entry.id,
    )
    db.add(favorite)
    db.commit()
    db.refresh(favorite)
    logger.info(f"Favorite {favorite.id} created from entry {entry_id} for user_id={user_id}")
    return favorite


def delete_favorite(db: Session, user_id: UUID, favorite_id: UUID) -> int:
    """Remove o favorito do usuário. Idempotente: retorna quantos saíram."""
    deleted = db.query(UserFavorite).filter(
        UserFavorite.id == favorite_id,
        UserFavorite.user_id == user_id,
    ).delete(synchronize_session=False)
    db.commit()
    logger.info(f"Favorite {favorite_id} deleted for user_id={user_id} (rows={deleted})")
    return deleted


def unfavorite_copy(db: Session, user_id: UUID, copy_entry_id: UUID) -> UUID:
    """
    Desfavorita a partir de uma entrada registrada via favorito: acha o
    favorito com os mesmos campos e o remove.

    Raises:
        EntryNotFound: entrada inexistente ou excluída
        NotAFavoriteCopy: entrada não veio de um favorito
        FavoriteNotFound: nenhum favorito corresponde
    """
    entry = db.query(WaterEntry).filter(
        WaterEntry.id == copy_entry_id,
        WaterEntry.user_id == user_id,
        WaterEntry.is_deleted.is_(False),
    ).first()
    if not entry:
        raise EntryNotFound("Entry not found")
    if not entry.created_from_favorite:
        raise NotAFavoriteCopy("This entry was not created from a favorite")

    favorite = db.query(UserFavorite).filter(
        UserFavorite.user_id == user_id,
        UserFavorite.ounces == entry.ounces,
        UserFavorite.classification == entry.classification,
        func.coalesce(UserFavorite.description, "") == (entry.description or ""),
        func.coalesce(UserFavorite.liquid_type, "water") == (entry.liquid_type or "water"),
        func.coalesce(UserFavorite.servings, 1) == (entry.servings or 1),
    ).order_by(
        UserFavorite.favorite_order.asc().nulls_last(),
        UserFavorite.created_at.desc(),
    ).first()
    if not favorite:
        raise FavoriteNotFound("Original favorite not found")

    favorite_id = favorite.id
    db.delete(favorite)
    db.commit()
    logger.info(f"Favorite {favorite_id} removed via copy entry {copy_entry_id} for user_id={user_id}")
    return favorite_id
