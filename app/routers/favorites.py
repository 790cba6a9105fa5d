"""
Router para favoritos (cópias permanentes de entradas)
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from uuid import UUID
from app.database import get_db
from app.dependencies.auth import get_current_user
from app.schemas.favorite import FavoriteCreate, UnfavoriteCopyRequest
from app.services.favorites_service import (
    FavoriteNotFound,
    NotAFavoriteCopy,
    add_favorite,
    delete_favorite,
    list_favorites,
    serialize_favorite,
    unfavorite_copy,
)
from app.services.water_entry_service import EntryNotFound

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/favorites")
async def get_favorites(
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user)
):
    favorites = list_favorites(db, user_id)
    logger.info(f"Found {len(favorites)} favorites for user_id={user_id}")
    return {"favorites": [serialize_favorite(f) for f in favorites]}


@router.post("/favorites")
async def create_favorite(
    body: FavoriteCreate,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user)
):
    """Copia uma entrada para os favoritos do usuário."""
    if body.water_entry_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Water entry ID required"
        )

    try:
        favorite = add_favorite(db, user_id, body.water_entry_id)
        return {"favorite": serialize_favorite(favorite)}
    except EntryNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Entry not found"
        )
    except Exception as e:
        logger.error(f"Error creating favorite: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create favorite"
        )


@router.delete("/favorites")
async def remove_favorite(
    favorite_id: Optional[UUID] = Query(default=None, alias="id"),
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user)
):
    if favorite_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Favorite ID required"
        )
    delete_favorite(db, user_id, favorite_id)
    return {"success": True}


@router.post("/unfavorite-copy")
async def unfavorite_from_copy(
    body: UnfavoriteCopyRequest,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user)
):
    """Desfavorita a partir de uma entrada registrada via favorito."""
    if body.copy_entry_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing copyEntryId"
        )

    try:
        favorite_id = unfavorite_copy(db, user_id, body.copy_entry_id)
    except EntryNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Entry not found"
        )
    except NotAFavoriteCopy as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except FavoriteNotFound as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    return {"success": True, "unfavoritedId": str(favorite_id)}
