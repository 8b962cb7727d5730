"""
Item API Routes - Catalogue and customer-specific prices
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List

from inventra.core.database import get_db
from inventra.core.security import get_current_user
from inventra.schemas import (
    ItemCreate, ItemUpdate, ItemResponse, CustomerPriceUpdate, CustomerPriceResponse, MessageResponse
)
from inventra.services.inventory_service import ItemService

router = APIRouter(prefix="/items", tags=["Items"])


@router.get("", response_model=List[ItemResponse])
async def list_items(
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return ItemService(db).get_by_user(current_user.id)


@router.post("", response_model=ItemResponse, status_code=status.HTTP_201_CREATED)
async def create_item(
    item_data: ItemCreate,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    """Create an item with its opening stock"""
    item = ItemService(db).create(item_data, current_user.id)
    db.commit()
    db.refresh(item)
    return item


@router.get("/{item_id}", response_model=ItemResponse)
async def get_item(
    item_id: int,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return ItemService(db).get_or_raise(item_id, current_user.id)


@router.put("/{item_id}", response_model=ItemResponse)
async def update_item(
    item_id: int,
    item_data: ItemUpdate,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    """Update an item; price and quantity changes are journalled"""
    item = ItemService(db).update(item_id, current_user.id, item_data)
    db.commit()
    db.refresh(item)
    return item


@router.delete("/{item_id}", response_model=MessageResponse)
async def delete_item(
    item_id: int,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    ItemService(db).delete(item_id, current_user.id)
    db.commit()
    return {"message": "Item deleted successfully"}


# ==================== CUSTOMER PRICES ====================

@router.get("/{item_id}/customer-prices", response_model=List[CustomerPriceResponse])
async def list_customer_prices(
    item_id: int,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return ItemService(db).get_customer_prices(item_id, current_user.id)


@router.put("/{item_id}/customer-prices", response_model=List[CustomerPriceResponse])
async def set_customer_price(
    item_id: int,
    price_data: CustomerPriceUpdate,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    """Set or replace one customer's price for this item"""
    prices = ItemService(db).set_customer_price(item_id, current_user.id, price_data)
    db.commit()
    return prices


@router.delete("/{item_id}/customer-prices", response_model=List[CustomerPriceResponse])
async def remove_customer_price(
    item_id: int,
    customer_id: int = Query(...),
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    prices = ItemService(db).remove_customer_price(item_id, current_user.id, customer_id)
    db.commit()
    return prices
