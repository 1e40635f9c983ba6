import logging
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import models
from errors import Conflict, NotFound
from image_host import ImageHost
from models import Category
from permissions import Action, is_staff, require, role_of
from schemas import MenuItemCreate, MenuItemResponse, MenuItemUpdate

logger = logging.getLogger(__name__)


def _run_now(func, *args):
    func(*args)


def menu_item_to_response(item: models.MenuItem) -> MenuItemResponse:
    # stored category is left alone, unknown values are shown as Food
    return MenuItemResponse(
        id=item.id,
        name=item.name,
        description=item.description,
        price=float(item.price),
        category=Category.display(item.category),
        image_id=item.image_id,
        image_url=item.image_url,
        is_available=bool(item.is_available),
    )


class MenuService:
    def __init__(self, db: Session, image_host: Optional[ImageHost] = None,
                 defer: Optional[Callable] = None):
        self.db = db
        self.image_host = image_host
        # defer(func, *args) schedules best-effort work; BackgroundTasks.add_task fits
        self.defer = defer or _run_now

    def get_menu_items(self, role=None) -> List[MenuItemResponse]:
        query = self.db.query(models.MenuItem)
        if not is_staff(role_of(role)):
            query = query.filter(models.MenuItem.is_available == True)  # noqa: E712
        return [menu_item_to_response(item) for item in query.order_by(models.MenuItem.id.asc()).all()]

    def get_item(self, role, item_id: int) -> MenuItemResponse:
        item = self._find(item_id)
        if not item.is_available and not is_staff(role_of(role)):
            raise NotFound("Item not found")
        return menu_item_to_response(item)

    def toggle_availability(self, actor, item_id: int, is_available: bool) -> MenuItemResponse:
        require(actor, Action.TOGGLE_MENU_AVAILABILITY)
        item = self._find(item_id)
        item.is_available = bool(is_available)
        self.db.commit()
        self.db.refresh(item)
        logger.info(f"Menu item {item_id} availability set to {item.is_available}")
        return menu_item_to_response(item)

    def create_item(self, actor, data: MenuItemCreate) -> MenuItemResponse:
        require(actor, Action.MANAGE_MENU_ITEM)
        self._ensure_name_free(data.name)

        item = models.MenuItem(**data.dict())
        self.db.add(item)
        self._commit_unique()
        self.db.refresh(item)
        logger.info(f"Menu item {item.id} ({item.name}) created")
        return menu_item_to_response(item)

    def update_item(self, actor, item_id: int, data: MenuItemUpdate) -> MenuItemResponse:
        require(actor, Action.MANAGE_MENU_ITEM)
        item = self._find(item_id)

        changes = data.dict(exclude_unset=True)
        changes = {key: value for key, value in changes.items() if value is not None}
        if "name" in changes and changes["name"] != item.name:
            self._ensure_name_free(changes["name"], exclude_id=item_id)

        old_image_id = item.image_id
        if changes.get("image_id", old_image_id) != old_image_id and "image_url" not in changes:
            # the old url points at the image about to be released
            changes["image_url"] = None
        for key, value in changes.items():
            setattr(item, key, value)

        self._commit_unique()
        self.db.refresh(item)

        if old_image_id and item.image_id != old_image_id:
            self.defer(self.release_image, old_image_id)
        return menu_item_to_response(item)

    def delete_item(self, actor, item_id: int) -> None:
        require(actor, Action.MANAGE_MENU_ITEM)
        item = self._find(item_id)

        referenced = self.db.query(models.OrderItem).filter(models.OrderItem.menu_item_id == item_id).first()
        if referenced:
            raise Conflict("Menu item is part of existing orders; mark it unavailable instead")

        image_id = item.image_id
        self.db.delete(item)
        self.db.commit()
        logger.info(f"Menu item {item_id} deleted")

        if image_id:
            self.defer(self.release_image, image_id)

    def upload_image(self, actor, filename: str, content: bytes, content_type: str) -> dict:
        require(actor, Action.MANAGE_MENU_ITEM)
        return self.image_host.upload(filename, content, content_type)

    def release_image(self, image_id: str) -> bool:
        """Best effort: never raises, returns whether the host confirmed."""
        if self.image_host is None:
            return False
        try:
            self.image_host.destroy(image_id)
            return True
        except Exception as e:
            logger.warning(f"Could not release image {image_id}: {e}")
            return False

    def _find(self, item_id: int) -> models.MenuItem:
        item = self.db.query(models.MenuItem).filter(models.MenuItem.id == item_id).first()
        if not item:
            raise NotFound("Item not found")
        return item

    def _ensure_name_free(self, name: str, exclude_id: Optional[int] = None) -> None:
        query = self.db.query(models.MenuItem).filter(models.MenuItem.name == name)
        if exclude_id is not None:
            query = query.filter(models.MenuItem.id != exclude_id)
        if query.first():
            raise Conflict("A menu item with this name already exists")

    def _commit_unique(self) -> None:
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise Conflict("A menu item with this name already exists")
