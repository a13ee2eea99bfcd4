# app/services/product_service.py
from decimal import Decimal

from sqlalchemy.orm import Session

from app.data.models.product import ProductModel
from app.domain.errors import InsufficientStockError, ProductNotFoundError, ValidationError
from app.domain.events import PriceDropEvent, ProductRestockedEvent, UserNotificationData
from app.repos.product_repo import ProductRepo
from app.services.notification_service import EventPublisher
from app.utils.logging import get_logger

logger = get_logger(__name__)


class ProductService:
    """
    Produkty i stany magazynowe.
    reserve/release nie commituja - dzialaja w transakcji wywolujacego (zamowienie).
    """

    def __init__(self, db: Session, publisher=None):
        self.repo = ProductRepo(db)
        self.publisher = publisher or EventPublisher()

    def get_product(self, product_id: int) -> ProductModel:
        product = self.repo.get_product(product_id)
        if not product:
            raise ProductNotFoundError(f"Product {product_id} not found")
        return product

    def reserve_inventory(self, product_id: int, quantity: int) -> None:
        product = self.repo.get_product_for_update(product_id)
        if not product:
            raise ProductNotFoundError(f"Product {product_id} not found")

        if product.stock_quantity < quantity:
            raise InsufficientStockError(
                f"Insufficient stock for product: {product.name}. "
                f"Available: {product.stock_quantity}, Requested: {quantity}"
            )

        product.stock_quantity -= quantity

    def release_inventory(self, product_id: int, quantity: int) -> None:
        product = self.repo.get_product_for_update(product_id)
        if not product:
            logger.warning(f"Cannot release inventory, product {product_id} not found")
            return
        product.stock_quantity += quantity

    def find_low_stock(self, threshold: int) -> list[ProductModel]:
        return self.repo.find_low_stock(threshold)

    def find_out_of_stock(self) -> list[ProductModel]:
        return self.repo.find_out_of_stock()

    def count_low_stock(self, threshold: int) -> int:
        return self.repo.count_low_stock(threshold)

    def change_price(self, product_id: int, new_price: Decimal) -> ProductModel:
        new_price = Decimal(new_price)
        if new_price <= 0:
            raise ValidationError("Price must be greater than 0")

        product = self.get_product(product_id)
        old_price = Decimal(product.price)
        product.price = new_price
        self.repo.commit()

        logger.info(f"Price of product {product_id} changed {old_price} -> {new_price}")

        if new_price < old_price:
            self._notify_wishlist(
                product,
                lambda users: PriceDropEvent(
                    product_name=product.name,
                    old_price=old_price,
                    new_price=new_price,
                    interested_users=users,
                ),
            )
        return product

    def restock(self, product_id: int, quantity: int) -> ProductModel:
        if quantity <= 0:
            raise ValidationError("Restock quantity must be greater than 0")

        product = self.get_product(product_id)
        was_out_of_stock = product.stock_quantity <= 0
        product.stock_quantity += quantity
        self.repo.commit()

        logger.info(f"Product {product_id} restocked by {quantity}, now {product.stock_quantity}")

        if was_out_of_stock and product.stock_quantity > 0:
            self._notify_wishlist(
                product,
                lambda users: ProductRestockedEvent(product_name=product.name, interested_users=users),
            )
        return product

    def _notify_wishlist(self, product: ProductModel, build_event) -> None:
        users = self.repo.find_wishlist_users(product.id)
        if not users:
            logger.debug(f"No users have product {product.id} in wishlist, skipping notification")
            return

        data = [UserNotificationData(user_id=u.id, email=u.email, first_name=u.first_name) for u in users]
        self.publisher.publish(build_event(data))
        logger.info(f"Notifying {len(data)} users about product {product.name}")
