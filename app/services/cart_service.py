from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Any
from sqlalchemy.orm import Session
from app.data.models.cart import CartModel
from app.data.models.cart_item import CartItemModel
from app.domain.errors import ProductNotFoundError, UserNotFoundError, ValidationError
from app.repos.cart_repo import CartRepo
from app.repos.product_repo import ProductRepo
from app.repos.user_repo import UserRepo
from app.utils.logging import get_logger

logger = get_logger(__name__)


class CartService:
    """
    Koszyk uzytkownika (jeden na usera), kontrakt dla konwersji koszyk -> zamowienie
    commands (add, remove, clear) modyfikuja stan i dotykaja updated_at
    query (get, get_cart_with_items, find_abandoned) tylko odczyt
    """

    def __init__(self, db: Session):
        self.repo = CartRepo(db)
        self.products = ProductRepo(db)
        self.users = UserRepo(db)

    #query - odczyt
    def get_cart(self, user_id: int) -> Dict[str, Any]:
        cart = self.repo.get_cart_by_user(user_id)
        items = self.repo.get_cart_items(cart.id) if cart else []

        #dict przeksztalcany w jsona
        return {
            "user_id": user_id,
            "items": [
                {
                    "product_id": i.product_id,
                    "product_name": i.product.name,
                    "quantity": i.quantity,
                    "price": i.price,
                }
                for i in items
            ],
            "total": sum((i.price * i.quantity for i in items), Decimal("0.00")),
            "updated_at": cart.updated_at if cart else None,
        }

    def get_cart_with_items(self, user_id: int) -> list[CartItemModel]:
        cart = self.repo.get_cart_by_user(user_id)
        if not cart:
            return []
        return self.repo.get_cart_items(cart.id)

    def find_abandoned(self, cutoff: datetime) -> list[CartModel]:
        return self.repo.find_abandoned(cutoff)

    #commands
    def add_product(self, user_id: int, product_id: int, quantity: int) -> Dict[str, Any]:
        if quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")

        if not self.users.get_user(user_id):
            raise UserNotFoundError(f"User {user_id} not found")

        product = self.products.get_product(product_id)
        if not product:
            raise ProductNotFoundError(f"Product {product_id} not found")
        if not product.active:
            raise ValidationError(f"Product {product_id} is not available")

        cart = self.repo.get_cart_by_user(user_id)
        if not cart:
            cart = self.repo.create_cart(CartModel(user_id=user_id))
            logger.info(f"Utworzono nowy koszyk {cart.id} dla uzytkownika {user_id}")

        existing_item = self.repo.get_cart_item(cart.id, product_id)
        if existing_item:
            logger.info(
                f"Produkt {product_id} juz jest w koszyku, zwiekszam ilosc "
                f"z {existing_item.quantity} do {existing_item.quantity + quantity}"
            )
            existing_item.quantity += quantity
            existing_item.price = product.price
        else:
            self.repo.add_cart_item(
                CartItemModel(
                    cart_id=cart.id,
                    product_id=product_id,
                    quantity=quantity,
                    price=product.price,
                )
            )

        cart.updated_at = datetime.now(timezone.utc)
        self.repo.commit()

        logger.info(f"Produkt {product_id} dodany do koszyka {cart.id}")
        return self.get_cart(user_id)

    def remove_product(self, user_id: int, product_id: int) -> Dict[str, Any]:
        cart = self.repo.get_cart_by_user(user_id)
        if not cart:
            raise ValidationError("Cart does not exist")

        removed = self.repo.delete_cart_item(cart.id, product_id)
        if removed:
            cart.updated_at = datetime.now(timezone.utc)
        self.repo.commit()

        logger.info(f"Produkt {product_id} usuniety z koszyka {cart.id}")
        return self.get_cart(user_id)

    def clear(self, user_id: int, commit: bool = True) -> int:
        """
        Czysci koszyk. commit=False - czesc wiekszej jednostki pracy
        (tworzenie zamowienia), commit robi wywolujacy.
        """
        cart = self.repo.get_cart_by_user(user_id)
        if not cart:
            return 0

        removed = self.repo.delete_all_items(cart.id)
        cart.updated_at = datetime.now(timezone.utc)
        if commit:
            self.repo.commit()

        logger.info(f"Koszyk {cart.id} wyczyszczony ({removed} pozycji)")
        return removed
