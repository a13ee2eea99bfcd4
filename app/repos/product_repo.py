# app/repos/product_repo.py
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.data.models.product import ProductModel
from app.data.models.user import UserModel
from app.data.models.wishlist import WishlistItemModel


class ProductRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)

    def get_product_for_update(self, product_id: int) -> ProductModel | None:
        return self.db.execute(
            select(ProductModel).where(ProductModel.id == product_id).with_for_update()
        ).scalar_one_or_none()

    def find_low_stock(self, threshold: int) -> list[ProductModel]:
        return list(
            self.db.execute(
                select(ProductModel)
                .where(
                    ProductModel.active.is_(True),
                    ProductModel.stock_quantity > 0,
                    ProductModel.stock_quantity < threshold,
                )
                .order_by(ProductModel.stock_quantity, ProductModel.id)
            ).scalars().all()
        )

    def find_out_of_stock(self) -> list[ProductModel]:
        return list(
            self.db.execute(
                select(ProductModel)
                .where(ProductModel.active.is_(True), ProductModel.stock_quantity <= 0)
                .order_by(ProductModel.id)
            ).scalars().all()
        )

    def count_low_stock(self, threshold: int) -> int:
        return self.db.execute(
            select(func.count())
            .select_from(ProductModel)
            .where(
                ProductModel.active.is_(True),
                ProductModel.stock_quantity < threshold,
            )
        ).scalar_one()

    def find_wishlist_users(self, product_id: int) -> list[UserModel]:
        return list(
            self.db.execute(
                select(UserModel)
                .join(WishlistItemModel, WishlistItemModel.user_id == UserModel.id)
                .where(WishlistItemModel.product_id == product_id)
                .order_by(UserModel.id)
            ).scalars().all()
        )

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
