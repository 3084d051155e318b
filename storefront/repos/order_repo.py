# storefront/repos/order_repo.py
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from storefront.data.models.order import OrderModel
from storefront.domain.order_status import OrderStatus


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: int, for_update: bool = False) -> OrderModel | None:
        stmt = (
            select(OrderModel)
            .where(OrderModel.id == order_id)
            .options(selectinload(OrderModel.lines))
        )
        if for_update:
            # row lock on PostgreSQL, ignored by SQLite (which serializes writers anyway)
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def list_by_user(self, user_id: str) -> list[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel)
                .where(OrderModel.user_id == user_id)
                .options(selectinload(OrderModel.lines))
                .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            ).scalars()
        )

    def list_all(self, status: OrderStatus | None = None) -> list[OrderModel]:
        stmt = select(OrderModel).options(selectinload(OrderModel.lines))
        if status is not None:
            stmt = stmt.where(OrderModel.status == status)
        return list(
            self.db.execute(stmt.order_by(OrderModel.created_at.desc(), OrderModel.id.desc())).scalars()
        )
