# storefront/repos/order_repo.py
from sqlalchemy import select, func, update
from sqlalchemy.orm import Session, selectinload

from storefront.data.models.order import OrderModel
from storefront.data.models.order_item import OrderItemModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order: OrderModel) -> OrderModel:
        # bez commit, commit robi UnitOfWork
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: int, user_id: int | None = None) -> OrderModel | None:
        stmt = (
            select(OrderModel)
            .where(OrderModel.id == order_id)
            .options(selectinload(OrderModel.items).selectinload(OrderItemModel.product))
        )
        if user_id is not None:
            stmt = stmt.where(OrderModel.user_id == user_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def update_status(self, order_id: int, expected: str, new: str) -> bool:
        # UPDATE orders SET status = :new WHERE id = :id AND status = :expected
        # 0 rows = status zmienil sie od odczytu
        result = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.status == expected)
            .values(status=new)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def list_orders(
        self,
        *,
        page: int,
        limit: int,
        status: str | None = None,
        user_id: int | None = None,
    ) -> tuple[list[OrderModel], int]:
        conditions = []
        if status is not None:
            conditions.append(OrderModel.status == status)
        if user_id is not None:
            conditions.append(OrderModel.user_id == user_id)

        orders = self.db.execute(
            select(OrderModel)
            .where(*conditions)
            .options(selectinload(OrderModel.items).selectinload(OrderItemModel.product))
            .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars().all()
        total = self.db.execute(
            select(func.count(OrderModel.id)).where(*conditions)
        ).scalar_one()
        return list(orders), total

    def status_breakdown(self):
        return self.db.execute(
            select(
                OrderModel.status,
                func.count(OrderModel.id),
                func.coalesce(func.sum(OrderModel.total_amount), 0),
            )
            .group_by(OrderModel.status)
            .order_by(OrderModel.status)
        ).all()

    def count_orders(self) -> int:
        return self.db.execute(select(func.count(OrderModel.id))).scalar_one()

    def revenue(self, statuses: list[str]):
        return self.db.execute(
            select(func.coalesce(func.sum(OrderModel.total_amount), 0))
            .where(OrderModel.status.in_(statuses))
        ).scalar_one()
