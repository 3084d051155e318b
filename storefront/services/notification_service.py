# storefront/services/notification_service.py
from storefront.celery_worker import celery_app
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Customer notifications, processed asynchronously by Celery.

    Only called after the triggering transaction has committed; a broker
    failure is logged and never undoes the order change.
    """

    def _enqueue(self, task, *args):
        try:
            task.delay(*args)
        except Exception as e:
            logger.warning(f"Could not enqueue {task.name}{args}: {e}")

    def order_placed(self, user_id: str, order_id: int):
        self._enqueue(send_order_placed_task, user_id, order_id)

    def order_cancelled(self, user_id: str, order_id: int):
        self._enqueue(send_order_cancelled_task, user_id, order_id)

    def payment_confirmed(self, user_id: str, order_id: int):
        self._enqueue(send_payment_confirmed_task, user_id, order_id)

    def status_changed(self, user_id: str, order_id: int, status: str):
        self._enqueue(send_status_changed_task, user_id, order_id, status)


# Celery tasks: a real deployment would hand these to email/SMS providers,
# for now they only log.

@celery_app.task(name="storefront.services.notification_service.send_order_placed_task")
def send_order_placed_task(user_id: str, order_id: int):
    logger.info(f"[NOTIFICATION] User {user_id}: order {order_id} placed, awaiting payment")
    return {"user_id": user_id, "order_id": order_id, "status": "sent"}


@celery_app.task(name="storefront.services.notification_service.send_order_cancelled_task")
def send_order_cancelled_task(user_id: str, order_id: int):
    logger.info(f"[NOTIFICATION] User {user_id}: order {order_id} cancelled")
    return {"user_id": user_id, "order_id": order_id, "status": "sent"}


@celery_app.task(name="storefront.services.notification_service.send_payment_confirmed_task")
def send_payment_confirmed_task(user_id: str, order_id: int):
    logger.info(f"[NOTIFICATION] User {user_id}: payment received for order {order_id}")
    return {"user_id": user_id, "order_id": order_id, "status": "sent"}


@celery_app.task(name="storefront.services.notification_service.send_status_changed_task")
def send_status_changed_task(user_id: str, order_id: int, status: str):
    logger.info(f"[NOTIFICATION] User {user_id}: order {order_id} is now {status}")
    return {"user_id": user_id, "order_id": order_id, "status": "sent"}
