"""
业务异常定义
订单状态机、库存和优惠码兑换的所有失败都以带类型的异常抛出，
优惠码校验失败除外（以结构化结果返回）
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorKind(str, Enum):
    """错误类型枚举"""
    DISCOUNT_INACTIVE = "DiscountInactive"
    DISCOUNT_NOT_STARTED = "DiscountNotStarted"
    DISCOUNT_EXPIRED = "DiscountExpired"
    DISCOUNT_EXHAUSTED = "DiscountExhausted"
    DISCOUNT_MIN_ORDER_NOT_MET = "DiscountMinOrderNotMet"
    DISCOUNT_USER_LIMIT_REACHED = "DiscountUserLimitReached"
    DISCOUNT_NOT_FOUND = "DiscountNotFound"
    DISCOUNT_IN_USE = "DiscountInUse"
    ORDER_INVALID_TRANSITION = "OrderInvalidTransition"
    ORDER_INSUFFICIENT_STOCK = "OrderInsufficientStock"
    ORDER_REJECT_REASON_REQUIRED = "OrderRejectReasonRequired"
    ORDER_NOT_FOUND = "OrderNotFound"
    PRODUCT_NOT_FOUND = "ProductNotFound"
    INVENTORY_CONFLICT = "InventoryConflict"


class BusinessException(Exception):
    """业务异常基类"""

    kind: ErrorKind
    status_code: int = 400

    def __init__(
        self,
        message: str,
        kind: Optional[ErrorKind] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": self.kind.value,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(BusinessException):
    status_code = 404


class OrderNotFoundError(NotFoundError):
    kind = ErrorKind.ORDER_NOT_FOUND

    def __init__(self, order_id: str):
        super().__init__(f"订单不存在: {order_id}", details={"order_id": order_id})


class ProductNotFoundError(NotFoundError):
    kind = ErrorKind.PRODUCT_NOT_FOUND

    def __init__(self, product_id: str):
        super().__init__(f"商品不存在: {product_id}", details={"product_id": product_id})


class DiscountNotFoundError(NotFoundError):
    kind = ErrorKind.DISCOUNT_NOT_FOUND

    def __init__(self, identifier: str):
        super().__init__(f"优惠码不存在: {identifier}", details={"discount": identifier})


class InvalidTransitionError(BusinessException):
    """不允许的订单状态流转"""

    kind = ErrorKind.ORDER_INVALID_TRANSITION
    status_code = 409

    def __init__(self, order_id: str, current_status: str, target_status: str):
        super().__init__(
            f"订单 {order_id} 无法从 {current_status} 变更为 {target_status}",
            details={
                "order_id": order_id,
                "current_status": current_status,
                "target_status": target_status,
            }
        )
        self.current_status = current_status
        self.target_status = target_status


class RejectReasonRequiredError(BusinessException):
    kind = ErrorKind.ORDER_REJECT_REASON_REQUIRED
    status_code = 400

    def __init__(self, order_id: str):
        super().__init__("拒绝订单必须填写原因", details={"order_id": order_id})


class InsufficientStockError(BusinessException):
    """库存不足，shortages 中列出每个不满足的商品"""

    kind = ErrorKind.ORDER_INSUFFICIENT_STOCK
    status_code = 409

    def __init__(self, shortages: List[Dict[str, Any]]):
        product_ids = ", ".join(str(s["product_id"]) for s in shortages)
        super().__init__(f"商品库存不足: {product_ids}", details={"shortages": shortages})
        self.shortages = shortages


class InventoryConflictError(BusinessException):
    """库存记录在扣减过程中消失或被并发修改"""

    kind = ErrorKind.INVENTORY_CONFLICT
    status_code = 409

    def __init__(self, product_id: str):
        super().__init__(f"商品库存记录冲突: {product_id}", details={"product_id": product_id})


class DiscountNotApplicableError(BusinessException):
    """下单时优惠码校验未通过"""

    status_code = 400

    def __init__(self, code: str, kind: ErrorKind, message: str):
        super().__init__(message, kind=kind, details={"code": code})
        self.code = code


class DiscountRedemptionError(BusinessException):
    """确认订单时优惠码兑换失败（校验通过后名额被抢占）"""

    status_code = 409

    def __init__(self, code: str, kind: ErrorKind, message: str):
        super().__init__(message, kind=kind, details={"code": code})
        self.code = code


class DiscountInUseError(BusinessException):
    """优惠码已被兑换或仍被待确认订单引用，不能删除，只能停用"""

    kind = ErrorKind.DISCOUNT_IN_USE
    status_code = 409

    def __init__(self, code: str, used_count: int, pending_orders: int):
        super().__init__(
            f"优惠码 {code} 已使用或仍有待确认订单，请改为停用",
            details={"code": code, "used_count": used_count, "pending_orders": pending_orders}
        )
        self.code = code
