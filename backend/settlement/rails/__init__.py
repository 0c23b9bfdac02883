from settlement.models.enums import PayoutMethodTypeEnum
from settlement.rails.base import PayoutRail, RailError, RailResult
from settlement.rails.manual import ManualRail
from settlement.rails.paypal import PayPalPayoutsRail
from settlement.rails.stripe_connect import StripeConnectRail


_RAIL_REGISTRY: dict[PayoutMethodTypeEnum, PayoutRail] = {
    PayoutMethodTypeEnum.STRIPE_CONNECT: StripeConnectRail(),
    PayoutMethodTypeEnum.PAYPAL: PayPalPayoutsRail(),
    PayoutMethodTypeEnum.BANK_WIRE: ManualRail(),
    PayoutMethodTypeEnum.CHECK: ManualRail(),
    PayoutMethodTypeEnum.MANUAL: ManualRail(),
}


def get_rail(method_type: PayoutMethodTypeEnum | str) -> PayoutRail | None:
    if not method_type:
        return None
    try:
        key = PayoutMethodTypeEnum(str(getattr(method_type, "value", method_type)).strip().lower())
    except ValueError:
        return None
    return _RAIL_REGISTRY.get(key)


__all__ = ["PayoutRail", "RailError", "RailResult", "get_rail"]
