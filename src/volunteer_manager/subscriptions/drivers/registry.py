"""
Реестр драйверов: SubscriptionType -> фабрика драйвера.
Полнота проверяется при импорте.
"""

from __future__ import annotations

from pydantic import BaseModel
from sqlalchemy.orm import Session

from volunteer_manager.domain.enums import SubscriptionType
from volunteer_manager.subscriptions.drivers.application import ApplicationDriver
from volunteer_manager.subscriptions.drivers.base import Driver
from volunteer_manager.subscriptions.drivers.help import HelpDriver
from volunteer_manager.subscriptions.drivers.registration import RegistrationDriver
from volunteer_manager.subscriptions.drivers.test import TestDriver

DriverFactory = type[Driver]

DRIVER_FACTORIES: dict[SubscriptionType, DriverFactory] = {
    SubscriptionType.Application: ApplicationDriver,
    SubscriptionType.Registration: RegistrationDriver,
    SubscriptionType.Help: HelpDriver,
    SubscriptionType.Test: TestDriver,
}


def verify_registry(factories: dict[SubscriptionType, DriverFactory] | None = None) -> None:
    factories = DRIVER_FACTORIES if factories is None else factories
    missing = [t.value for t in SubscriptionType if t not in factories]
    if missing:
        raise RuntimeError(f"subscription drivers are not registered: {', '.join(missing)}")


def create_driver(
    subscription_type: SubscriptionType, *, session: Session, source_user_id: int | None = None
) -> Driver:
    return DRIVER_FACTORIES[subscription_type](session=session, source_user_id=source_user_id)


def message_model_for(subscription_type: SubscriptionType) -> type[BaseModel]:
    return DRIVER_FACTORIES[subscription_type].message_model


def allowed_type_ids_for(subscription_type: SubscriptionType) -> frozenset[int] | None:
    return DRIVER_FACTORIES[subscription_type].allowed_type_ids


verify_registry()
