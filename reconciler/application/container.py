from dependency_injector import containers, providers

from reconciler.application.reconcile_payment import ReconcilePaymentUseCase
from reconciler.application.replay_failed_events import ReplayFailedEventsUseCase
from reconciler.infrastructure.container import InfrastructureContainer


class ApplicationContainer(containers.DeclarativeContainer):
    config = providers.Configuration()
    infrastructure_container = providers.Container[InfrastructureContainer](
        InfrastructureContainer,
        config=config.infrastructure,
    )

    reconcile_payment_use_case = providers.Singleton[ReconcilePaymentUseCase](
        ReconcilePaymentUseCase, unit_of_work=infrastructure_container.unit_of_work
    )
    replay_failed_events_use_case = providers.Singleton[ReplayFailedEventsUseCase](
        ReplayFailedEventsUseCase, event_store=infrastructure_container.event_store
    )
