from dependency_injector import containers, providers

from reconciler.application.container import ApplicationContainer
from reconciler.presentation.reconciliation_worker import ReconciliationWorker


class PresentationContainer(containers.DeclarativeContainer):
    config = providers.Configuration()
    application = providers.Container[ApplicationContainer](
        ApplicationContainer, config=config
    )

    reconciliation_worker = providers.Singleton[ReconciliationWorker](
        ReconciliationWorker,
        event_store=application.infrastructure_container.event_store,
        reconcile_payment_use_case=application.reconcile_payment_use_case,
        pop_timeout=config.worker.pop_timeout,
        backoff_seconds=config.worker.backoff_seconds,
        max_consecutive_failures=config.worker.max_consecutive_failures,
    )
