"""Celery tasks for wallet background processing."""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def retry_pending_distributions():
    """
    Periodic task (celery beat) that pays out rides whose token
    distribution failed when they were completed.
    """
    from wallet.services.distribution_retry import process_pending_distributions

    pending, distributed = process_pending_distributions()
    if pending:
        logger.info("Retried token distribution: %s pending, %s paid", pending, distributed)
    if distributed < pending:
        logger.warning("%s ride(s) still waiting for token distribution", pending - distributed)
    return {"pending": pending, "distributed": distributed}
