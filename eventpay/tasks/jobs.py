from eventpay.tasks.celery_app import celery
from eventpay.tasks import worker_jobs

@celery.task(name="eventpay.tasks.jobs.expire_stale_tickets")
def expire_stale_tickets():
    return worker_jobs.expire_stale_tickets()
