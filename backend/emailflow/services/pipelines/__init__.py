"""Pipeline services package."""
from emailflow.services.pipelines.priority_sender import run_priority_sender, run_priority_sender_job
from emailflow.services.pipelines.contact_sync import run_contact_sync, run_contact_sync_job

__all__ = [
    "run_priority_sender",
    "run_priority_sender_job",
    "run_contact_sync",
    "run_contact_sync_job"
]
