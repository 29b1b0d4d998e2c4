"""
Celery tasks package.

Tasks are organized by domain:
- campaign_tasks: periodic campaign completion detection and failed-tailoring retries
"""

from app.tasks import campaign_tasks

__all__ = ["campaign_tasks"]
