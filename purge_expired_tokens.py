#!/usr/bin/env python3
"""
Purge expired email verification tokens and login challenges.

Run from cron, either directly or by handing the job to the RQ worker:

    python purge_expired_tokens.py            # purge now
    python purge_expired_tokens.py --enqueue  # queue for the worker
"""

import argparse

from alphasource.core.logging import setup_logging
from alphasource.db.session import create_db_and_tables
from alphasource.workers.queue import enqueue_task
from alphasource.workers.tasks import purge_expired_tokens_task


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--enqueue", action="store_true", help="queue the purge for the RQ worker")
    args = parser.parse_args()

    setup_logging()
    if args.enqueue:
        job_id = enqueue_task(purge_expired_tokens_task)
        print(f"Queued purge job {job_id}")
        return

    create_db_and_tables()
    result = purge_expired_tokens_task()
    print(
        f"Purged {result['verification_tokens']} verification tokens "
        f"and {result['login_challenges']} login challenges"
    )


if __name__ == "__main__":
    main()
