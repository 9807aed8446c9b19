#!/usr/bin/env python3
"""
CLI for Mailgun Sync operations.

Provides commands to poll events, reconcile failures, resubmit messages,
manage deferred jobs and the bounce list, and send a test message.
"""

import argparse
import asyncio
import sys
from datetime import timedelta

from mailgun_sync.clients.mailgun import MailgunClient
from mailgun_sync.config import settings
from mailgun_sync.exceptions import MailgunSyncError
from mailgun_sync.jobs.base import BaseJob
from mailgun_sync.jobs.delivery_check_job import DeliveryCheckJob
from mailgun_sync.jobs.requeue_job import RequeueJob
from mailgun_sync.jobs.runner import JobRunner, schedule_recurring
from mailgun_sync.jobs.truncate_job import TruncateJob
from mailgun_sync.logging.config import configure_logging
from mailgun_sync.repositories.event_repository import EventRepository
from mailgun_sync.repositories.job_repository import JobRepository
from mailgun_sync.schemas.message import DeferredSend, OutboundMessage
from mailgun_sync.services.bounce_service import BounceService
from mailgun_sync.services.dispatcher import SendDispatcher
from mailgun_sync.services.event_poller import EventPoller
from mailgun_sync.services.resubmitter import Resubmitter
from mailgun_sync.services.submission_service import SubmissionService
from mailgun_sync.utils.dates import rfc2822, utc_now


async def _run_job(job: BaseJob) -> None:
    try:
        await job.process()
    finally:
        await job.close()
    for message in job.messages:
        print(message)


async def cmd_poll(days: int, event_filter: str | None) -> None:
    """
    Poll events from Mailgun and store them.

    Args:
        days: How many days back to poll
        event_filter: Event type or OR-expression, None for all
    """
    repo = EventRepository()
    async with MailgunClient() as client:
        result = await EventPoller(client).poll_events(
            begin=rfc2822(utc_now() - timedelta(days=days)), event_filter=event_filter
        )

    created = 0
    for event in result.events:
        _, is_new = await repo.create_if_absent(event)
        created += int(is_new)

    print(f"✓ Polled {len(result.events)} events over {result.pages} pages, {created} new")
    if result.exhausted:
        print("⚠️  Page limit reached, the result may be incomplete")


async def cmd_check_delivery() -> None:
    """Run the delivery check now."""
    await _run_job(DeliveryCheckJob())


async def cmd_resubmit(event_key: str, automated: bool) -> None:
    """
    Resubmit the message of a stored event.

    Args:
        event_key: Event to resubmit
        automated: Apply the automated path and its failure ceiling
    """
    event = await EventRepository().get(event_key)
    if event is None:
        print(f"✗ Error: event {event_key} not found")
        sys.exit(1)

    async with MailgunClient() as client:
        resubmitter = Resubmitter(client=client)
        if automated:
            attempted = await resubmitter.automated_resubmit(event)
            print("✓ Resubmit attempted" if attempted else "→ Event not eligible for resubmit")
        else:
            message_id = await resubmitter.manual_resubmit(event)
            print(f"✓ Resubmitted as {message_id}")


async def cmd_requeue() -> None:
    """Requeue broken send jobs."""
    await _run_job(RequeueJob())


async def cmd_cancel_job(job_id: str) -> None:
    """
    Cancel a job that has not started.

    Args:
        job_id: Job to cancel
    """
    job = await JobRepository().cancel(job_id)
    if job is None:
        print(f"✗ Error: job {job_id} not found or already started")
        sys.exit(1)
    print(f"✓ Cancelled job {job_id}")


async def cmd_truncate(days: int | None) -> None:
    """
    Delete old events and submissions.

    Args:
        days: Age in days, None for the configured default
    """
    await _run_job(TruncateJob(data={"days": days} if days else None))


async def cmd_run_jobs() -> None:
    """Run every due job."""
    counts = await JobRunner().run_due_jobs()
    print(
        f"✓ Jobs complete: {counts['complete']}, broken: {counts['broken']}, "
        f"skipped: {counts['skipped']}"
    )


async def cmd_schedule() -> None:
    """Queue the recurring jobs."""
    for job in await schedule_recurring():
        print(f"✓ {job.job_type:<16} {job.job_id} starts after {job.start_after}")


async def cmd_bounce(action: str, address: str, code: int, error: str) -> None:
    """
    Add or remove a bounce list entry.

    Args:
        action: "add" or "remove"
        address: Email address
        code: SMTP code for a new bounce
        error: Error text for a new bounce
    """
    async with MailgunClient() as client:
        service = BounceService(client)
        if action == "add":
            await service.add(address, code=code, error=error)
            print(f"✓ Added {address} to the bounce list")
        else:
            await service.remove(address)
            print(f"✓ Removed {address} from the bounce list")


async def cmd_send_test(to: str, from_address: str | None, subject: str) -> None:
    """
    Send a test message through the dispatcher.

    Args:
        to: Recipient
        from_address: Sender, defaults to postmaster@<domain>
        subject: Subject line
    """
    message = OutboundMessage(
        from_address=from_address or f"postmaster@{settings.mailgun_domain}",
        to=[to],
        subject=subject,
        text="This is a test message sent by Mailgun Sync.",
    )
    async with MailgunClient() as client:
        result = await SendDispatcher(client=client).send(message)
    if isinstance(result, DeferredSend):
        print(f"✓ Queued send job {result.job_id}, starts after {result.start_after}")
    else:
        print(f"✓ Sent message {result.message_id}")


async def cmd_submission_status(submission_id: str) -> None:
    """
    Show the delivery status of a Submission.

    Args:
        submission_id: Submission to look up
    """
    status = await SubmissionService().status(submission_id)
    if status is None:
        print(f"✗ Error: submission {submission_id} not found")
        sys.exit(1)
    print(f"Message ID: {status.message_id or 'not sent'}")
    print(f"Accepted:   {status.accepted}")
    print(f"Delivered:  {status.delivered}")
    print(f"Stored:     {status.stored}")
    print(f"Failed:     {status.failed}")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        description="Mailgun Sync operations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command")

    poll_parser = subparsers.add_parser("poll", help="Poll and store events from Mailgun")
    poll_parser.add_argument("--days", type=int, default=1, help="Days back to poll (default: 1)")
    poll_parser.add_argument(
        "--event", type=str, help="Event type filter, e.g. 'failed OR rejected'"
    )

    subparsers.add_parser("check-delivery", help="Check delivery of stored failures")

    resubmit_parser = subparsers.add_parser("resubmit", help="Resubmit a stored event's message")
    resubmit_parser.add_argument("event_key", type=str, help="Event key")
    resubmit_parser.add_argument(
        "--automated", action="store_true", help="Apply the automated resubmit rules"
    )

    subparsers.add_parser("requeue", help="Requeue broken send jobs")

    cancel_parser = subparsers.add_parser("cancel-job", help="Cancel a job that has not started")
    cancel_parser.add_argument("job_id", type=str, help="Job ID")

    truncate_parser = subparsers.add_parser("truncate", help="Delete old events")
    truncate_parser.add_argument(
        "--days", type=int, help=f"Age in days (default: {settings.truncate_days})"
    )

    subparsers.add_parser("run-jobs", help="Run due jobs")
    subparsers.add_parser("schedule", help="Queue the recurring jobs")

    bounce_parser = subparsers.add_parser("bounce", help="Manage the bounce list")
    bounce_parser.add_argument("action", choices=["add", "remove"])
    bounce_parser.add_argument("address", type=str, help="Email address")
    bounce_parser.add_argument("--code", type=int, default=550, help="SMTP code (default: 550)")
    bounce_parser.add_argument("--error", type=str, default="", help="Error text")

    send_parser = subparsers.add_parser("send-test", help="Send a test message")
    send_parser.add_argument("to", type=str, help="Recipient")
    send_parser.add_argument("--from", dest="from_address", type=str, help="Sender")
    send_parser.add_argument("--subject", type=str, default="Mailgun Sync test", help="Subject")

    status_parser = subparsers.add_parser(
        "submission-status", help="Show the delivery status of a submission"
    )
    status_parser.add_argument("submission_id", type=str, help="Submission ID")

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    configure_logging()

    commands = {
        "poll": lambda: cmd_poll(args.days, args.event),
        "check-delivery": cmd_check_delivery,
        "resubmit": lambda: cmd_resubmit(args.event_key, args.automated),
        "requeue": cmd_requeue,
        "cancel-job": lambda: cmd_cancel_job(args.job_id),
        "truncate": lambda: cmd_truncate(args.days),
        "run-jobs": cmd_run_jobs,
        "schedule": cmd_schedule,
        "bounce": lambda: cmd_bounce(args.action, args.address, args.code, args.error),
        "send-test": lambda: cmd_send_test(args.to, args.from_address, args.subject),
        "submission-status": lambda: cmd_submission_status(args.submission_id),
    }

    try:
        asyncio.run(commands[args.command]())
    except MailgunSyncError as e:
        print(f"✗ Error: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
