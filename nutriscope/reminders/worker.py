#!/usr/bin/env python3
"""
Standalone delivery agent process.

Serves one signed-in user: polls their reminders and pushes due ones through
the selected sink until interrupted.
"""
import argparse
import asyncio
import logging
import os
import sys

# Environment must be loaded before the settings object is built on import
from dotenv import load_dotenv

env_file = os.path.join(os.getcwd(), ".env")
if os.path.exists(env_file):
    load_dotenv(env_file)

from nutriscope.db.session import SessionLocal, init_db  # noqa: E402
from nutriscope.reminders.agent import AgentIdentity, DeliveryAgent  # noqa: E402
from nutriscope.reminders.config import settings  # noqa: E402
from nutriscope.reminders.history import InMemoryNotificationHistory  # noqa: E402
from nutriscope.reminders.reconciler import Reconciler  # noqa: E402
from nutriscope.reminders.repository import SqlReminderRepository  # noqa: E402
from nutriscope.reminders.settings_store import SqlSettingsStore  # noqa: E402
from nutriscope.reminders.sinks import FcmNotificationSink, LoggingNotificationSink  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)

logger = logging.getLogger(__name__)


def build_agent(args: argparse.Namespace) -> DeliveryAgent:
    repository = SqlReminderRepository(SessionLocal)
    settings_store = SqlSettingsStore(SessionLocal)
    sink = FcmNotificationSink() if args.sink == "fcm" else LoggingNotificationSink()
    agent = DeliveryAgent(
        repository,
        sink,
        settings_store=settings_store,
        history=InMemoryNotificationHistory(max_entries=settings.HISTORY_MAX_ENTRIES),
        reconciler=Reconciler(repository, settings_store),
    )
    agent.set_identity(AgentIdentity(user_id=args.user_id, push_token=args.push_token))
    return agent


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the reminder delivery agent for one user")
    parser.add_argument("--user-id", required=True, help="user whose reminders are delivered")
    parser.add_argument("--push-token", default=None, help="FCM device token (fcm sink only)")
    parser.add_argument("--sink", choices=("log", "fcm"), default="log")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logger.info(f"🚀 Starting reminder delivery agent for user {args.user_id} (sink={args.sink})")
    if settings.AUTO_CREATE_TABLES:
        init_db()

    try:
        asyncio.run(build_agent(args).run())
    except KeyboardInterrupt:
        logger.info("🛑 Delivery agent shutdown requested")
    except Exception as e:
        logger.error(f"❌ Delivery agent error: {e}")
        sys.exit(1)
    finally:
        logger.info("👋 Delivery agent terminated")


if __name__ == "__main__":
    main()
