#!/usr/bin/env python3
"""
Polling mode for deployments without a public webhook URL.
Pulls notifications from Green API (receiveNotification) and runs each
incoming text message through the onboarding flow.

    CHANNEL_BACKEND=green_api python scripts/poll_green_api.py
"""
from app.channel.poller import run_polling

if __name__ == "__main__":
    run_polling()
