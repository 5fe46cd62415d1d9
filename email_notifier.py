#!/usr/bin/env python3
"""
E-mail notification for the fire label report via the SendGrid v3 API.
"""

import asyncio
import base64
from pathlib import Path
from typing import Dict, Optional

import aiohttp

SENDGRID_SEND_URL = 'https://api.sendgrid.com/v3/mail/send'
REPORT_SUBJECT = 'Missing Fire Labels Report'


def build_summary(flagged_count: int) -> str:
    """Body text for the report notification."""
    return (f"There are {flagged_count} products with missing fire labels. "
            f"Please check the attached report.")


class EmailNotifier:
    """Sends the report summary through SendGrid, never raising on failure."""

    def __init__(self, api_key: Optional[str], sender: str, logger,
                 send_url: str = SENDGRID_SEND_URL, timeout_seconds: float = 30):
        """Initialize the notifier.

        Args:
            api_key: SendGrid API key (None disables sending)
            sender: Verified SendGrid sender address
            logger: Logger instance
            send_url: Mail send endpoint
            timeout_seconds: Total timeout for the API request
        """
        self.api_key = api_key
        self.sender = sender
        self.logger = logger
        self.send_url = send_url
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    def build_message(self, subject: str, body: str, recipient: str,
                      attachment_path: Optional[Path] = None) -> Dict:
        """Build the SendGrid mail/send payload."""
        message = {
            'personalizations': [{'to': [{'email': recipient}]}],
            'from': {'email': self.sender},
            'subject': subject,
            'content': [{'type': 'text/plain', 'value': body}],
        }

        if attachment_path:
            attachment_path = Path(attachment_path)
            encoded = base64.b64encode(attachment_path.read_bytes()).decode('ascii')
            message['attachments'] = [{
                'content': encoded,
                'filename': attachment_path.name,
                'type': 'text/csv',
                'disposition': 'attachment',
            }]

        return message

    async def notify(self, flagged_count: int, report_summary: str, recipient: Optional[str],
                     attachment_path: Optional[Path] = None) -> bool:
        """Send the report notification.

        Args:
            flagged_count: Number of flagged products in the report
            report_summary: Message body
            recipient: Destination e-mail address
            attachment_path: Report file to attach (optional)

        Returns:
            True if SendGrid accepted the message, False otherwise
        """
        if not self.api_key:
            self.logger.warning("SENDGRID_API_KEY not set, skipping e-mail notification")
            return False
        if not recipient:
            self.logger.warning("No report recipient configured, skipping e-mail notification")
            return False

        try:
            message = self.build_message(REPORT_SUBJECT, report_summary, recipient, attachment_path)
        except OSError as e:
            self.logger.log_error(str(attachment_path), "NotificationError",
                                  f"Could not read report attachment: {str(e)}")
            return False

        headers = {
            'Authorization': f'Bearer {self.api_key}',
            'Content-Type': 'application/json',
        }

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(self.send_url, json=message, headers=headers) as response:
                    if response.status >= 400:
                        detail = await response.text()
                        self.logger.log_error(self.send_url, "NotificationError",
                                              f"SendGrid returned {response.status}: {detail[:200]}")
                        return False

        except aiohttp.ClientError as e:
            self.logger.log_error(self.send_url, "NotificationError",
                                  f"HTTP error sending e-mail: {str(e)}")
            return False
        except asyncio.TimeoutError:
            self.logger.log_error(self.send_url, "NotificationError", "Timeout sending e-mail")
            return False

        self.logger.info(f"Email sent to {recipient} ({flagged_count} flagged products)")
        return True
