import logging
import smtplib
import subprocess
from email.message import EmailMessage
from email.utils import formatdate

from .options import NOTIFY_ALWAYS

logger = logging.getLogger('virtbackup')

SMTP_TIMEOUT = 30


class MailCommandTransport:
    """Hands the report to the local mail(1) command."""

    def __init__(self, command="mail"):
        self.command = command

    def send(self, sender, recipient, subject, body):
        subprocess.run([self.command, "-r", sender, "-s", subject, recipient],
                       input=body,
                       text=True,
                       capture_output=True,
                       check=True)


class SmtpTransport:
    def __init__(self, host="localhost", port=25, starttls=False, user="", password=""):
        self.host = host
        self.port = port
        self.starttls = starttls
        self.user = user
        self.password = password

    def build_message(self, sender, recipient, subject, body):
        msg = EmailMessage()
        msg["From"] = sender
        msg["To"] = recipient
        msg["Subject"] = subject
        msg["Date"] = formatdate(localtime=True)
        msg.set_content(body)
        return msg

    def send(self, sender, recipient, subject, body):
        msg = self.build_message(sender, recipient, subject, body)
        with smtplib.SMTP(self.host, self.port, timeout=SMTP_TIMEOUT) as server:
            if self.starttls:
                server.starttls()
            if self.user:
                server.login(self.user, self.password)
            server.send_message(msg)


def make_transport(settings):
    if settings.mail_transport == "smtp":
        return SmtpTransport(settings.smtp_host, settings.smtp_port, settings.smtp_starttls,
                             settings.smtp_user, settings.smtp_password)
    return MailCommandTransport(settings.mail_command)


def subject_for(vm_name, exit_code):
    if exit_code == 0:
        return f"Backup Success: {vm_name}"
    return f"Backup Failed: {vm_name}"


def skipped_subject(vm_name):
    return f"Backup Skipped: {vm_name}"


def should_notify(mode, exit_code, transcript):
    """'always' sends every report, 'errors' only failed or aborted runs."""
    if mode == NOTIFY_ALWAYS:
        return True
    return exit_code != 0 or transcript.has_failure_marker()


def notify(transport, options, subject, transcript, exit_code):
    """
    Mails the transcript when the notification mode allows it.

    Delivery problems are logged but never change the outcome of the run.
    Returns True when the report was handed to the transport.
    """
    if not should_notify(options.notify_mode, exit_code, transcript):
        logger.info(f"Notification skipped (mode: {options.notify_mode}).")
        return False

    try:
        transport.send(options.sender, options.recipient, subject, transcript.text())
    except subprocess.CalledProcessError as e:
        logger.error(f"Mail command failed (exit {e.returncode}): {(e.stderr or '').strip()}")
        return False
    except (OSError, smtplib.SMTPException) as e:
        logger.error(f"Could not send the report to {options.recipient}: {e}")
        return False

    logger.info(f"Report '{subject}' sent to {options.recipient}.")
    return True
